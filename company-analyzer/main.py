"""
Company Analyzer Cloud Function

Scrapes a prospect's website and asks Gemini for MXDR sales enablement content.

Responsibilities:
- Validate the company URL
- Fetch the company homepage and extract salient text
- Prompt Gemini with the extracted text
- Normalize Gemini's answer into an AnalysisResult

Does NOT:
- Crawl beyond the one page it is given
- Retry failed calls (the caller's job)
- Cache or persist anything
"""

import functions_framework
import requests
from bs4 import BeautifulSoup
from dotenv import load_dotenv
import logging
import json
import os
import re
import sys

# Add shared module to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from shared.url_utils import is_valid_url
from shared.analysis_utils import extract_response_text, parse_analysis_response

load_dotenv()

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_flag(value, default: bool = False) -> bool:
    """Read a boolean option that may arrive as a JSON bool or a string."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return False


def env_float(name: str, default: float) -> float:
    """Read a float setting, keeping the default when the value is malformed."""
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(f'Ignoring malformed {name}={raw_value!r}, using {default:g}')
        return default

    if not 0 < value < float('inf'):
        logger.warning(f'Ignoring out-of-range {name}={raw_value!r}, using {default:g}')
        return default

    return value


# Configuration
GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')  # Required: set via Cloud Function secret
GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash')
GEMINI_API_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'
SCRAPE_TIMEOUT = env_float('SCRAPE_TIMEOUT', 10.0)
GEMINI_TIMEOUT = env_float('GEMINI_TIMEOUT', 60.0)
INCLUDE_SCRAPED_SUMMARY = parse_flag(os.environ.get('INCLUDE_SCRAPED_SUMMARY'))
USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'

ANALYZE_ROUTE = '/api/analyze'
CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST, GET, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}

# Extraction limits
HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')
MAX_PARAGRAPHS = 20
MAX_PARAGRAPH_CHARS = 4000
MAX_SNIPPET_CHARS = 200
MAX_SCRAPED_CHARS = 8000
MAX_SUMMARY_CHARS = 500

# Page text that hints at security posture, stack or company profile
KEYWORDS = [
    'security',
    'compliance',
    'cloud',
    'saas',
    'it team',
    'data protection',
    'cybersecurity',
    'managed services',
    'technology',
    'careers',
    'about us',
]


class GeminiApiError(Exception):
    """Gemini could not be reached or answered with a non-success status."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def fetch_webpage(url: str) -> tuple:
    """Fetch an HTML page. Returns (response, error)."""
    try:
        headers = {
            'User-Agent': USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        }

        response = requests.get(url, headers=headers, timeout=SCRAPE_TIMEOUT, allow_redirects=True)

    except requests.exceptions.Timeout:
        return None, f'Request timed out after {SCRAPE_TIMEOUT:g}s'
    except requests.exceptions.RequestException as e:
        return None, f'Request failed: {str(e)}'

    if not 200 <= response.status_code < 300:
        return None, f'HTTP error: {response.status_code}'

    content_type = response.headers.get('Content-Type', '')
    media_type = content_type.split(';')[0].strip().lower()
    if media_type not in HTML_CONTENT_TYPES:
        return None, f'Expected HTML content, got {content_type or "no content type"}'

    return response, None


def extract_paragraph_text(soup: BeautifulSoup) -> str:
    """Text of the first paragraphs, newline-joined and capped."""
    paragraphs = soup.find_all('p', limit=MAX_PARAGRAPHS)
    return '\n'.join(p.get_text() for p in paragraphs)[:MAX_PARAGRAPH_CHARS]


def extract_keyword_snippets(soup: BeautifulSoup) -> list:
    """Short snippets from links, paragraphs and list items that mention a keyword."""
    snippets = []

    for element in soup.find_all(['a', 'p', 'li']):
        text = element.get_text()
        lowered = text.lower()
        if any(keyword in lowered for keyword in KEYWORDS):
            snippets.append(text[:MAX_SNIPPET_CHARS])

    return snippets


def extract_page_text(soup: BeautifulSoup) -> str:
    """
    Build the text excerpt sent to Gemini.

    Order: title, meta description, h1-h3 headings, leading paragraphs,
    then keyword snippets. Whitespace is collapsed and the whole excerpt
    is capped after the snippets are appended.
    """
    title_tag = soup.find('title')
    title = title_tag.get_text() if title_tag else ''

    meta_desc = soup.find('meta', attrs={'name': 'description'})
    description = meta_desc.get('content', '') if meta_desc else ''

    headings = '\n'.join(h.get_text() for h in soup.find_all(['h1', 'h2', 'h3']))

    scraped_text = '\n'.join([title, description, headings, extract_paragraph_text(soup)])

    for snippet in extract_keyword_snippets(soup):
        scraped_text += '\n' + snippet

    return re.sub(r'\s+', ' ', scraped_text).strip()[:MAX_SCRAPED_CHARS]


def scraping_fallback(url: str, reason: str) -> str:
    """Excerpt used when the page could not be scraped."""
    return f'Scraping failed for {url}. Error: {reason}. Proceeding with analysis based on URL only.'


def scrape_company_data(url: str) -> str:
    """
    Fetch a company page and return its text excerpt.

    Never raises: any fetch or parse failure is returned as a fallback
    excerpt so the analysis can still run on the URL alone.
    """
    logger.info(f'Attempting to scrape: {url}')

    try:
        response, fetch_error = fetch_webpage(url)
        if fetch_error:
            logger.warning(f'Scraping failed for {url}: {fetch_error}')
            return scraping_fallback(url, fetch_error)

        soup = BeautifulSoup(response.text, 'html.parser')
        scraped_text = extract_page_text(soup)

    except Exception as e:
        logger.warning(f'Scraping error for {url}: {e}')
        return scraping_fallback(url, str(e))

    logger.info(f'Scraping successful for: {url}. Data length: {len(scraped_text)}')
    return scraped_text


def summarize_scraped_data(scraped_data: str) -> str:
    """Short preview of the excerpt for the response."""
    if len(scraped_data) <= MAX_SUMMARY_CHARS:
        return scraped_data
    return scraped_data[:MAX_SUMMARY_CHARS] + '...'


def build_analysis_prompt(scraped_data: str, company_url: str) -> str:
    """Compose the MXDR analysis prompt for a company."""
    scraped_section = scraped_data or (
        'No data could be scraped. Analyze based on the URL and general company knowledge if possible.'
    )

    return f"""Analyze the following information scraped from the company website ({company_url}) to assess their potential fit for Managed Extended Detection and Response (MXDR) cybersecurity services and generate sales enablement content.

**Scraped Data:**
---
{scraped_section}
---

**Analysis Task:**

Based *only* on the provided scraped data (or lack thereof) and the company URL:

1. **MXDR Fit Assessment:**
   - Estimate the company's likely size (Small, Medium, Large) and industry.
   - Identify any indicators of their technology stack (e.g., Cloud-native, SaaS).
   - Assess their potential need for advanced cybersecurity based on hints like compliance mentions, data sensitivity, lack of a large internal security team, or industry type.
   - Conclude with a brief summary (1-2 sentences) on whether they seem like a Low, Medium, or High potential fit for MXDR, and *why*. Be conservative if data is sparse.

2. **Personalized Cold Outreach Email Sequence:**
   - Generate one initial cold outreach email (Subject + Body).
   - Generate two distinct follow-up emails (Subject + Body).
   - Emails should be concise, professional, reference a *potential* pain point suggested by the scraped data (or industry norms if no data), and introduce MXDR as a solution. Avoid definitive claims the data does not support.

3. **Sales Call Battlecard:**
   - List 3-5 talking points relevant to the company/industry suggested by the data.
   - List 3-5 probing questions to ask a cybersecurity decision-maker at this company.

**Output Format:**

Return the analysis as a JSON object with the following exact structure:
{{
  "mxdrFitAnalysis": "...",
  "coldOutreachEmails": ["Subject: ...\\nBody: ..."],
  "followUpEmails": ["Subject: ...\\nBody: ...", "Subject: ...\\nBody: ..."],
  "callBattlecard": {{
    "talkingPoints": ["...", "..."],
    "questions": ["...", "..."]
  }}
}}

If the scraped data is insufficient for a meaningful analysis, state that clearly in 'mxdrFitAnalysis' and provide generic (but plausible) emails and battlecard points based on common business needs, mentioning the lack of specific data. Do not invent information.
"""


def call_gemini_api(scraped_data: str, company_url: str, api_key: str, model: str = None) -> dict:
    """
    Ask Gemini for the MXDR analysis of a company.

    Args:
        scraped_data: Page excerpt from scrape_company_data
        company_url: The company URL being analyzed
        api_key: Gemini API key
        model: Gemini model name (defaults to GEMINI_MODEL)

    Returns:
        AnalysisResult dict. An answer that is not valid JSON still returns
        a result, with the raw text in mxdrFitAnalysis.

    Raises:
        GeminiApiError: on transport failure or a non-success status
        MalformedResponseError: if the response envelope has no answer text
    """
    endpoint = GEMINI_API_URL.format(model=model or GEMINI_MODEL)
    prompt = build_analysis_prompt(scraped_data, company_url)

    logger.info(f'Calling Gemini API for {company_url}...')

    try:
        response = requests.post(
            endpoint,
            params={'key': api_key},
            headers={'Content-Type': 'application/json'},
            json={'contents': [{'parts': [{'text': prompt}]}]},
            timeout=GEMINI_TIMEOUT
        )
    except requests.exceptions.Timeout:
        raise GeminiApiError(f'Gemini API request timed out after {GEMINI_TIMEOUT:g}s')
    except requests.exceptions.RequestException as e:
        # The exception text can echo the request URL, which carries the key
        raise GeminiApiError(f'Gemini API request failed: {type(e).__name__}')

    if not 200 <= response.status_code < 300:
        logger.error(f'Gemini API error response: {response.text[:1000]}')
        raise GeminiApiError(
            f'Gemini API request failed: {response.status_code} {response.reason}',
            status_code=response.status_code
        )

    try:
        envelope = response.json()
    except ValueError:
        envelope = None

    raw_text = extract_response_text(envelope)
    logger.debug(f'Raw Gemini response text: {raw_text}')

    result = parse_analysis_response(raw_text)
    logger.info(f'Gemini analysis complete for {company_url}.')
    return result


def _json_response(payload, status: int) -> tuple:
    headers = dict(CORS_HEADERS)
    headers['Content-Type'] = 'application/json'
    return (json.dumps(payload), status, headers)


def _error_response(status: int, message: str) -> tuple:
    return _json_response({'status': status, 'error': message}, status)


@functions_framework.http
def analyze_company(request):
    """
    Main Cloud Function entry point.

    Route: POST /api/analyze

    Expected JSON input:
    {
        "companyUrl": "https://example.com",
        "options": {
            "include_summary": false
        }
    }
    """
    path = (request.path or '/').rstrip('/') or '/'

    if path != ANALYZE_ROUTE:
        return _error_response(404, 'Not Found.')

    # Handle CORS preflight
    if request.method == 'OPTIONS':
        headers = dict(CORS_HEADERS)
        headers['Access-Control-Max-Age'] = '3600'
        return ('', 204, headers)

    if request.method != 'POST':
        return _error_response(404, 'Not Found.')

    logger.info(f'Received request to {ANALYZE_ROUTE}')

    company_url = None
    try:
        request_json = request.get_json(force=True, silent=True)

        if request_json is None:
            logger.warning('Failed to parse request body as JSON')
            return _error_response(400, 'Invalid JSON request body.')

        if isinstance(request_json, dict):
            company_url = request_json.get('companyUrl')
            if isinstance(company_url, str):
                company_url = company_url.strip()

        if not isinstance(company_url, str) or not is_valid_url(company_url):
            logger.warning(f'Invalid company URL received: {company_url!r}')
            return _error_response(
                400,
                'Invalid or missing "companyUrl" in request body. '
                'Must be a valid URL starting with http:// or https://.'
            )

        if not GEMINI_API_KEY:
            logger.error('GEMINI_API_KEY is not set in the function environment.')
            return _error_response(500, 'Server configuration error: Gemini API Key not found.')

        options = request_json.get('options')
        if not isinstance(options, dict):
            options = {}
        include_summary = parse_flag(options.get('include_summary'), default=INCLUDE_SCRAPED_SUMMARY)

        # Scraping never fails; a failed scrape becomes a URL-only analysis
        scraped_data = scrape_company_data(company_url)

        analysis_result = call_gemini_api(scraped_data, company_url, GEMINI_API_KEY)

        if include_summary:
            analysis_result['scrapedDataSummary'] = summarize_scraped_data(scraped_data)

        logger.info(f'Analysis complete for {company_url}. Returning results.')
        return _json_response(analysis_result, 200)

    except Exception as e:
        logger.exception(f'Analysis failed for {company_url}')
        return _error_response(500, f'Analysis failed: {str(e)}')
