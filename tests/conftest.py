"""
Shared pytest fixtures for Company Analyzer tests.
"""

import pytest
import sys
import json
import importlib.util
from pathlib import Path
from bs4 import BeautifulSoup

# Project root for finding Cloud Function modules
PROJECT_ROOT = Path(__file__).parent.parent


def _load_module_from_path(module_name: str, file_path: Path):
    """Load a module from a specific file path."""
    spec = importlib.util.spec_from_file_location(module_name, file_path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


# Load the Cloud Function module with a unique name at module load time
_company_analyzer_module = _load_module_from_path(
    'company_analyzer_main',
    PROJECT_ROOT / 'company-analyzer' / 'main.py'
)


GEMINI_ENDPOINT = (
    'https://generativelanguage.googleapis.com/v1beta/models/'
    f'{_company_analyzer_module.GEMINI_MODEL}:generateContent'
)


# ============================================================================
# Company Analyzer Function Fixtures
# ============================================================================

@pytest.fixture
def company_analyzer():
    """Returns the company-analyzer module (for patching configuration)."""
    return _company_analyzer_module


@pytest.fixture
def extract_page_text():
    """Returns extract_page_text function from company-analyzer."""
    return _company_analyzer_module.extract_page_text


@pytest.fixture
def extract_paragraph_text():
    """Returns extract_paragraph_text function from company-analyzer."""
    return _company_analyzer_module.extract_paragraph_text


@pytest.fixture
def extract_keyword_snippets():
    """Returns extract_keyword_snippets function from company-analyzer."""
    return _company_analyzer_module.extract_keyword_snippets


@pytest.fixture
def build_analysis_prompt():
    """Returns build_analysis_prompt function from company-analyzer."""
    return _company_analyzer_module.build_analysis_prompt


@pytest.fixture
def summarize_scraped_data():
    """Returns summarize_scraped_data function from company-analyzer."""
    return _company_analyzer_module.summarize_scraped_data


@pytest.fixture
def parse_flag():
    """Returns parse_flag function from company-analyzer."""
    return _company_analyzer_module.parse_flag


@pytest.fixture
def env_float():
    """Returns env_float function from company-analyzer."""
    return _company_analyzer_module.env_float


@pytest.fixture
def sample_company_html():
    """Returns raw HTML of a sample company homepage."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>Acme Health | Patient Records in the Cloud</title>
        <meta name="description" content="HIPAA compliant patient records for clinics">
    </head>
    <body>
        <nav>
            <a href="/about">About Us</a>
            <a href="/pricing">Pricing</a>
        </nav>
        <h1>Patient records, simplified</h1>
        <h2>Built for small clinics</h2>
        <h3>Trusted by 300 practices</h3>
        <h4>Not a scraped heading</h4>
        <p>Acme Health is a SaaS platform for clinic records.</p>
        <p>We take data protection seriously and are SOC 2 audited.</p>
        <ul>
            <li>Cloud hosted</li>
            <li>Free onboarding</li>
        </ul>
    </body>
    </html>
    """


@pytest.fixture
def sample_company_soup(sample_company_html):
    """Returns BeautifulSoup of the sample company homepage."""
    return BeautifulSoup(sample_company_html, 'html.parser')


@pytest.fixture
def long_paragraph_soup():
    """Returns BeautifulSoup of a page whose paragraphs exceed every cap."""
    paragraph = 'Our cloud security team protects customer data. ' * 20
    html = '<html><head><title>Big Co</title></head><body>'
    html += ''.join(f'<p>{paragraph}</p>' for _ in range(40))
    html += '</body></html>'
    return BeautifulSoup(html, 'html.parser')


@pytest.fixture
def empty_soup():
    """Returns empty BeautifulSoup."""
    return BeautifulSoup("", 'html.parser')


@pytest.fixture
def analysis_payload():
    """A well-formed analysis as Gemini is asked to return it."""
    return {
        'mxdrFitAnalysis': 'Medium fit: a small healthcare SaaS with compliance needs.',
        'coldOutreachEmails': ['Subject: Securing patient data\nBody: Hi there...'],
        'followUpEmails': [
            'Subject: Following up\nBody: Just checking in...',
            'Subject: One last note\nBody: Closing the loop...',
        ],
        'callBattlecard': {
            'talkingPoints': ['HIPAA monitoring', 'Cloud workload coverage', '24/7 SOC'],
            'questions': ['Who handles alerts today?', 'How do you audit access?', 'Any recent incidents?'],
        },
    }


@pytest.fixture
def gemini_envelope():
    """Factory wrapping answer text in a generateContent envelope."""
    def _envelope(text):
        return {
            'candidates': [
                {
                    'content': {'parts': [{'text': text}], 'role': 'model'},
                    'finishReason': 'STOP',
                }
            ]
        }

    return _envelope


@pytest.fixture
def gemini_endpoint():
    """Gemini generateContent URL for the configured model."""
    return GEMINI_ENDPOINT


@pytest.fixture
def mock_flask_request():
    """Factory for creating mock Flask request objects."""
    class MockRequest:
        def __init__(self, json_data=None, method='POST', path='/api/analyze', data=None):
            self.method = method
            self.path = path
            if data is None:
                data = json.dumps(json_data) if json_data is not None else ''
            self.data = data.encode('utf-8') if isinstance(data, str) else data

        def get_json(self, force=False, silent=False):
            try:
                return json.loads(self.data.decode('utf-8'))
            except ValueError:
                if silent:
                    return None
                raise

    return MockRequest


# ============================================================================
# Integration Test Fixtures (HTTP functions)
# ============================================================================

@pytest.fixture
def fetch_webpage():
    """Returns fetch_webpage function from company-analyzer."""
    return _company_analyzer_module.fetch_webpage


@pytest.fixture
def scrape_company_data():
    """Returns scrape_company_data function from company-analyzer."""
    return _company_analyzer_module.scrape_company_data


@pytest.fixture
def call_gemini_api():
    """Returns call_gemini_api function from company-analyzer."""
    return _company_analyzer_module.call_gemini_api


@pytest.fixture
def analyze_company():
    """Returns main entry point from company-analyzer."""
    return _company_analyzer_module.analyze_company


@pytest.fixture
def with_api_key(monkeypatch):
    """Configures a Gemini API key on the function module."""
    monkeypatch.setattr(_company_analyzer_module, 'GEMINI_API_KEY', 'test-gemini-key')
    return 'test-gemini-key'


@pytest.fixture
def without_api_key(monkeypatch):
    """Removes the Gemini API key from the function module."""
    monkeypatch.setattr(_company_analyzer_module, 'GEMINI_API_KEY', None)
