"""
Gemini analysis utilities for the Company Analyzer.

Turns the Gemini generateContent envelope into a structured AnalysisResult.
The envelope must be well formed; the JSON inside it may not be. A reply
that cannot be parsed degrades to a result carrying the raw text instead
of failing the request.
"""

import json
import logging
from typing import Any, Dict, List, Sequence, TypedDict

logger = logging.getLogger(__name__)


class Battlecard(TypedDict):
    talkingPoints: List[str]
    questions: List[str]


class AnalysisResult(TypedDict, total=False):
    """Analysis payload returned to the front end (keys match its JSON)."""

    mxdrFitAnalysis: str
    coldOutreachEmails: List[str]
    followUpEmails: List[str]
    callBattlecard: Battlecard
    scrapedDataSummary: str


class MalformedResponseError(Exception):
    """The provider envelope does not contain the expected text field."""


# Wrapper markers Gemini puts around JSON answers (checked in order)
CODE_FENCE_PREFIXES = ('```json', '```')
CODE_FENCE_SUFFIXES = ('```',)

PARSE_FAILURE_NOTE = 'Failed to parse structured response. Raw Gemini Output:'


def extract_response_text(envelope: Any) -> str:
    """
    Pull the model's answer out of a generateContent envelope.

    Expects: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}

    Raises:
        MalformedResponseError: if any level is missing or the text is empty
    """
    try:
        text = envelope['candidates'][0]['content']['parts'][0]['text']
    except (KeyError, IndexError, TypeError):
        raise MalformedResponseError('Failed to parse response from Gemini API.')

    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError('Failed to parse response from Gemini API.')

    return text


def strip_wrapper_markers(
    text: str,
    prefixes: Sequence[str] = CODE_FENCE_PREFIXES,
    suffixes: Sequence[str] = CODE_FENCE_SUFFIXES
) -> str:
    """
    Remove one known leading and one known trailing marker from text.

    Args:
        text: Raw model output
        prefixes: Leading markers, first match wins
        suffixes: Trailing markers, first match wins

    Returns:
        The text between the markers, whitespace trimmed

    Examples:
        >>> strip_wrapper_markers('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    if not text:
        return ''

    cleaned = text.strip()

    for prefix in prefixes:
        if cleaned.lower().startswith(prefix.lower()):
            cleaned = cleaned[len(prefix):]
            break

    for suffix in suffixes:
        if cleaned.endswith(suffix):
            cleaned = cleaned[:-len(suffix)]
            break

    return cleaned.strip()


def _string_list(value: Any) -> List[str]:
    """Coerce a JSON value into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [item if isinstance(item, str) else json.dumps(item) for item in value if item is not None]
    return [str(value)]


def empty_analysis(fit_analysis: str = '') -> AnalysisResult:
    """Result with the full shape and nothing in it."""
    return {
        'mxdrFitAnalysis': fit_analysis,
        'coldOutreachEmails': [],
        'followUpEmails': [],
        'callBattlecard': {'talkingPoints': [], 'questions': []},
    }


def degraded_analysis(raw_text: str) -> AnalysisResult:
    """Result for a reply that could not be parsed: raw text, empty lists."""
    return empty_analysis(f'{PARSE_FAILURE_NOTE}\n{raw_text}')


def normalize_analysis(data: Dict[str, Any]) -> AnalysisResult:
    """
    Coerce parsed model JSON into the full AnalysisResult shape.

    Missing lists become empty lists and a missing fit analysis becomes an
    empty string, so the front end never sees a partial object.
    """
    fit_analysis = data.get('mxdrFitAnalysis')
    if fit_analysis is None:
        fit_analysis = ''
    elif not isinstance(fit_analysis, str):
        fit_analysis = json.dumps(fit_analysis)

    battlecard = data.get('callBattlecard')
    if not isinstance(battlecard, dict):
        battlecard = {}

    result = empty_analysis(fit_analysis)
    result['coldOutreachEmails'] = _string_list(data.get('coldOutreachEmails'))
    result['followUpEmails'] = _string_list(data.get('followUpEmails'))
    result['callBattlecard'] = {
        'talkingPoints': _string_list(battlecard.get('talkingPoints')),
        'questions': _string_list(battlecard.get('questions')),
    }
    return result


def parse_analysis_response(
    raw_text: str,
    prefixes: Sequence[str] = CODE_FENCE_PREFIXES,
    suffixes: Sequence[str] = CODE_FENCE_SUFFIXES
) -> AnalysisResult:
    """
    Parse the model's text answer into an AnalysisResult.

    Args:
        raw_text: Text field from the provider envelope
        prefixes: Leading wrapper markers to strip
        suffixes: Trailing wrapper markers to strip

    Returns:
        The normalized result, or degraded_analysis(raw_text) when the text
        is not a JSON object. Never raises for bad content.
    """
    json_string = strip_wrapper_markers(raw_text, prefixes, suffixes)

    try:
        parsed = json.loads(json_string)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f'Failed to parse Gemini JSON response: {e}')
        return degraded_analysis(raw_text)

    if not isinstance(parsed, dict):
        logger.error(f'Gemini JSON response is a {type(parsed).__name__}, not an object')
        return degraded_analysis(raw_text)

    return normalize_analysis(parsed)
