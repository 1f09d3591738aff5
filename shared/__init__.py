"""Shared utilities for the Company Analyzer."""

from .url_utils import (
    ALLOWED_SCHEMES,
    is_valid_url,
)

from .analysis_utils import (
    CODE_FENCE_PREFIXES,
    CODE_FENCE_SUFFIXES,
    PARSE_FAILURE_NOTE,
    AnalysisResult,
    Battlecard,
    MalformedResponseError,
    degraded_analysis,
    empty_analysis,
    extract_response_text,
    normalize_analysis,
    parse_analysis_response,
    strip_wrapper_markers,
)

__all__ = [
    # URL utilities
    'ALLOWED_SCHEMES',
    'is_valid_url',
    # Analysis utilities
    'CODE_FENCE_PREFIXES',
    'CODE_FENCE_SUFFIXES',
    'PARSE_FAILURE_NOTE',
    'AnalysisResult',
    'Battlecard',
    'MalformedResponseError',
    'degraded_analysis',
    'empty_analysis',
    'extract_response_text',
    'normalize_analysis',
    'parse_analysis_response',
    'strip_wrapper_markers',
]
