"""
URL utilities for the Company Analyzer.

Every company URL must be an absolute http(s) URL before any network call
is made on its behalf.
"""

from urllib.parse import urlparse

ALLOWED_SCHEMES = ('http', 'https')


def is_valid_url(url_string: str) -> bool:
    """
    Check that a string is an absolute HTTP(S) URL.

    Args:
        url_string: Candidate URL

    Returns:
        True if the string (ignoring surrounding whitespace) has a network
        location and its scheme is exactly http or https. Malformed input
        returns False.

    Examples:
        >>> is_valid_url("https://a.com")
        True

        >>> is_valid_url("ftp://x.com")
        False
    """
    if not isinstance(url_string, str):
        return False

    # Surrounding whitespace is ignored, as browsers do
    url_string = url_string.strip()
    if not url_string:
        return False

    try:
        parsed = urlparse(url_string)
        # Accessing .port validates the netloc (e.g. "http://a.com:99999")
        parsed.port
    except ValueError:
        return False

    # Hosts never contain whitespace ("https://exa mple.com"); paths and queries may
    if any(char.isspace() for char in parsed.netloc):
        return False

    return parsed.scheme in ALLOWED_SCHEMES and bool(parsed.netloc) and bool(parsed.hostname)
