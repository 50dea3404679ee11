"""
Input sanitization for values that end up in consent records.
"""

import html
import re
from typing import Optional

import bleach

_WHITESPACE = re.compile(r'\s+')
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


def sanitize_text_field(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Strip markup and normalize a single-line text value.

    Tags are removed (not escaped), control characters dropped and
    whitespace collapsed. The result is plain text; renderers escape it.

    Args:
        text: Raw value (None is treated as empty)
        max_length: Truncate the cleaned value to this many characters

    Returns:
        Plain text
    """
    if text is None:
        return ""

    cleaned = bleach.clean(str(text), tags=set(), strip=True)
    # bleach returns HTML-escaped text; stored values are plain
    cleaned = html.unescape(cleaned)
    cleaned = _CONTROL_CHARS.sub('', cleaned)
    cleaned = _WHITESPACE.sub(' ', cleaned).strip()

    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


def escape_like_pattern(pattern: Optional[str]) -> str:
    """Escape LIKE wildcards so a search term matches literally."""
    if not pattern:
        return ""
    return (
        pattern
        .replace('\\', '\\\\')
        .replace('%', '\\%')
        .replace('_', '\\_')
    )
