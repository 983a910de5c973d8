"""
Text cleanup helpers for element content extracted from XMLTV markup.
"""
import re

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_tags(value: str) -> str:
    """
    Remove markup and normalize whitespace

    Every '<...>' span is dropped (lexically, with no notion of nesting),
    whitespace runs collapse to a single space and the result is trimmed.

    Args:
        value: Inner text of an element

    Returns:
        Plain text
    """
    if not isinstance(value, str):
        raise TypeError(f"Expected text, got {type(value).__name__}")
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub("", value)).strip()
