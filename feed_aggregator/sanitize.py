"""Plain-text sanitization of feed content for Markdown output."""

import html
import re

DEFAULT_MAX_LENGTH = 200
ELLIPSIS = "..."

# Characters with meaning in Markdown; removed to keep rendered text literal.
MARKDOWN_RESERVED = "*_#`><[]()!~|{}+"

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_RESERVED_TABLE = str.maketrans("", "", MARKDOWN_RESERVED)


def clean_html(content: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Strip tags, decode entities, collapse whitespace and truncate.

    Truncated text is cut to exactly max_length characters, loses one
    trailing space or period, and gets an ellipsis.
    """
    if not content:
        return ""

    text = _TAG_RE.sub("", content)
    text = html.unescape(text)
    text = _WHITESPACE_RE.sub(" ", text)

    if len(text) > max_length:
        text = text[:max_length]
        if text.endswith((" ", ".")):
            text = text[:-1]
        text += ELLIPSIS

    return text


def strip_markdown(text: str) -> str:
    """Remove every Markdown-reserved character."""
    return text.translate(_RESERVED_TABLE)


def sanitize(content: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Turn feed markup into bounded, Markdown-safe plain text.

    Args:
        content: Raw description/summary/content text, possibly HTML
        max_length: Character budget before the ellipsis is appended

    Returns:
        Sanitized text, at most max_length + len(ELLIPSIS) characters
    """
    return strip_markdown(clean_html(content, max_length)).strip()
