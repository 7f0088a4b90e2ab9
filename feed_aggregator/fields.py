"""Field resolution across RSS and Atom naming variants."""

from .models import RawItem

AUTHOR_FIELDS = ("author", "creator")
SUMMARY_FIELDS = ("description", "summary", "content", "encoded")
DATE_FIELDS = ("pub_date", "date", "published", "updated")


def first_non_empty(item: RawItem, field_names: tuple[str, ...]) -> str:
    """Return the first non-empty value among the named fields, or ""."""
    for name in field_names:
        value = getattr(item, name, "")
        if value:
            return value
    return ""


def resolve_author(item: RawItem, channel_fallback: str) -> str:
    """Return the item author, then creator, then the channel title as given."""
    return first_non_empty(item, AUTHOR_FIELDS) or channel_fallback


def resolve_summary(item: RawItem) -> str:
    """Return the raw summary source text, unsanitized; "" when none exists."""
    return first_non_empty(item, SUMMARY_FIELDS)
