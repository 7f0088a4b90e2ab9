"""Data models for the feed aggregator."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class RawItem:
    """One RSS item or Atom entry with every field variant side by side.

    Missing fields are empty strings, never None.
    """

    title: str = ""
    link: str = ""
    pub_date: str = ""
    date: str = ""
    published: str = ""
    updated: str = ""
    author: str = ""
    creator: str = ""
    description: str = ""
    summary: str = ""
    content: str = ""
    encoded: str = ""


@dataclass
class RawFeed:
    """Deserialized feed document before normalization."""

    title: str = ""
    channel_title: str = ""
    channel_items: list[RawItem] = field(default_factory=list)
    channel_entries: list[RawItem] = field(default_factory=list)
    entries: list[RawItem] = field(default_factory=list)


@dataclass(frozen=True)
class Post:
    """Normalized post, identical in shape for RSS and Atom sources."""

    title: str
    link: str
    date: datetime
    author: str
    summary: str
    feed_url: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "link": self.link,
            "date": self.date.isoformat(),
            "author": self.author,
            "summary": self.summary,
            "feed_url": self.feed_url,
        }


@dataclass(frozen=True)
class Diagnostic:
    """A degraded outcome observed while fetching or normalizing."""

    component: str
    message: str
    url: str = ""
    item_title: str = ""
    error: str = ""


@dataclass(frozen=True)
class FeedBatch:
    """Result of one feed task, sent from a worker to the collector."""

    url: str
    posts: tuple[Post, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
