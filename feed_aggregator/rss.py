"""RSS/Atom feed retrieval, decoding and normalization."""

import threading
import xml.etree.ElementTree as ET
from dataclasses import replace
from urllib.parse import urlparse

import requests

from .dates import resolve_date
from .errors import DecodeError, TransportError
from .fields import resolve_author, resolve_summary
from .logging_config import create_execution_logger
from .models import Diagnostic, Post, RawFeed, RawItem
from .sanitize import DEFAULT_MAX_LENGTH, sanitize

SUMMARY_PLACEHOLDER = "Visit post for details."
DEFAULT_USER_AGENT = "Feed-Aggregator/1.0 (RSS and Atom digest)"

# Element local name -> RawItem attribute; links are resolved separately.
ITEM_FIELDS = {
    "title": "title",
    "pubDate": "pub_date",
    "date": "date",
    "published": "published",
    "updated": "updated",
    "author": "author",
    "creator": "creator",
    "description": "description",
    "summary": "summary",
    "content": "content",
    "encoded": "encoded",
}

# Only core RSS, Atom, Dublin Core and content-module elements bind, so that
# extensions such as media:description or itunes:summary never stand in for
# the core fields.
BOUND_NAMESPACES = frozenset(
    {
        "",
        "http://www.w3.org/2005/Atom",
        "http://purl.org/dc/elements/1.1/",
        "http://purl.org/rss/1.0/modules/content/",
    }
)


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _is_bound(tag) -> bool:
    if not isinstance(tag, str):
        return False
    namespace = tag[1:].split("}", 1)[0] if tag.startswith("{") else ""
    return namespace in BOUND_NAMESPACES


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [
        child
        for child in element
        if _is_bound(child.tag) and _local_name(child.tag) == name
    ]


def _child_text(element: ET.Element, name: str) -> str:
    for child in _children(element, name):
        return "".join(child.itertext())
    return ""


def _link_value(links: list[ET.Element]) -> str:
    """Pick the RSS link text, or the href of the Atom alternate link."""
    for link in links:
        text = "".join(link.itertext())
        if text.strip():
            return text
    for link in links:
        if link.get("href") and link.get("rel", "alternate") == "alternate":
            return link.get("href")
    for link in links:
        if link.get("href"):
            return link.get("href")
    return ""


def _author_value(author: ET.Element) -> str:
    # Atom nests the author name: <author><name>...</name></author>
    names = _children(author, "name")
    if names:
        return "".join(names[0].itertext()).strip()
    return "".join(author.itertext())


def _decode_item(element: ET.Element) -> RawItem:
    item = RawItem()
    for child in element:
        if not _is_bound(child.tag):
            continue
        attr = ITEM_FIELDS.get(_local_name(child.tag))
        if not attr or getattr(item, attr):
            continue
        if attr == "author":
            value = _author_value(child)
        else:
            value = "".join(child.itertext())
        setattr(item, attr, value)
    item.link = _link_value(_children(element, "link"))
    return item


def decode_feed(raw_bytes: bytes) -> RawFeed:
    """Deserialize feed bytes into a RawFeed.

    Raises:
        ET.ParseError: If the bytes are not well-formed XML
    """
    root = ET.fromstring(raw_bytes)
    feed = RawFeed(
        title=_child_text(root, "title"),
        entries=[_decode_item(entry) for entry in _children(root, "entry")],
    )

    channels = _children(root, "channel")
    if channels:
        channel = channels[0]
        feed.channel_title = _child_text(channel, "title")
        feed.channel_items = [_decode_item(el) for el in _children(channel, "item")]
        feed.channel_entries = [
            _decode_item(el) for el in _children(channel, "entry")
        ]

    return feed


def select_items(feed: RawFeed) -> list[RawItem]:
    """Return the first populated item list: RSS items, channel entries, Atom entries."""
    return feed.channel_items or feed.channel_entries or feed.entries


class FeedProcessor:
    """Handles RSS/Atom feed retrieval and normalization."""

    def __init__(
        self,
        timeout: float = 30,
        max_length: int = DEFAULT_MAX_LENGTH,
        user_agent: str = DEFAULT_USER_AGENT,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize FeedProcessor with configuration.

        Args:
            timeout: HTTP request timeout in seconds
            max_length: Summary length before truncation
            user_agent: User-Agent header sent with every request
            execution_id: Execution ID for logging context
            session: Optional pre-built requests session, shared by every
                caller; without one each thread gets its own session
        """
        self.timeout = timeout
        self.max_length = max_length
        self.logger = create_execution_logger("feed_processor", execution_id)
        self.date_logger = create_execution_logger(
            "date_normalizer", self.logger.execution_id
        )
        self.user_agent = user_agent
        self.session = session
        if session is not None:
            session.headers.update({"User-Agent": user_agent})
        self._local = threading.local()

        self.logger.info(
            "FeedProcessor initialized", timeout=timeout, max_length=max_length
        )

    def _get_session(self) -> requests.Session:
        """Return the injected session, or a session owned by this thread."""
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": self.user_agent})
            self._local.session = session
        return session

    def fetch_feed(
        self, feed_url: str, diagnostics: list[Diagnostic] | None = None
    ) -> list[Post]:
        """Fetch and parse a single RSS/Atom feed.

        Args:
            feed_url: URL of the RSS/Atom feed
            diagnostics: Optional list receiving degraded-field diagnostics

        Returns:
            Posts in document order

        Raises:
            TransportError: If the feed could not be downloaded
            DecodeError: If the feed is not well-formed XML
        """
        raw_bytes = self.download(feed_url)
        return self.parse_feed(raw_bytes, feed_url, diagnostics)

    def download(self, feed_url: str) -> bytes:
        """Download the raw feed document.

        Raises:
            TransportError: On invalid scheme, network failure or HTTP error status
        """
        scheme = urlparse(feed_url).scheme
        if scheme not in ("http", "https"):
            raise TransportError(feed_url, f"unsupported URL scheme {scheme!r}")

        try:
            self.logger.info("Downloading feed content", feed_url=feed_url)
            response = self._get_session().get(feed_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(feed_url, e) from e

        self.logger.info(
            "Feed downloaded successfully",
            feed_url=feed_url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response.content

    def parse_feed(
        self,
        raw_bytes: bytes,
        feed_url: str,
        diagnostics: list[Diagnostic] | None = None,
    ) -> list[Post]:
        """Decode feed bytes and normalize every item.

        Raises:
            DecodeError: If the bytes are not well-formed XML
        """
        try:
            feed = decode_feed(raw_bytes)
        except ET.ParseError as e:
            raise DecodeError(feed_url, e) from e

        channel_title = feed.channel_title or feed.title
        items = select_items(feed)
        posts = [
            self.normalize_item(item, channel_title, feed_url, diagnostics)
            for item in items
        ]

        self.logger.info(
            "Successfully parsed feed", feed_url=feed_url, posts_count=len(posts)
        )
        return posts

    def normalize_item(
        self,
        raw_item: RawItem,
        channel_title: str,
        feed_url: str = "",
        diagnostics: list[Diagnostic] | None = None,
    ) -> Post:
        """Normalize a raw feed item into a Post.

        Every field has a fallback, so this never fails.
        """
        summary = sanitize(resolve_summary(raw_item), self.max_length)
        date_diagnostics: list[Diagnostic] = []
        date = resolve_date(raw_item, date_diagnostics, logger=self.date_logger)
        if diagnostics is not None:
            diagnostics.extend(replace(d, url=feed_url) for d in date_diagnostics)

        return Post(
            title=raw_item.title,
            link=raw_item.link,
            date=date,
            author=resolve_author(raw_item, channel_title),
            summary=summary or SUMMARY_PLACEHOLDER,
            feed_url=feed_url,
        )
