"""Unit tests for RSS/Atom feed decoding and normalization."""

import dataclasses
import threading
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from unittest.mock import Mock, patch

import pytest
import requests

from feed_aggregator.errors import DecodeError, TransportError
from feed_aggregator.models import Post, RawFeed, RawItem
from feed_aggregator.rss import (
    SUMMARY_PLACEHOLDER,
    FeedProcessor,
    decode_feed,
    select_items,
)

RSS_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <pubDate>Mon, 02 Jan 2023 10:00:00 GMT</pubDate>
      <dc:creator>Jane Doe</dc:creator>
      <description>&lt;p&gt;Hello *world*!&lt;/p&gt;</description>
    </item>
    <item>
      <title>Second post</title>
      <link>https://example.com/second</link>
      <pubDate>Sun, 01 Jan 2023 10:00:00 GMT</pubDate>
      <content:encoded><![CDATA[<p>Encoded <em>body</em></p>]]></content:encoded>
    </item>
  </channel>
</rss>"""

ATOM_FEED = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Blog</title>
  <entry>
    <title>Atom post</title>
    <link rel="edit" href="https://example.org/edit/1"/>
    <link rel="alternate" href="https://example.org/atom-post"/>
    <published>2023-06-01T12:00:00Z</published>
    <updated>2023-06-02T12:00:00Z</updated>
    <author><name>Ada</name></author>
    <summary type="html">&lt;b&gt;Bold&lt;/b&gt; claim</summary>
  </entry>
  <entry>
    <title>Bare entry</title>
    <link href="https://example.org/bare"/>
    <updated>2023-05-01T08:00:00+02:00</updated>
  </entry>
</feed>"""

CHANNEL_ENTRIES_FEED = b"""<rss><channel>
  <title>Mixed</title>
  <entry><title>Channel entry</title><updated>2023-03-01</updated></entry>
</channel></rss>"""


class TestDecodeFeedUnit:
    """Unit tests for XML deserialization and item location."""

    def test_rss_items_decoded(self):
        feed = decode_feed(RSS_FEED)

        assert feed.channel_title == "Example Blog"
        assert len(feed.channel_items) == 2
        first = feed.channel_items[0]
        assert first.pub_date == "Mon, 02 Jan 2023 10:00:00 GMT"
        assert first.creator == "Jane Doe"
        assert first.description == "<p>Hello *world*!</p>"
        assert feed.channel_items[1].encoded == "<p>Encoded <em>body</em></p>"

    def test_atom_entries_decoded(self):
        feed = decode_feed(ATOM_FEED)

        assert feed.title == "Atom Blog"
        assert feed.channel_items == []
        assert len(feed.entries) == 2
        entry = feed.entries[0]
        assert entry.link == "https://example.org/atom-post"
        assert entry.author == "Ada"
        assert entry.published == "2023-06-01T12:00:00Z"
        assert entry.updated == "2023-06-02T12:00:00Z"
        assert feed.entries[1].link == "https://example.org/bare"

    def test_channel_entries_decoded(self):
        feed = decode_feed(CHANNEL_ENTRIES_FEED)
        assert [item.title for item in feed.channel_entries] == ["Channel entry"]

    def test_extension_elements_do_not_replace_core_fields(self):
        """media: and itunes: elements are skipped even when they come first."""
        feed = decode_feed(
            b"""<rss version="2.0"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel><title>Podcast</title>
    <item>
      <media:title>Media title</media:title>
      <title>Core title</title>
      <itunes:summary>Itunes summary</itunes:summary>
      <media:description>media text</media:description>
      <description>real</description>
      <itunes:author>Host</itunes:author>
    </item>
  </channel>
</rss>"""
        )

        item = feed.channel_items[0]
        assert item.title == "Core title"
        assert item.description == "real"
        assert item.summary == ""
        assert item.author == ""

    def test_malformed_xml_raises(self):
        with pytest.raises(ET.ParseError):
            decode_feed(b"<rss><channel>")


class TestSelectItemsUnit:
    """Unit tests for the item location priority."""

    def test_channel_items_win(self):
        feed = RawFeed(
            channel_items=[RawItem(title="item")],
            channel_entries=[RawItem(title="channel entry")],
            entries=[RawItem(title="entry")],
        )
        assert [item.title for item in select_items(feed)] == ["item"]

    def test_channel_entries_next(self):
        feed = RawFeed(
            channel_entries=[RawItem(title="channel entry")],
            entries=[RawItem(title="entry")],
        )
        assert [item.title for item in select_items(feed)] == ["channel entry"]

    def test_bare_entries_last(self):
        feed = RawFeed(entries=[RawItem(title="entry")])
        assert [item.title for item in select_items(feed)] == ["entry"]

    def test_empty_feed(self):
        assert select_items(RawFeed()) == []


class TestFeedProcessorUnit:
    """Unit tests for FeedProcessor parsing and retrieval."""

    def _processor(self, session=None):
        return FeedProcessor(session=session or Mock())

    def test_rss_2_0_parsing(self):
        posts = self._processor().parse_feed(RSS_FEED, "https://example.com/feed")

        assert [post.title for post in posts] == ["First post", "Second post"]
        first, second = posts
        assert isinstance(first, Post)
        assert first.link == "https://example.com/first"
        assert first.date == datetime(2023, 1, 2, 10, 0, tzinfo=UTC)
        assert first.author == "Jane Doe"
        assert first.summary == "Hello world"
        assert first.feed_url == "https://example.com/feed"
        assert second.author == "Example Blog"
        assert second.summary == "Encoded body"

    def test_atom_1_0_bare_entries_parsing(self):
        posts = self._processor().parse_feed(ATOM_FEED, "https://example.org/atom")

        assert len(posts) == 2
        atom_post, bare = posts
        assert atom_post.link == "https://example.org/atom-post"
        assert atom_post.author == "Ada"
        assert atom_post.summary == "Bold claim"
        assert atom_post.date == datetime(2023, 6, 1, 12, 0, tzinfo=UTC)
        assert bare.author == "Atom Blog"
        assert bare.summary == SUMMARY_PLACEHOLDER
        assert bare.date == datetime(2023, 5, 1, 6, 0, tzinfo=UTC)

    def test_channel_entries_parsing(self):
        posts = self._processor().parse_feed(CHANNEL_ENTRIES_FEED, "https://m.example")

        assert len(posts) == 1
        assert posts[0].author == "Mixed"
        assert posts[0].date == datetime(2023, 3, 1, tzinfo=UTC)

    def test_title_kept_as_is(self):
        feed = b"<rss><channel><item><title>  Spaced *title*  </title></item></channel></rss>"
        posts = self._processor().parse_feed(feed, "https://example.com/feed")
        assert posts[0].title == "  Spaced *title*  "

    def test_whitespace_only_description_uses_placeholder(self):
        feed = b"<rss><channel><item><description>   </description></item></channel></rss>"
        posts = self._processor().parse_feed(feed, "https://example.com/feed")
        assert posts[0].summary == SUMMARY_PLACEHOLDER

    def test_summary_truncated_to_configured_length(self):
        feed = (
            b"<rss><channel><item><description>"
            + b"word " * 100
            + b"</description></item></channel></rss>"
        )
        processor = FeedProcessor(max_length=20, session=Mock())
        posts = processor.parse_feed(feed, "https://example.com/feed")
        assert posts[0].summary == "word word word word..."

    def test_undated_item_reports_diagnostic_with_url(self):
        feed = b"<rss><channel><item><title>No date</title></item></channel></rss>"
        diagnostics = []

        posts = self._processor().parse_feed(feed, "https://example.com/feed", diagnostics)

        assert len(posts) == 1
        assert posts[0].date.tzinfo is not None
        assert len(diagnostics) == 1
        assert diagnostics[0].url == "https://example.com/feed"
        assert diagnostics[0].item_title == "No date"

    def test_malformed_feed_raises_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            self._processor().parse_feed(b"<rss><channel>", "https://bad.example/feed")

        assert exc_info.value.url == "https://bad.example/feed"
        assert "https://bad.example/feed" in str(exc_info.value)

    def test_empty_body_raises_decode_error(self):
        with pytest.raises(DecodeError):
            self._processor().parse_feed(b"", "https://bad.example/feed")

    def test_posts_are_immutable(self):
        posts = self._processor().parse_feed(RSS_FEED, "https://example.com/feed")
        with pytest.raises(dataclasses.FrozenInstanceError):
            posts[0].summary = "changed"

    def test_fetch_feed_downloads_and_parses(self):
        session = Mock()
        session.get.return_value = Mock(status_code=200, content=RSS_FEED)
        processor = FeedProcessor(timeout=5, session=session)

        posts = processor.fetch_feed("https://example.com/feed")

        session.get.assert_called_once_with("https://example.com/feed", timeout=5)
        assert len(posts) == 2

    def test_user_agent_header_set(self):
        session = Mock()
        session.headers = {}
        FeedProcessor(user_agent="TestAgent/2.0", session=session)
        assert session.headers["User-Agent"] == "TestAgent/2.0"

    def test_network_error_raises_transport_error(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError) as exc_info:
            self._processor(session).fetch_feed("https://down.example/feed")

        assert exc_info.value.url == "https://down.example/feed"
        assert isinstance(exc_info.value.cause, requests.ConnectionError)
        assert "connection refused" in str(exc_info.value)

    def test_http_error_status_raises_transport_error(self):
        response = Mock(status_code=404, content=b"")
        response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        session = Mock()
        session.get.return_value = response

        with pytest.raises(TransportError):
            self._processor(session).fetch_feed("https://example.com/missing")

    def test_unsupported_scheme_rejected_without_request(self):
        session = Mock()

        with pytest.raises(TransportError):
            self._processor(session).fetch_feed("ftp://example.com/feed")

        session.get.assert_not_called()

    def test_normalize_item_direct(self):
        item = RawItem(title="T", link="L", date="2023-06-01", summary="<i>S</i>")
        post = self._processor().normalize_item(item, "Channel", "https://x.example")
        assert post == Post(
            title="T",
            link="L",
            date=datetime(2023, 6, 1, tzinfo=UTC),
            author="Channel",
            summary="S",
            feed_url="https://x.example",
        )

    def test_media_description_before_description_does_not_win(self):
        feed = b"""<rss xmlns:media="http://search.yahoo.com/mrss/"><channel><item>
<media:description>media text</media:description><description>real</description>
</item></channel></rss>"""
        posts = self._processor().parse_feed(feed, "https://example.com/feed")
        assert posts[0].summary == "real"


class TestFeedProcessorSessionsUnit:
    """Unit tests for session ownership across threads."""

    def _session(self):
        session = Mock()
        session.headers = {}
        session.get.return_value = Mock(status_code=200, content=b"<rss><channel/></rss>")
        return session

    def test_each_thread_gets_its_own_session(self):
        with patch("feed_aggregator.rss.requests.Session") as mock_session_class:
            mock_session_class.side_effect = lambda: self._session()
            processor = FeedProcessor(user_agent="TestAgent/2.0")

            used = []

            def fetch():
                processor.fetch_feed("https://example.com/feed")
                used.append(processor._get_session())

            workers = [threading.Thread(target=fetch) for _ in range(2)]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()

        assert mock_session_class.call_count == 2
        assert used[0] is not used[1]
        assert all(s.headers["User-Agent"] == "TestAgent/2.0" for s in used)
        assert all(s.get.call_count == 1 for s in used)

    def test_session_reused_within_a_thread(self):
        with patch("feed_aggregator.rss.requests.Session") as mock_session_class:
            mock_session_class.side_effect = lambda: self._session()
            processor = FeedProcessor()

            processor.fetch_feed("https://example.com/a")
            processor.fetch_feed("https://example.com/b")

        assert mock_session_class.call_count == 1
