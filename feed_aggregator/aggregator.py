"""Concurrent retrieval of many feeds merged into one newest-first list."""

import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .logging_config import create_execution_logger
from .models import Diagnostic, FeedBatch, Post
from .rss import FeedProcessor


@dataclass
class AggregateResult:
    """Merged posts plus everything that went wrong along the way."""

    posts: list[Post] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    feeds_processed: int = 0
    feeds_failed: int = 0


class Aggregator:
    """Fans feed retrieval out over threads and merges the results."""

    def __init__(
        self,
        processor: FeedProcessor | None = None,
        execution_id: str | None = None,
    ):
        """Initialize the aggregator.

        Args:
            processor: Feed processor shared by every task
            execution_id: Execution ID for logging context
        """
        self.logger = create_execution_logger("aggregator", execution_id)
        self.processor = processor or FeedProcessor(
            execution_id=self.logger.execution_id
        )

    def fetch_all(self, feed_urls: list[str]) -> list[Post]:
        """Fetch every feed and return all posts, newest first.

        Never raises; failed feeds contribute nothing.
        """
        return self.collect(feed_urls).posts

    def collect(self, feed_urls: list[str]) -> AggregateResult:
        """Fetch every feed concurrently and merge the batches.

        One task per URL, all started at once. Each task sends exactly one
        FeedBatch to the outbox; the outbox is drained only after every task
        has finished.

        Args:
            feed_urls: RSS/Atom feed URLs

        Returns:
            AggregateResult with posts sorted by date, newest first
        """
        self.logger.log_execution_start(feed_count=len(feed_urls))
        if not feed_urls:
            self.logger.log_execution_end(success=True, total_posts=0)
            return AggregateResult()

        outbox: queue.Queue[FeedBatch] = queue.Queue()
        with ThreadPoolExecutor(
            max_workers=len(feed_urls), thread_name_prefix="feed"
        ) as executor:
            for feed_url in feed_urls:
                executor.submit(self._fetch_one, feed_url, outbox)

        result = AggregateResult()
        while not outbox.empty():
            batch = outbox.get_nowait()
            result.posts.extend(batch.posts)
            result.diagnostics.extend(batch.diagnostics)
            if batch.ok:
                result.feeds_processed += 1
            else:
                result.feeds_failed += 1

        # list.sort is stable, so equal dates keep their merge order
        result.posts.sort(key=lambda post: post.date, reverse=True)

        self.logger.log_execution_end(
            success=result.feeds_failed == 0,
            total_posts=len(result.posts),
            feeds_processed=result.feeds_processed,
            feeds_failed=result.feeds_failed,
        )
        return result

    def _fetch_one(self, feed_url: str, outbox: queue.Queue) -> None:
        diagnostics: list[Diagnostic] = []
        try:
            posts = self.processor.fetch_feed(feed_url, diagnostics)
        except Exception as e:
            self.logger.log_feed_failure(feed_url, e)
            diagnostics.append(
                Diagnostic(
                    component="aggregator",
                    message=f"Failed to fetch feed {feed_url}",
                    url=feed_url,
                    error=str(e),
                )
            )
            outbox.put(FeedBatch(feed_url, diagnostics=tuple(diagnostics), error=e))
            return

        self.logger.log_feed_processing(feed_url, len(posts))
        outbox.put(FeedBatch(feed_url, tuple(posts), tuple(diagnostics)))
