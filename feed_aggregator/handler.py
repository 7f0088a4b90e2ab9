"""Entry point that aggregates the configured feeds into one JSON digest."""

import json
import os
from dataclasses import asdict
from datetime import UTC, datetime
from typing import Any

from .aggregator import Aggregator
from .config import Config
from .logging_config import create_execution_logger, setup_structured_logging
from .rss import FeedProcessor

# Setup structured logging
setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))


def handler(event: dict[str, Any] | None = None, context: Any = None) -> dict[str, Any]:
    """
    Aggregate feeds and return the merged posts, newest first.

    Args:
        event: Optional event data; "feeds" overrides the configured feed list
        context: Invocation context object, if any

    Returns:
        Response dictionary with status, posts, metrics and diagnostics
    """
    execution_id = f"run_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start(
        request_id=getattr(context, "aws_request_id", "unknown"),
    )

    metrics = {
        "feeds_requested": 0,
        "feeds_processed": 0,
        "feeds_failed": 0,
        "posts_found": 0,
    }

    try:
        config = Config()
        main_logger.info("Configuration initialized")

        feed_urls = (event or {}).get("feeds") or config.get_feed_urls()
        metrics["feeds_requested"] = len(feed_urls)
        main_logger.info(
            f"Processing {len(feed_urls)} feeds", feed_count=len(feed_urls)
        )

        fetch_config = config.get_fetch_config()
        processor = FeedProcessor(
            timeout=fetch_config.timeout,
            max_length=fetch_config.max_length,
            user_agent=fetch_config.user_agent,
            execution_id=execution_id,
        )
        result = Aggregator(processor, execution_id=execution_id).collect(feed_urls)

        metrics["feeds_processed"] = result.feeds_processed
        metrics["feeds_failed"] = result.feeds_failed
        metrics["posts_found"] = len(result.posts)
        main_logger.log_metrics(metrics)
        main_logger.log_execution_end(success=True, metrics=metrics)

        return {
            "statusCode": 200,
            "body": json.dumps(
                {
                    "message": "Feed aggregation completed",
                    "execution_id": execution_id,
                    "metrics": metrics,
                    "posts": [post.to_dict() for post in result.posts],
                    "diagnostics": [asdict(d) for d in result.diagnostics],
                },
                ensure_ascii=False,
            ),
        }

    except Exception as e:
        error_msg = f"Critical error in feed aggregation: {str(e)}"
        main_logger.error(error_msg, error=str(e))
        main_logger.log_execution_end(success=False, metrics=metrics, error=error_msg)

        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "message": "Feed aggregation failed",
                    "execution_id": execution_id,
                    "error": error_msg,
                    "metrics": metrics,
                }
            ),
        }
