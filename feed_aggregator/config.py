"""Configuration management for the feed aggregator."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .rss import DEFAULT_USER_AGENT
from .sanitize import DEFAULT_MAX_LENGTH


@dataclass
class FetchConfig:
    """Configuration for feed retrieval and normalization."""

    timeout: float = 30
    max_length: int = DEFAULT_MAX_LENGTH
    user_agent: str = DEFAULT_USER_AGENT


class Config:
    """Main configuration manager."""

    # Default feeds file path
    FEEDS_FILE = "feeds.json"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.feeds_file = os.getenv("FEEDS_FILE", self.FEEDS_FILE)
        self.timeout = float(os.getenv("FEED_TIMEOUT", "30"))
        self.max_length = int(os.getenv("SUMMARY_MAX_LENGTH", str(DEFAULT_MAX_LENGTH)))
        self.user_agent = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)

    def get_feed_urls(self) -> list[str]:
        """Get feed URLs from the feeds file."""
        feeds_file = Path(self.feeds_file)
        if not feeds_file.exists():
            raise FileNotFoundError(f"Feeds file not found: {self.feeds_file}")

        try:
            with open(feeds_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in feeds file: {e}") from e

        feeds = data.get("feeds", []) if isinstance(data, dict) else []
        enabled_urls = [
            feed["url"]
            for feed in feeds
            if isinstance(feed, dict) and feed.get("enabled", True) and "url" in feed
        ]

        if not enabled_urls:
            raise ValueError(f"No enabled feeds found in {self.feeds_file}")

        return enabled_urls

    def get_fetch_config(self) -> FetchConfig:
        """Get feed retrieval configuration."""
        return FetchConfig(
            timeout=self.timeout,
            max_length=self.max_length,
            user_agent=self.user_agent,
        )
