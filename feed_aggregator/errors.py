"""Feed-level errors.

Field-level problems never raise: every post field has a fallback.
"""


class FeedError(Exception):
    """A single feed could not be turned into posts."""

    action = "processing feed"

    def __init__(self, url: str, cause: Exception | str):
        self.url = url
        self.cause = cause
        super().__init__(f"{self.action} {url}: {cause}")


class TransportError(FeedError):
    """Retrieving the feed bytes failed (network or HTTP status)."""

    action = "fetching feed"


class DecodeError(FeedError):
    """The feed bytes are not well-formed XML."""

    action = "parsing feed"
