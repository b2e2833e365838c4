"""Exception hierarchy for the Nakka ingestion pipeline.

Exception tree:
    NakkaError
    +-- NakkaTimeout           (page did not render in time; retriable)
    +-- NakkaParseError        (page structure changed; never retried)
        +-- InvalidIdentifierError  (link or canonical id cannot be parsed)
"""

from typing import Optional


class NakkaError(Exception):
    """Base exception for all Nakka scraping errors."""

    def __init__(self, message: str, *, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class NakkaTimeout(NakkaError):
    """A page or element did not become ready within its timeout.

    This is a retriable error when raised from a statistics scrape.
    """

    pass


class NakkaParseError(NakkaError):
    """A required element or nested frame was missing from a loaded page.

    Do NOT retry these -- the page layout is not what the scraper expects.
    """

    pass


class InvalidIdentifierError(NakkaParseError):
    """A tournament link or canonical match id does not have the expected shape."""

    pass
