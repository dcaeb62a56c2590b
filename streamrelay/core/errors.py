from typing import Optional


class StreamRelayError(Exception):
    pass


class UpstreamFetchError(StreamRelayError):
    """Third-party origin failed or answered with a non-success status."""

    def __init__(self, status_code: int, message: str, url: Optional[str] = None) -> None:
        """
        Initialize the error with the status code to surface to the caller.

        Parameters:
            status_code (int): Upstream HTTP status, or 502 for transport failures.
            message (str): Human-readable reason returned as the plain-text body.
            url (Optional[str]): Upstream URL that failed, kept for logging only.
        """
        self.status_code = status_code
        self.message = message
        self.url = url
        super().__init__(f"{status_code}: {message}")


class CacheUnavailableError(StreamRelayError):
    """Cache store read or write failed. Always recovered locally."""


class ProbeFailure(StreamRelayError):
    """A single candidate could not be measured."""


class NoCandidatesError(StreamRelayError):
    """Selection was requested over an empty candidate list."""


class MalformedInputError(StreamRelayError):
    """Required request fields are missing or invalid."""
