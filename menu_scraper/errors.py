"""Fetch failures raised by the static and rendered fetchers."""


class FetchError(Exception):
    """A page could not be fetched (unclassified failure)."""

    pass


class FetchTimeoutError(FetchError):
    """The request did not complete within its timeout."""

    pass


class FetchNetworkError(FetchError):
    """The connection to the server could not be established."""

    pass


class FetchHTTPError(FetchError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, message: str = "") -> None:
        self.status = status
        super().__init__(message or f"HTTP {status}")
