class FilterFlowError(Exception):
    """Base class for every error the agent classifies and contains."""


class ConfigError(FilterFlowError):
    """Raised when the configuration file is missing, unreadable or invalid."""


class ProxyConstructionError(FilterFlowError):
    """Raised when the configured proxy cannot be applied to the HTTP client."""


class SourceFetchError(FilterFlowError):
    """Raised when a feed or sitemap cannot be downloaded."""

    def __init__(self, url: str, message: str, status: int | None = None, body: str | None = None):
        self.url = url
        self.status = status
        self.body = body
        detail = f"{message} ({url})"
        if status is not None:
            detail += f" status={status}"
        if body:
            detail += f" body={body[:200]!r}"
        super().__init__(detail)


class ParseError(FilterFlowError):
    """Raised when a feed or sitemap document is malformed."""


class OracleProtocolError(FilterFlowError):
    """Raised on a non-2xx status or an unreadable body from the inference endpoint."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        self.status = status
        self.body = body
        detail = message
        if status is not None:
            detail += f" status={status}"
        if body:
            detail += f" body={body[:200]!r}"
        super().__init__(detail)


class OracleFormatError(FilterFlowError):
    """The classifier answered something other than '1' or '0'."""


class StoreReadError(FilterFlowError):
    """Raised when a membership check against the dedup store fails."""


class StoreWriteError(FilterFlowError):
    """Raised internally when recording an outcome fails; never escapes the store."""
