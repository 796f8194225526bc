"""Client-visible gateway errors."""

from typing import Any


class GatewayError(Exception):
    """An error that maps directly onto an HTTP response."""

    status = 500

    def __init__(self, message: str, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self._body = body

    def to_body(self) -> Any:
        return self._body if self._body is not None else {"error": self.message}


class ConfigurationError(GatewayError):
    """The server is missing a required credential."""

    status = 500


class ValidationError(GatewayError):
    """The inbound payload is malformed."""

    status = 400


class UpstreamError(GatewayError):
    """The completion API answered with a non-2xx status or an unusable body."""

    def __init__(self, status: int, message: str, body: Any = None) -> None:
        super().__init__(message, body)
        self.status = status
