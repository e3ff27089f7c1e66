from typing import Any, Optional


class ApiError(Exception):
    """Raised by the HTTP port for any failed REST call.

    Covers non-2xx responses as well as timeouts (504) and connection
    failures (502), so callers deal with a single exception type.

    Attributes:
        status: HTTP status code (or the synthesized gateway code)
        status_text: Reason phrase or short title
        data: Parsed error body if the server sent one
    """
    def __init__(self, status: int, status_text: str, data: Optional[Any] = None):
        self.status = status
        self.status_text = status_text
        self.data = data
        super().__init__(f"API Error: {status} {status_text}")

    @property
    def message(self) -> str:
        """Server-supplied message if present, otherwise the status line."""
        if isinstance(self.data, dict) and self.data.get("message"):
            message = self.data["message"]
            return ", ".join(message) if isinstance(message, list) else str(message)
        return str(self)


class ChannelNotProvidedError(RuntimeError):
    """Raised when channel helpers are used outside a `provide_channel` scope."""
