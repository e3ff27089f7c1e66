# leadsync/core/interfaces/http_client.py
from abc import ABC, abstractmethod
from typing import Any, Dict

class HttpClientPort(ABC):
    @abstractmethod
    async def __aenter__(self) -> "HttpClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def get(self, path: str, params: Dict[str, Any] | None = None, timeout: float | None = None) -> Any:
        """Make a GET request against the REST boundary and return parsed JSON.

        Raises ApiError for non-2xx responses, timeouts and connection errors.
        """
        pass

    @abstractmethod
    async def post(self, path: str, json: Dict[str, Any] | None = None, timeout: float | None = None, skip_auth: bool = False) -> Any:
        """Make a POST request and return parsed JSON (None for 204).

        Raises ApiError exactly like `get`.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
