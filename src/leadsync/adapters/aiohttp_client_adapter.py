# leadsync/adapters/aiohttp_client_adapter.py
import asyncio
import aiohttp
from typing import Any, Dict, Optional, Tuple

from leadsync.core.config import HttpClientConfig
from leadsync.core.exceptions import ApiError
from leadsync.core.interfaces.http_client import HttpClientPort
from leadsync.core.interfaces.token_store import TokenStorePort
from leadsync.adapters.token_store_inmemory import InMemoryTokenStore
from leadsync.core.settings import logger


class AioHttpClientAdapter(HttpClientPort):
    """REST boundary client.

    Attaches the bearer token from the token store and, on a 401, renews it
    once through the refresh endpoint before retrying the original request.
    Every failure surfaces as ApiError.
    """

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        token_store: TokenStorePort | None = None,
    ):
        self.config = config or HttpClientConfig()
        self._tokens = token_store or InMemoryTokenStore()
        self._session: Optional[aiohttp.ClientSession] = None
        # Per-request timeout used when callers do not pass one
        self._default_client_timeout = aiohttp.ClientTimeout(total=self.config.timeout)

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    @property
    def token_store(self) -> TokenStorePort:
        return self._tokens

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return self.config.base_url.rstrip("/") + "/" + path.lstrip("/")

    def _timeout(self, timeout: float | None) -> aiohttp.ClientTimeout:
        if timeout is None:
            return self._default_client_timeout
        return aiohttp.ClientTimeout(total=timeout)

    def _headers(self, skip_auth: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._tokens.get()
        if token and not skip_auth:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def get(self, path: str, params: Dict[str, Any] | None = None, timeout: float | None = None) -> Any:
        return await self._request("GET", path, params=params, timeout=timeout)

    async def post(self, path: str, json: Dict[str, Any] | None = None, timeout: float | None = None, skip_auth: bool = False) -> Any:
        return await self._request("POST", path, json=json, timeout=timeout, skip_auth=skip_auth)

    async def _request(
        self,
        method: str,
        path: str,
        json: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
        timeout: float | None = None,
        skip_auth: bool = False,
    ) -> Any:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        url = self._url(path)
        headers = self._headers(skip_auth)
        client_timeout = self._timeout(timeout)

        try:
            status, reason, body = await self._send(method, url, headers, json, params, client_timeout)

            # Expired access token: renew once and replay the request
            if status == 401 and not skip_auth:
                new_token = await self._refresh_access_token()
                if new_token:
                    logger.debug(f"[http:auth] token refreshed; retrying {method} {url}")
                    headers = {**headers, "Authorization": f"Bearer {new_token}"}
                    status, reason, body = await self._send(method, url, headers, json, params, client_timeout)

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting REST API. URL: %s", url)
            raise ApiError(504, "Upstream Timeout")

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting REST API. URL: %s, Error: %s",
                url,
                str(client_error),
            )
            raise ApiError(502, "Upstream Connection Error", {"message": str(client_error)})

        if status >= 400:
            self._log_http_error(status, url)
            raise ApiError(status, reason, body if not isinstance(body, _InvalidJson) else None)

        if status == 204:
            return None

        if isinstance(body, _InvalidJson):
            logger.error(
                "Invalid JSON response from REST API. URL: %s, Content: %s",
                url,
                body.text[:500],
            )
            raise ApiError(502, "Invalid Response Content", {"message": body.text[:100]})

        return body

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Dict[str, Any] | None,
        params: Dict[str, Any] | None,
        timeout: aiohttp.ClientTimeout,
    ) -> Tuple[int, str, Any]:
        async with self._session.request(
            method, url, json=json, params=params, headers=headers, timeout=timeout
        ) as response:
            if response.status == 204:
                return response.status, response.reason or "", None
            try:
                body = await response.json()
            except (aiohttp.ContentTypeError, ValueError):
                # Wrong content type or an undecodable body
                body = _InvalidJson(await response.text())
            return response.status, response.reason or "", body

    async def _refresh_access_token(self) -> Optional[str]:
        """POST the refresh endpoint; a failed refresh leaves the 401 in place."""
        url = self._url(self.config.refresh_path)
        try:
            status, _, body = await self._send(
                "POST", url, {"Content-Type": "application/json"}, None, None,
                self._default_client_timeout,
            )
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            logger.warning(f"[http:auth] token refresh failed err={exc!r}")
            return None

        if status >= 400 or not isinstance(body, dict) or not body.get("accessToken"):
            logger.warning(f"[http:auth] token refresh rejected status={status}")
            return None

        self._tokens.set(body["accessToken"])
        return body["accessToken"]

    def _log_http_error(self, status: int, url: str) -> None:
        if status == 401:
            logger.warning("Unauthorized - please log in. URL: %s", url)
        elif status == 403:
            logger.warning("Forbidden - insufficient permissions. URL: %s", url)
        elif status == 404:
            logger.warning("Resource not found. URL: %s", url)
        elif status >= 500:
            logger.error("Server error. URL: %s, Status: %s", url, status)
        else:
            logger.warning("HTTP error. URL: %s, Status: %s", url, status)

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


class _InvalidJson:
    """Marker for a response body that could not be parsed as JSON."""

    def __init__(self, text: str):
        self.text = text
