"""
Commerce API Client Manager.
Provides an async httpx client for the remote commerce backend with bearer-token
authentication and unwrapping of the backend's {success, message, data} envelope.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from config import settings
from core.data import RemoteCallError

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


class CommerceApiClient:
    """
    Thin authenticated wrapper around a shared httpx.AsyncClient.

    One instance is created per caller token; the underlying connection pool
    is shared through the client manager.
    """

    def __init__(self, http: httpx.AsyncClient, token: str = ""):
        self._http = http
        self._token = token

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if idempotency_key:
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        return headers

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        fallback_error: str = "Request failed",
    ) -> Any:
        """
        Issue one request and return the envelope's `data`.

        Args:
            method: HTTP method
            path: Path relative to the configured API root
            json: Optional JSON body
            params: Optional query parameters
            idempotency_key: Sent as the Idempotency-Key header when given
            fallback_error: Message used when the backend supplies none

        Returns:
            The `data` member of the envelope (or the raw body if it has none)

        Raises:
            RemoteCallError: On transport failure, HTTP error status or `success: false`
        """
        try:
            response = await self._http.request(
                method,
                path.lstrip("/"),
                json=json,
                params=params,
                headers=self._headers(idempotency_key),
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed before a response: {e}")
            raise RemoteCallError(fallback_error) from e

        body = _decode(response)

        if response.is_error:
            message = _message(body) or fallback_error
            logger.error(f"{method} {path} -> {response.status_code}: {message}")
            raise RemoteCallError(message, status_code=response.status_code, payload=body)

        if isinstance(body, dict) and body.get("success") is False:
            message = _message(body) or fallback_error
            logger.error(f"{method} {path} rejected: {message}")
            raise RemoteCallError(message, status_code=response.status_code, payload=body)

        logger.debug(f"{method} {path} -> {response.status_code}")
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


class CommerceClientManager:
    """
    Singleton manager for the shared httpx.AsyncClient.
    Hands out CommerceApiClient wrappers bound to a caller's bearer token.
    """

    _instance = None
    _http: Optional[httpx.AsyncClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_http(self) -> httpx.AsyncClient:
        """Get or create the shared httpx.AsyncClient."""
        if self._http is None:
            base_url = settings.commerce_api_url.rstrip("/") + "/"
            logger.info(f"Initializing commerce API client: {base_url}")
            self._http = httpx.AsyncClient(
                base_url=base_url,
                timeout=httpx.Timeout(settings.commerce_api_timeout),
            )
        return self._http

    def for_token(self, token: Optional[str] = None) -> CommerceApiClient:
        """Return a client authenticated with the given token (or the configured fallback)."""
        return CommerceApiClient(self.get_http(), token or settings.commerce_api_token)

    async def close(self):
        """Close the client connection."""
        if self._http:
            await self._http.aclose()
            self._http = None


# Global client manager instance
client_manager = CommerceClientManager()
