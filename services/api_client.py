"""Supabase PostgREST client used to replay queued mutations."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.settings import BACKEND, BackendSettings


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Structured failure of a backend request."""

    def __init__(self, code: str, message: str, status: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.data = data

    @property
    def retryable(self) -> bool:
        if self.code == "NETWORK_ERROR":
            return True
        if self.status is None:
            return False
        return self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        if self.status:
            return f"{self.code} ({self.status}): {self.message}"
        return f"{self.code}: {self.message}"


def error_from_response(response: httpx.Response) -> ApiError:
    status = response.status_code
    if status == 401:
        code, message = "UNAUTHORIZED", "Authentication required"
    elif status == 403:
        code, message = "FORBIDDEN", "Access denied"
    elif status == 404:
        code, message = "NOT_FOUND", "Resource not found"
    elif status == 429:
        code, message = "RATE_LIMIT", "Rate limit exceeded"
    elif status >= 500:
        code, message = "SERVER_ERROR", "Server error occurred"
    else:
        code, message = "API_ERROR", "An API error occurred"

    try:
        data = response.json()
    except ValueError:
        data = response.text
    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or message
    return ApiError(code, str(message), status, data)


class SupabaseRestClient:
    """Thin wrapper translating create/update/delete calls into PostgREST requests."""

    def __init__(
        self,
        settings: BackendSettings = BACKEND,
        *,
        access_token: Optional[Callable[[], Optional[str]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = settings.rest_url
        self.api_key = settings.anon_key
        self.timeout = settings.timeout_sec
        self.retry_attempts = max(1, settings.retry_attempts)
        self._access_token = access_token
        self._transport = transport
        self._sleep = sleep

    def _get_headers(self) -> dict:
        token = (self._access_token() if self._access_token else None) or self.api_key
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _request(
        self,
        method: str,
        resource: str,
        *,
        params: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> Any:
        url = f"{self.base_url}/{resource.strip('/')}"
        logger.info("%s %s", method, url)
        attempt = 0
        last_error: Optional[ApiError] = None

        while attempt < self.retry_attempts:
            attempt += 1
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.request(
                        method,
                        url,
                        headers=self._get_headers(),
                        params=params,
                        json=body,
                        timeout=self.timeout,
                    )
            except httpx.RequestError as exc:
                last_error = ApiError("NETWORK_ERROR", str(exc) or type(exc).__name__)
            else:
                if response.is_success:
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError:
                        return response.text
                last_error = error_from_response(response)

            if not last_error.retryable:
                raise last_error
            if attempt < self.retry_attempts:
                delay = min(2 ** attempt, 10)
                logger.warning("%s %s failed (%s), retrying in %ss", method, url, last_error, delay)
                await self._sleep(delay)

        logger.error("%s %s failed after %d attempts", method, url, attempt)
        raise last_error  # type: ignore[misc]

    async def get(self, resource: str, params: Optional[Dict[str, str]] = None) -> Any:
        return await self._request("GET", resource, params=params)

    async def create(self, resource: str, body: Dict[str, Any]) -> Any:
        return await self._request("POST", resource, body=body)

    async def update(self, resource: str, record_id: Any, body: Dict[str, Any]) -> Any:
        return await self._request("PATCH", resource, params={"id": f"eq.{record_id}"}, body=body)

    async def delete(self, resource: str, record_id: Any) -> Any:
        return await self._request("DELETE", resource, params={"id": f"eq.{record_id}"})


__all__ = ["ApiError", "SupabaseRestClient", "error_from_response"]
