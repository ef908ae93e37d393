"""Async HTTP client for the remote settings store and identity endpoint."""
from typing import Any, Dict, Optional

import httpx

from . import config


class RemoteSettingsError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class SettingsApiClient:
    """Client for ``/api/user/settings`` and ``/api/auth/me``.

    Reads configuration from environment variables by default:
    - DAYSTART_API_URL: base URL, defaults to http://127.0.0.1:8000
    - DAYSTART_API_TOKEN: bearer token of the signed-in user
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        request_timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url: str = (base_url or config.api_base_url()).rstrip("/")
        self.request_timeout_seconds = request_timeout_seconds

        headers = {"Accept": "application/json"}
        configured_token = token or config.api_token()
        if configured_token:
            headers["Authorization"] = f"Bearer {configured_token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "SettingsApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json_body)
        except httpx.HTTPError as error:
            raise RemoteSettingsError(f"{method} {path} failed: {error}") from error

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            # Surface the server's error detail to the caller
            try:
                details = response.json()
            except ValueError:
                details = response.text
            raise RemoteSettingsError(
                f"{error} - {details}", status_code=response.status_code, detail=details
            ) from error

        try:
            return response.json()
        except ValueError as error:
            raise RemoteSettingsError(f"{method} {path} returned a non-JSON body") from error

    async def fetch_day_start_time(self) -> Optional[str]:
        data = await self._request("GET", "/api/user/settings")
        if not isinstance(data, dict):
            return None
        return data.get("dayStartTime") or None

    async def push_day_start_time(self, value: str) -> str:
        data = await self._request("PUT", "/api/user/settings", {"dayStartTime": value})
        return data.get("dayStartTime", value) if isinstance(data, dict) else value

    async def fetch_current_user(self) -> Optional[Dict[str, Any]]:
        """Return the signed-in user, or None when the token is missing or rejected."""
        try:
            return await self._request("GET", "/api/auth/me")
        except RemoteSettingsError as error:
            if error.status_code in (401, 403):
                return None
            raise
