"""MSYNC — Google Sheets API Client.

Thin async wrapper over the Sheets v4 REST API. Handles authentication and
error classification; retrying is the caller's job (see app.core.retry).
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest

from app.config import settings
from app.core.errors import SheetsAPIError, TransientError
from app.core.logging import get_logger
from app.models.sync_models import WriteMode

logger = get_logger("sheets.client")

TokenProvider = Callable[[], Awaitable[str]]


def credentials_token_provider(credentials: Any) -> TokenProvider:
    """Bearer tokens from google-auth credentials, refreshed when stale."""
    lock = asyncio.Lock()

    async def provide() -> str:
        async with lock:
            if not credentials.valid:
                await asyncio.to_thread(credentials.refresh, GoogleAuthRequest())
            return credentials.token

    return provide


def _error_message(resp: httpx.Response) -> str:
    """Google's error.message when the body carries one, else the reason phrase."""
    if not resp.headers.get("content-type", "").startswith("application/json"):
        return resp.reason_phrase
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return resp.reason_phrase


class SheetsClient:
    """Async HTTP client for the Google Sheets API."""

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token_provider = token_provider
        self.base_url = (base_url or settings.sheets_base_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """One request; raises TransientError or SheetsAPIError on failure."""
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {await self._token_provider()}"}
        url = f"{self.base_url}/{path}"

        try:
            resp = await client.request(method, url, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientError(f"Sheets request timed out: {method} {path}") from e
        except httpx.RequestError as e:
            raise TransientError(f"Sheets connection failed: {e}") from e

        if resp.is_error:
            message = _error_message(resp)
            logger.warning(
                f"Sheets API {resp.status_code} on {method} {path}: {message}",
                extra={"status_code": resp.status_code},
            )
            raise SheetsAPIError(message, resp.status_code)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise TransientError(f"Sheets returned a malformed body for {method} {path}") from e

    @staticmethod
    def _range_path(spreadsheet_id: str, a1_range: str, suffix: str = "") -> str:
        return f"{spreadsheet_id}/values/{quote(a1_range, safe='')}{suffix}"

    # ── Values ──

    async def get_values(self, spreadsheet_id: str, a1_range: str) -> List[List[Any]]:
        """Cell values for a range; trailing empty rows/cells are omitted."""
        result = await self._request("GET", self._range_path(spreadsheet_id, a1_range))
        return result.get("values", [])

    async def update_values(
        self,
        spreadsheet_id: str,
        a1_range: str,
        rows: List[List[Any]],
        mode: WriteMode = WriteMode.RAW,
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            self._range_path(spreadsheet_id, a1_range),
            params={"valueInputOption": mode.value},
            json={"range": a1_range, "majorDimension": "ROWS", "values": rows},
        )

    async def append_values(
        self,
        spreadsheet_id: str,
        a1_range: str,
        rows: List[List[Any]],
        mode: WriteMode = WriteMode.RAW,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self._range_path(spreadsheet_id, a1_range, ":append"),
            params={"valueInputOption": mode.value, "insertDataOption": "INSERT_ROWS"},
            json={"majorDimension": "ROWS", "values": rows},
        )

    async def clear_values(self, spreadsheet_id: str, a1_range: str) -> Dict[str, Any]:
        return await self._request(
            "POST", self._range_path(spreadsheet_id, a1_range, ":clear"), json={}
        )

    # ── Spreadsheet ──

    async def get_spreadsheet(self, spreadsheet_id: str) -> Dict[str, Any]:
        """Spreadsheet metadata limited to sheet properties."""
        return await self._request(
            "GET", spreadsheet_id, params={"fields": "sheets.properties"}
        )

    async def batch_update(
        self, spreadsheet_id: str, requests: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        return await self._request(
            "POST", f"{spreadsheet_id}:batchUpdate", json={"requests": requests}
        )
