"""Thin REST clients for the approval sheet and the origin folder.

Both use API-key auth against the public Google endpoints and share one
``httpx.AsyncClient``. Every failure is raised as ``UpstreamUnavailable`` with
the provider's status and message attached for logging.
"""
from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .errors import UpstreamUnavailable


logger = logging.getLogger(__name__)

SHEETS_API_BASE = "https://sheets.googleapis.com/v4"
DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"


def _provider_message(response: httpx.Response) -> str:
    # Google wraps errors as {"error": {"code": ..., "message": ...}}.
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return response.text[:200]


async def _get(http: httpx.AsyncClient, service: str, url: str, params: dict[str, str]) -> httpx.Response:
    try:
        response = await http.get(url, params=params)
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(service, detail=f"{type(exc).__name__}: {exc}") from exc
    if response.status_code >= 400:
        raise UpstreamUnavailable(service, status=response.status_code, detail=_provider_message(response))
    return response


def escape_drive_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive ``q`` expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class SheetsClient:
    """Reads cell values from a spreadsheet range."""

    service = "sheets"

    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str = SHEETS_API_BASE) -> None:
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def get_values(self, spreadsheet_id: str, a1_range: str) -> list[list[str]]:
        url = f"{self._base_url}/spreadsheets/{quote(spreadsheet_id, safe='')}/values/{quote(a1_range, safe='')}"
        response = await _get(self._http, self.service, url, {"key": self._api_key})
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(self.service, status=response.status_code, detail="Response is not JSON") from exc
        # An empty range has no "values" key at all.
        rows = body.get("values") or []
        return [[str(cell) for cell in row] for row in rows]


class DriveClient:
    """Finds and downloads files inside a folder."""

    service = "drive"

    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str = DRIVE_API_BASE) -> None:
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def list_files(self, name: str, folder_id: str) -> list[dict[str, Any]]:
        q = (
            f"name='{escape_drive_query_value(name)}' "
            f"and '{escape_drive_query_value(folder_id)}' in parents and trashed=false"
        )
        params = {
            "q": q,
            "fields": "files(id, name)",
            "spaces": "drive",
            "key": self._api_key,
        }
        response = await _get(self._http, self.service, f"{self._base_url}/files", params)
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(self.service, status=response.status_code, detail="Response is not JSON") from exc
        files = body.get("files") or []
        return [f for f in files if isinstance(f, dict) and f.get("id")]

    async def download(self, file_id: str) -> bytes:
        url = f"{self._base_url}/files/{quote(file_id, safe='')}"
        response = await _get(self._http, self.service, url, {"alt": "media", "key": self._api_key})
        return response.content


def build_http_client(timeout_seconds: Optional[float] = 30.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)
