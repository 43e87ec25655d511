"""One-way push of record changes to the external spreadsheet mirror.

The spreadsheet itself is maintained by a backend function that owns the
service-account credentials and the per-table column layout.  This module
only forwards ``{action, table, data, recordId}`` to that function.  Until
``configure_sheets_client`` is called a no-op client is installed, so local
runs and tests never leave the process.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

SYNC_ACTIONS = frozenset({"insert", "update", "delete"})


@dataclass(slots=True)
class SyncResult:
    """Outcome of a single push."""

    success: bool
    error: str | None = None
    message: str | None = None
    skipped: bool = False


class SheetsSyncClient(Protocol):
    """Contract for spreadsheet mirror integrations."""

    def push(
        self,
        action: str,
        table: str,
        data: dict[str, Any] | None = None,
        record_id: str | None = None,
    ) -> SyncResult:
        """Forward one record change to the mirror."""


class NoOpSheetsSyncClient:
    """Fallback client used when no mirror is configured."""

    def push(
        self,
        action: str,
        table: str,
        data: dict[str, Any] | None = None,
        record_id: str | None = None,
    ) -> SyncResult:
        return SyncResult(success=False, error="spreadsheet sync not configured", skipped=True)


class HttpSheetsSyncClient:
    """Client for the ``sync-google-sheets`` backend function."""

    def __init__(
        self,
        function_url: str,
        access_token: str | None,
        *,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not function_url.startswith(("http://", "https://")):
            raise ValueError("function_url must include scheme and host")
        self._function_url = function_url
        self._access_token = access_token
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    @staticmethod
    def _json_sanitise(value: Any) -> Any:
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, list):
            return [HttpSheetsSyncClient._json_sanitise(item) for item in value]
        if isinstance(value, dict):
            return {key: HttpSheetsSyncClient._json_sanitise(val) for key, val in value.items()}
        return value

    def push(
        self,
        action: str,
        table: str,
        data: dict[str, Any] | None = None,
        record_id: str | None = None,
    ) -> SyncResult:
        if action not in SYNC_ACTIONS:
            raise ValueError(f"unsupported sync action: {action}")
        if not self._access_token:
            logger.warning("No access token configured, skipping spreadsheet sync for %s", table)
            return SyncResult(success=False, error="No auth session")

        body = {
            "action": action,
            "table": table,
            "data": self._json_sanitise(data),
            "recordId": record_id,
        }
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            response = self._client.post(self._function_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Spreadsheet sync request failed for %s/%s: %s", table, record_id, exc)
            return SyncResult(success=False, error=str(exc))

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if not response.is_success:
            error = str(payload.get("error") or f"HTTP {response.status_code}")
            logger.error("Spreadsheet sync failed for %s/%s: %s", table, record_id, error)
            return SyncResult(success=False, error=error)

        logger.info("Spreadsheet sync %s for %s/%s succeeded", action, table, record_id)
        return SyncResult(success=True, message=payload.get("message"))

    def close(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            self._client.close()


_client: SheetsSyncClient = NoOpSheetsSyncClient()


def configure_sheets_client(client: SheetsSyncClient) -> None:
    """Install the client used to mirror record changes."""

    global _client
    _client = client


def get_sheets_client() -> SheetsSyncClient:
    """Return the currently configured mirror client."""

    return _client


__all__ = [
    "HttpSheetsSyncClient",
    "NoOpSheetsSyncClient",
    "SheetsSyncClient",
    "SyncResult",
    "configure_sheets_client",
    "get_sheets_client",
]
