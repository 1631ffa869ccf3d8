from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

import httpx

from budget_ledger.parsers.sheet_rows import SheetCell, rows_from_gviz, unwrap_gviz_payload
from budget_ledger.sources.base import SourceUnavailableError
from budget_ledger.sources.http_client import ResilientHttpClient

logger = logging.getLogger(__name__)

GVIZ_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/gviz/tq?tqx=out:json&sheet={sheet}&range={range}"
DEFAULT_SHEET_RANGE = "A2:Z2000"
SOURCE_NAME = "google_sheets"


class GoogleSheetSource:
    """Reads the master spreadsheet through its public gviz JSON endpoint."""

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        *,
        sheet_range: str = DEFAULT_SHEET_RANGE,
        http_client: Optional[ResilientHttpClient] = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.sheet_range = sheet_range
        self._http = http_client or ResilientHttpClient()

    @property
    def url(self) -> str:
        return GVIZ_URL_TEMPLATE.format(
            spreadsheet_id=self.spreadsheet_id,
            sheet=quote(self.sheet_name),
            range=self.sheet_range,
        )

    async def fetch_rows(self, request_id: Optional[str] = None) -> List[List[SheetCell]]:
        try:
            response, _ = await self._http.get(self.url, request_id=request_id)
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(SOURCE_NAME, f"request failed ({type(exc).__name__})") from exc

        try:
            payload = unwrap_gviz_payload(response.text)
        except ValueError as exc:
            raise SourceUnavailableError(SOURCE_NAME, f"undecodable response: {exc}") from exc

        if payload.get("status") == "error":
            reasons = [error.get("reason", "unknown") for error in payload.get("errors") or [] if isinstance(error, dict)]
            raise SourceUnavailableError(SOURCE_NAME, f"query error: {', '.join(reasons) or 'unknown'}")

        rows = rows_from_gviz(payload)
        logger.info({"event": "sheet_rows_fetched", "sheet": self.sheet_name, "rows": len(rows)})
        return rows
