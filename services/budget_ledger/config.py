from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from budget_ledger.models.extraction import DEFAULT_PLACEHOLDER_AMOUNT, DRIVE_CLIENT_FALLBACK, DRIVE_REQUESTER_TAG
from budget_ledger.models.settings import (
    DEFAULT_DRIVE_FOLDER_ID,
    DEFAULT_SHEET_NAME,
    DEFAULT_SPREADSHEET_ID,
    AppSettings,
)
from budget_ledger.parsers.sheet_rows import SHEET_REQUESTER_TAG
from budget_ledger.sources.base import DriveSource, SheetSource
from budget_ledger.sources.drive import GoogleDriveSource
from budget_ledger.sources.http_client import ResilientHttpClient
from budget_ledger.sources.sheets import DEFAULT_SHEET_RANGE, GoogleSheetSource


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Everything one sync pass needs to know about its sources, fixed at construction."""

    spreadsheet_id: str = DEFAULT_SPREADSHEET_ID
    sheet_name: str = DEFAULT_SHEET_NAME
    sheet_range: str = DEFAULT_SHEET_RANGE
    drive_folder_id: str = DEFAULT_DRIVE_FOLDER_ID
    google_api_key: Optional[str] = None
    placeholder_amount: float = DEFAULT_PLACEHOLDER_AMOUNT
    sheet_requester_tag: str = SHEET_REQUESTER_TAG
    drive_requester_tag: str = DRIVE_REQUESTER_TAG
    drive_client_fallback: str = DRIVE_CLIENT_FALLBACK


def build_sync_config(settings: AppSettings) -> SyncConfig:
    """Blank settings fields fall back to the built-in sources."""

    return SyncConfig(
        spreadsheet_id=settings.google_sheet_id.strip() or DEFAULT_SPREADSHEET_ID,
        sheet_name=settings.sheet_name.strip() or DEFAULT_SHEET_NAME,
        drive_folder_id=settings.drive_folder_id.strip() or DEFAULT_DRIVE_FOLDER_ID,
        google_api_key=settings.google_api_key.strip() or None,
    )


def build_sources(config: SyncConfig) -> Tuple[SheetSource, DriveSource]:
    """Google-backed sheet and folder sources sharing one retrying HTTP client."""

    http_client = ResilientHttpClient()
    sheet_source = GoogleSheetSource(
        config.spreadsheet_id,
        config.sheet_name,
        sheet_range=config.sheet_range,
        http_client=http_client,
    )
    drive_source = GoogleDriveSource(config.drive_folder_id, api_key=config.google_api_key, http_client=http_client)
    return sheet_source, drive_source
