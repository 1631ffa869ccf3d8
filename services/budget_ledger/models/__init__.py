"""Domain dataclasses for the budget ledger."""

from budget_ledger.models.budget import (
    MISSING_TEXT,
    AttachedFile,
    Budget,
    BudgetStatus,
    budget_from_payload,
    budget_to_payload,
)
from budget_ledger.models.drive_file import PDF_MIME_TYPE, DriveFile, ScannedFile
from budget_ledger.models.settings import AppSettings, settings_from_payload, settings_to_payload

__all__ = [
    "MISSING_TEXT",
    "AttachedFile",
    "Budget",
    "BudgetStatus",
    "budget_from_payload",
    "budget_to_payload",
    "PDF_MIME_TYPE",
    "DriveFile",
    "ScannedFile",
    "AppSettings",
    "settings_from_payload",
    "settings_to_payload",
]
