"""Clients for the external sheet and file sources."""

from budget_ledger.sources.base import DriveSource, SheetSource, SourceUnavailableError
from budget_ledger.sources.drive import GoogleDriveSource, parse_embedded_folder_view
from budget_ledger.sources.http_client import RequestMetrics, ResilientHttpClient
from budget_ledger.sources.sheets import GoogleSheetSource

__all__ = [
    "DriveSource",
    "GoogleDriveSource",
    "GoogleSheetSource",
    "RequestMetrics",
    "ResilientHttpClient",
    "SheetSource",
    "SourceUnavailableError",
    "parse_embedded_folder_view",
]
