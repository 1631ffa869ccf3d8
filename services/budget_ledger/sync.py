"""
Sync orchestrator: master sheet first, then the quote folder.

One pass runs two stages in order and never rolls back:

1. Fetch the sheet rows, parse them and batch-merge the candidates.
2. Re-read the ledger, list the folder, keep the latest revision per PR code, drop
   codes the ledger already knows, then download and extract each remaining file one
   at a time and batch-merge the resulting candidates in a single call.

A source failure aborts only its own stage and is recorded in the report. A failing
file is logged and counted; the remaining files are still processed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol
from uuid import uuid4

from shared.observability.telemetry import bind_sync_context, reset_sync_context

from budget_ledger.config import SyncConfig
from budget_ledger.extraction_provider import ExtractionError, ExtractionProvider, ExtractionRequest
from budget_ledger.file_scanner import scan_latest_revisions
from budget_ledger.models.budget import Budget
from budget_ledger.models.drive_file import ScannedFile
from budget_ledger.models.extraction import budget_from_extraction
from budget_ledger.parsers.normalizers import extract_pr_code
from budget_ledger.parsers.sheet_rows import parse_sheet_rows
from budget_ledger.persistence.ledger_store import LedgerStore
from budget_ledger.sources.base import DriveSource, SheetSource, SourceUnavailableError

logger = logging.getLogger(__name__)

STAGE_IDLE = "idle"
STAGE_SHEET = "sheet"
STAGE_DRIVE_SCAN = "drive_scan"
STAGE_EXTRACTION = "extraction"
STAGE_MERGE = "merge"
STAGE_DONE = "done"


class SyncInProgressError(RuntimeError):
    """A second pass was requested while one is still running."""


@dataclass
class SyncProgress:
    stage: str = STAGE_IDLE
    message: str = ""
    current: int = 0
    total: int = 0


@dataclass
class SyncReport:
    sync_id: str
    sheet_rows: int = 0
    sheet_added: int = 0
    sheet_updated: int = 0
    drive_candidates: int = 0
    drive_new_files: int = 0
    drive_processed: int = 0
    drive_failed: int = 0
    drive_added: int = 0
    drive_updated: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["started_at"] = self.started_at.isoformat() if self.started_at else None
        payload["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return payload


class SyncHistory(Protocol):
    def record_sync(self, details: Dict[str, Any]) -> None:
        ...


ProgressCallback = Callable[[SyncProgress], None]


class SyncOrchestrator:
    """
    Runs sync passes against one ledger. Not reentrant: `is_running` guards it and a
    concurrent `run()` raises SyncInProgressError. There is no cancellation.
    """

    def __init__(
        self,
        store: LedgerStore,
        sheet_source: SheetSource,
        drive_source: DriveSource,
        extraction_provider: ExtractionProvider,
        config: SyncConfig,
        on_progress: Optional[ProgressCallback] = None,
        *,
        history: Optional[SyncHistory] = None,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._sheet_source = sheet_source
        self._drive_source = drive_source
        self._provider = extraction_provider
        self._config = config
        self._on_progress = on_progress
        self._history = history
        self._today = today
        self._running = False
        self._progress = SyncProgress()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def progress(self) -> SyncProgress:
        return self._progress

    async def run(self) -> SyncReport:
        if self._running:
            raise SyncInProgressError("A sync pass is already running")
        self._running = True

        report = SyncReport(sync_id=uuid4().hex, started_at=datetime.now(timezone.utc))
        token = bind_sync_context(report.sync_id)
        logger.info({"event": "sync_started", "provider": self._provider.name})
        try:
            await self._sync_sheet(report)
            await self._sync_drive(report)
            report.finished_at = datetime.now(timezone.utc)
            self._report_progress(STAGE_DONE, "Sync finished")
            logger.info({"event": "sync_completed", **_summary(report)})
            if self._history is not None:
                self._history.record_sync(_summary(report))
            return report
        finally:
            self._running = False
            reset_sync_context(token)

    async def _sync_sheet(self, report: SyncReport) -> None:
        self._report_progress(STAGE_SHEET, "Reading master sheet")
        try:
            rows = await self._sheet_source.fetch_rows()
        except SourceUnavailableError as exc:
            self._record_stage_error(report, STAGE_SHEET, exc)
            return

        candidates = parse_sheet_rows(rows, today=self._today(), requester_tag=self._config.sheet_requester_tag)
        report.sheet_rows = len(candidates)
        if not candidates:
            return

        self._report_progress(STAGE_MERGE, "Merging sheet rows", len(candidates), len(candidates))
        result = self._store.batch_merge(candidates)
        report.sheet_added = result.added
        report.sheet_updated = result.updated

    async def _sync_drive(self, report: SyncReport) -> None:
        self._report_progress(STAGE_DRIVE_SCAN, "Scanning quote folder")
        known_codes = _known_pr_codes(self._store.get_all())
        try:
            files = await self._drive_source.list_files()
        except SourceUnavailableError as exc:
            self._record_stage_error(report, STAGE_DRIVE_SCAN, exc)
            return

        scanned = scan_latest_revisions(files)
        pending = [item for item in scanned if item.pr_code not in known_codes]
        report.drive_candidates = len(scanned)
        report.drive_new_files = len(pending)

        candidates: List[Budget] = []
        for index, item in enumerate(pending, start=1):
            self._report_progress(STAGE_EXTRACTION, f"Reading {item.file.name}", index, len(pending))
            candidate = await self._extract_candidate(item, report)
            if candidate is not None:
                candidates.append(candidate)

        if not candidates:
            return

        self._report_progress(STAGE_MERGE, "Merging extracted quotes", len(candidates), len(candidates))
        result = self._store.batch_merge(candidates)
        report.drive_added = result.added
        report.drive_updated = result.updated

    async def _extract_candidate(self, item: ScannedFile, report: SyncReport) -> Optional[Budget]:
        try:
            content = await self._drive_source.download(item.file)
            request = ExtractionRequest(content=content, file_name=item.file.name, mime_type=item.file.mime_type)
            extracted = await asyncio.to_thread(self._provider.extract, request)
        except (SourceUnavailableError, ExtractionError) as exc:
            self._record_file_error(report, item, exc)
            return None
        except Exception as exc:
            # Providers are opaque; an unexpected error still only costs this file.
            self._record_file_error(report, item, exc, unexpected=True)
            return None

        report.drive_processed += 1
        return budget_from_extraction(
            extracted,
            item,
            today=self._today(),
            placeholder_amount=self._config.placeholder_amount,
            requester_tag=self._config.drive_requester_tag,
            client_fallback=self._config.drive_client_fallback,
        )

    def _record_file_error(
        self,
        report: SyncReport,
        item: ScannedFile,
        exc: Exception,
        *,
        unexpected: bool = False,
    ) -> None:
        report.drive_failed += 1
        report.errors.append({"stage": STAGE_EXTRACTION, "file": item.file.name, "error": str(exc) or type(exc).__name__})
        log_entry = {
            "event": "sync_file_failed",
            "file_id": item.file.id,
            "pr_code": item.pr_code,
            "error_type": type(exc).__name__,
        }
        if unexpected:
            logger.exception(log_entry)
        else:
            logger.warning(log_entry)

    def _record_stage_error(self, report: SyncReport, stage: str, exc: Exception) -> None:
        report.errors.append({"stage": stage, "error": str(exc)})
        logger.error({"event": "sync_stage_failed", "stage": stage, "error": str(exc)})

    def _report_progress(self, stage: str, message: str, current: int = 0, total: int = 0) -> None:
        self._progress = SyncProgress(stage=stage, message=message, current=current, total=total)
        if self._on_progress is not None:
            self._on_progress(self._progress)


def _known_pr_codes(budgets: List[Budget]) -> set[str]:
    codes = (extract_pr_code(budget.service_description) for budget in budgets)
    return {code for code in codes if code}


def _summary(report: SyncReport) -> Dict[str, Any]:
    payload = report.to_dict()
    payload["error_count"] = len(payload.pop("errors"))
    return payload
