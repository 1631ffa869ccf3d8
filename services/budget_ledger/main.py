"""
Budget Ledger service: the deduplicated quote ledger, its dashboard statistics and the
sync pass that folds the master sheet and the quote folder into it.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Path wiring so `uvicorn budget_ledger.main:app` also works from a plain checkout.
SERVICES_ROOT = Path(__file__).resolve().parents[1]
SERVICES_ROOT_STR = str(SERVICES_ROOT)
if SERVICES_ROOT_STR not in sys.path:
    sys.path.append(SERVICES_ROOT_STR)

from shared.observability.privacy import is_masked, mask_secret  # noqa: E402
from shared.observability.telemetry import (  # noqa: E402
    bind_request_context,
    ensure_request_id,
    reset_request_context,
    setup_telemetry,
)
from shared.provider_settings import ProviderSettings, ProviderSettingsError, load_provider_settings  # noqa: E402

from budget_ledger.config import build_sources, build_sync_config  # noqa: E402
from budget_ledger.exporters import XLSX_MEDIA_TYPE, export_budgets_xlsx  # noqa: E402
from budget_ledger.extraction_provider import ExtractionProvider, build_extraction_provider  # noqa: E402
from budget_ledger.models.budget import AttachedFile, Budget, BudgetStatus  # noqa: E402
from budget_ledger.models.settings import (  # noqa: E402
    DEFAULT_DRIVE_FOLDER_ID,
    DEFAULT_SHEET_NAME,
    DEFAULT_SPREADSHEET_ID,
    AppSettings,
)
from budget_ledger.parsers.normalizers import parse_date  # noqa: E402
from budget_ledger.persistence.database import build_engine, build_session_factory, get_database_url, init_db  # noqa: E402
from budget_ledger.persistence.ledger_store import DocumentLedgerStore  # noqa: E402
from budget_ledger.persistence.settings_store import SettingsStore  # noqa: E402
from budget_ledger.stats import compute_stats, compute_status_shares  # noqa: E402
from budget_ledger.sync import SyncInProgressError, SyncOrchestrator  # noqa: E402

SERVICE_NAME = "budget-ledger"

app = FastAPI(title="Budget Ledger")
setup_telemetry(app, service_name=SERVICE_NAME)
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
CORS_ENV_KEY = "LEDGER_CORS_ORIGINS"


def _resolve_cors_origins() -> List[str]:
    """
    Comma-separated origins from LEDGER_CORS_ORIGINS, else localhost defaults for the
    dashboard dev server.
    """

    raw_value = os.getenv(CORS_ENV_KEY)
    if not raw_value:
        return DEFAULT_CORS_ORIGINS
    origins = [origin.strip() for origin in raw_value.split(",") if origin.strip()]
    if not origins:
        return DEFAULT_CORS_ORIGINS
    # FastAPI expects ["*"] instead of mixing '*' with explicit origins.
    if any(origin == "*" for origin in origins):
        return ["*"]
    return origins


def _load_extraction_provider_settings() -> ProviderSettings:
    return load_provider_settings(prefix="EXTRACTION_PROVIDER")


def _initialize_extraction_provider(settings: ProviderSettings) -> ExtractionProvider:
    try:
        provider = build_extraction_provider(settings.provider_name, settings=settings)
    except ValueError as exc:
        logger.error("Unsupported extraction provider '%s'", settings.provider_name)
        raise RuntimeError(f"Unsupported extraction provider '{settings.provider_name}'") from exc
    logger.info({"event": "extraction_provider_ready", **settings.describe()})
    return provider


def _build_stores() -> Tuple[DocumentLedgerStore, SettingsStore]:
    engine = build_engine(get_database_url())
    init_db(engine)
    session_factory = build_session_factory(engine)
    return DocumentLedgerStore(session_factory), SettingsStore(session_factory)


try:
    EXTRACTION_PROVIDER_SETTINGS = _load_extraction_provider_settings()
except ProviderSettingsError as exc:
    logger.error("Failed to load extraction provider settings: %s", exc)
    raise

EXTRACTION_PROVIDER = _initialize_extraction_provider(EXTRACTION_PROVIDER_SETTINGS)
LEDGER_STORE, SETTINGS_STORE = _build_stores()
ACTIVE_SYNC: Optional[SyncOrchestrator] = None
app.state.source_factory = build_sources


def reload_ledger_for_tests() -> None:
    """
    Allow tests to point the app at a fresh database and provider after mutating
    environment variables.
    """

    global EXTRACTION_PROVIDER_SETTINGS
    global EXTRACTION_PROVIDER
    global LEDGER_STORE
    global SETTINGS_STORE
    global ACTIVE_SYNC

    EXTRACTION_PROVIDER_SETTINGS = _load_extraction_provider_settings()
    EXTRACTION_PROVIDER = _initialize_extraction_provider(EXTRACTION_PROVIDER_SETTINGS)
    LEDGER_STORE, SETTINGS_STORE = _build_stores()
    ACTIVE_SYNC = None
    app.state.source_factory = build_sources


def _log_event(event: str, request: Request, **extra: Any) -> None:
    logger.info(
        {
            "event": event,
            "request_id": getattr(request.state, "request_id", None),
            **extra,
        }
    )


def error_response(status_code: int, error_code: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error_code, "details": details},
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = ensure_request_id(request)
    token = bind_request_context(request_id)
    try:
        response = await call_next(request)
        response.headers.setdefault("x-request-id", request_id)
        return response
    finally:
        reset_request_context(token)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_resolve_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


class AttachedFileModel(BaseModel):
    id: str
    name: str
    url: str = ""
    type: str = "pdf"

    @classmethod
    def from_dataclass(cls, attached: AttachedFile) -> "AttachedFileModel":
        return cls(id=attached.id, name=attached.name, url=attached.url, type=attached.type)

    def to_dataclass(self) -> AttachedFile:
        return AttachedFile(id=self.id, name=self.name, url=self.url, type=self.type)


class BudgetModel(BaseModel):
    id: str = ""
    item_number: Optional[int] = None
    date: str = ""
    client_name: str = Field(default="---", min_length=1)
    service_description: str = "---"
    budget_amount: float = 0.0
    discount: float = 0.0
    status: BudgetStatus = BudgetStatus.PENDING
    order_number: Optional[str] = None
    order_confirmation: bool = False
    invoice_sent: bool = False
    send_to_client: bool = True
    requester: str = ""
    files: List[AttachedFileModel] = Field(default_factory=list)

    @classmethod
    def from_dataclass(cls, budget: Budget) -> "BudgetModel":
        return cls(
            id=budget.id,
            item_number=budget.item_number,
            date=budget.date,
            client_name=budget.client_name,
            service_description=budget.service_description,
            budget_amount=budget.budget_amount,
            discount=budget.discount,
            status=budget.status,
            order_number=budget.order_number,
            order_confirmation=budget.order_confirmation,
            invoice_sent=budget.invoice_sent,
            send_to_client=budget.send_to_client,
            requester=budget.requester,
            files=[AttachedFileModel.from_dataclass(attached) for attached in budget.files],
        )

    def to_dataclass(self) -> Budget:
        return Budget(
            id=self.id,
            item_number=self.item_number,
            date=parse_date(self.date or None),
            client_name=self.client_name,
            service_description=self.service_description,
            budget_amount=self.budget_amount,
            discount=self.discount,
            status=self.status,
            order_number=self.order_number,
            order_confirmation=self.order_confirmation,
            invoice_sent=self.invoice_sent,
            send_to_client=self.send_to_client,
            requester=self.requester,
            files=[attached.to_dataclass() for attached in self.files],
        )


class BudgetFormModel(BudgetModel):
    """Submitted form data; stored records may predate these bounds so only input is checked."""

    budget_amount: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    discount: float = Field(default=0.0, ge=0, allow_inf_nan=False)


class StatsResponseModel(BaseModel):
    total_estimates: int
    approved_count: int
    pending_count: int
    rejected_count: int
    total_value_all: float
    total_value_approved: float
    total_value_pending: float
    total_value_rejected: float
    invoice_pending_count: int
    status_shares: Dict[str, float] = Field(default_factory=dict)


class SyncProgressModel(BaseModel):
    stage: str
    message: str
    current: int
    total: int


class SyncReportModel(BaseModel):
    sync_id: str
    sheet_rows: int
    sheet_added: int
    sheet_updated: int
    drive_candidates: int
    drive_new_files: int
    drive_processed: int
    drive_failed: int
    drive_added: int
    drive_updated: int
    errors: List[Dict[str, str]] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class SyncStatusModel(BaseModel):
    running: bool
    progress: Optional[SyncProgressModel] = None
    last_sync_at: Optional[datetime] = None
    last_sync: Optional[Dict[str, Any]] = None


class SettingsModel(BaseModel):
    drive_connected: bool = False
    drive_folder_name: str = ""
    drive_folder_id: str = DEFAULT_DRIVE_FOLDER_ID
    auto_sync: bool = False
    email_notifications: bool = True
    google_client_id: str = ""
    google_api_key: str = ""
    google_sheet_id: str = DEFAULT_SPREADSHEET_ID
    sheet_name: str = DEFAULT_SHEET_NAME

    @classmethod
    def from_dataclass(cls, settings: AppSettings, *, mask_key: bool = True) -> "SettingsModel":
        return cls(
            drive_connected=settings.drive_connected,
            drive_folder_name=settings.drive_folder_name,
            drive_folder_id=settings.drive_folder_id,
            auto_sync=settings.auto_sync,
            email_notifications=settings.email_notifications,
            google_client_id=settings.google_client_id,
            google_api_key=mask_secret(settings.google_api_key) if mask_key else settings.google_api_key,
            google_sheet_id=settings.google_sheet_id,
            sheet_name=settings.sheet_name,
        )

    def to_dataclass(self) -> AppSettings:
        return AppSettings(
            drive_connected=self.drive_connected,
            drive_folder_name=self.drive_folder_name,
            drive_folder_id=self.drive_folder_id,
            auto_sync=self.auto_sync,
            email_notifications=self.email_notifications,
            google_client_id=self.google_client_id,
            google_api_key=self.google_api_key,
            google_sheet_id=self.google_sheet_id,
            sheet_name=self.sheet_name,
        )


@app.get("/health")
def health_check() -> dict:
    """Liveness plus the active extraction provider, so the dashboard can flag AI-read quotes."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "extraction_provider": EXTRACTION_PROVIDER.name,
        "ai_enabled": EXTRACTION_PROVIDER.name == "openai",
    }


@app.get("/budgets", response_model=List[BudgetModel])
def list_budgets(
    request: Request,
    status: Optional[BudgetStatus] = None,
    search: Optional[str] = None,
) -> List[BudgetModel]:
    budgets = LEDGER_STORE.get_all()
    if status is not None:
        budgets = [budget for budget in budgets if budget.status is status]
    needle = (search or "").strip().lower()
    if needle:
        budgets = [budget for budget in budgets if _matches_search(budget, needle)]
    _log_event("budgets_listed", request, count=len(budgets), status_filter=status.value if status else None)
    return [BudgetModel.from_dataclass(budget) for budget in budgets]


@app.get("/budgets/export")
def export_budgets(request: Request) -> Response:
    budgets = LEDGER_STORE.get_all()
    content = export_budgets_xlsx(budgets)
    _log_event("budgets_exported", request, count=len(budgets), bytes=len(content))
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="orcamentos.xlsx"'},
    )


@app.get("/budgets/{budget_id}", response_model=None)
def get_budget(budget_id: str) -> BudgetModel | JSONResponse:
    for budget in LEDGER_STORE.get_all():
        if budget.id == budget_id:
            return BudgetModel.from_dataclass(budget)
    return error_response(404, "budget_not_found", f"No budget with id '{budget_id}'.")


@app.post("/budgets", response_model=BudgetModel)
def save_budget(request: Request, payload: BudgetFormModel) -> BudgetModel:
    """Form submission or edit: replaces the record with the same id, else creates one."""
    stored = LEDGER_STORE.upsert(payload.to_dataclass())
    _log_event("budget_saved", request, budget_id=stored.id, created=stored.id != payload.id)
    return BudgetModel.from_dataclass(stored)


@app.delete("/budgets/{budget_id}", status_code=204)
def delete_budget(request: Request, budget_id: str) -> Response:
    LEDGER_STORE.delete(budget_id)
    _log_event("budget_deleted", request, budget_id=budget_id)
    return Response(status_code=204)


@app.get("/stats", response_model=StatsResponseModel)
def get_stats() -> StatsResponseModel:
    stats = compute_stats(LEDGER_STORE.get_all())
    return StatsResponseModel(
        total_estimates=stats.total_estimates,
        approved_count=stats.approved_count,
        pending_count=stats.pending_count,
        rejected_count=stats.rejected_count,
        total_value_all=stats.total_value_all,
        total_value_approved=stats.total_value_approved,
        total_value_pending=stats.total_value_pending,
        total_value_rejected=stats.total_value_rejected,
        invoice_pending_count=stats.invoice_pending_count,
        status_shares=compute_status_shares(stats),
    )


@app.post("/sync", response_model=None)
async def run_sync(request: Request) -> SyncReportModel | JSONResponse:
    """Runs one full pass and returns its report; source and file failures are listed inside it."""
    global ACTIVE_SYNC

    if ACTIVE_SYNC is not None and ACTIVE_SYNC.is_running:
        return error_response(409, "sync_in_progress", "A sync pass is already running.")

    config = build_sync_config(SETTINGS_STORE.load())
    sheet_source, drive_source = app.state.source_factory(config)
    orchestrator = SyncOrchestrator(
        LEDGER_STORE,
        sheet_source,
        drive_source,
        EXTRACTION_PROVIDER,
        config,
        history=SETTINGS_STORE,
    )
    ACTIVE_SYNC = orchestrator
    _log_event("sync_requested", request, provider=EXTRACTION_PROVIDER.name)

    try:
        report = await orchestrator.run()
    except SyncInProgressError as exc:
        return error_response(409, "sync_in_progress", str(exc))
    return SyncReportModel(**report.to_dict())


@app.get("/sync/status", response_model=SyncStatusModel)
def sync_status() -> SyncStatusModel:
    progress = None
    running = False
    if ACTIVE_SYNC is not None:
        running = ACTIVE_SYNC.is_running
        current = ACTIVE_SYNC.progress
        progress = SyncProgressModel(
            stage=current.stage,
            message=current.message,
            current=current.current,
            total=current.total,
        )
    return SyncStatusModel(
        running=running,
        progress=progress,
        last_sync_at=SETTINGS_STORE.last_sync_at(),
        last_sync=SETTINGS_STORE.last_sync_details(),
    )


@app.get("/settings", response_model=SettingsModel)
def get_settings() -> SettingsModel:
    return SettingsModel.from_dataclass(SETTINGS_STORE.load())


@app.put("/settings", response_model=SettingsModel)
def update_settings(request: Request, payload: SettingsModel) -> SettingsModel:
    """Masked API keys echo back from GET; receiving one keeps the stored key."""
    settings = payload.to_dataclass()
    if is_masked(settings.google_api_key):
        settings.google_api_key = SETTINGS_STORE.load().google_api_key
    saved = SETTINGS_STORE.save(settings)
    _log_event("settings_saved", request, api_key_configured=bool(saved.google_api_key))
    return SettingsModel.from_dataclass(saved)


def _matches_search(budget: Budget, needle: str) -> bool:
    haystacks = (budget.client_name, budget.service_description, budget.order_number or "")
    return any(needle in value.lower() for value in haystacks)
