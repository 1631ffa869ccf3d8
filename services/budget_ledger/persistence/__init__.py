from .database import SessionLocal, build_engine, build_session_factory, get_engine, init_db
from .ledger_store import DocumentLedgerStore, LedgerStore, MergeResult, sort_budgets
from .repository import AuditAction, DocumentRepository, StorageKey
from .settings_store import SettingsStore

__all__ = [
    "AuditAction",
    "DocumentLedgerStore",
    "DocumentRepository",
    "LedgerStore",
    "MergeResult",
    "SessionLocal",
    "SettingsStore",
    "StorageKey",
    "build_engine",
    "build_session_factory",
    "get_engine",
    "sort_budgets",
    "init_db",
]
