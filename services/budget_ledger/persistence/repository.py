"""Document and audit data access helpers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_ledger.persistence.models import AuditEvent, StoredDocument


class StorageKey(str, Enum):
    """Fixed keys under which the service keeps its JSON documents."""

    BUDGETS = "budgets"
    SETTINGS = "settings"


class AuditAction(str, Enum):
    UPSERT_BUDGET = "upsert_budget"
    DELETE_BUDGET = "delete_budget"
    BATCH_MERGE = "batch_merge"
    SAVE_SETTINGS = "save_settings"
    SYNC_COMPLETED = "sync_completed"


class DocumentRepository:
    """Thin repository over the key/value document table and its audit trail."""

    def __init__(self, db: Session):
        self._db = db

    def read(self, key: StorageKey) -> str | None:
        record = self._db.get(StoredDocument, key.value)
        return record.payload if record is not None else None

    def write(
        self,
        key: StorageKey,
        payload: str,
        *,
        action: AuditAction,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Replace the document under `key` and record the mutation in one commit."""
        record = self._db.get(StoredDocument, key.value)
        if record is None:
            record = StoredDocument(key=key.value, payload=payload)
        else:
            record.payload = payload
        self._db.add(record)
        self._record_event(action=action, storage_key=key.value, details=details)
        self._db.commit()

    def record_event(self, action: AuditAction, details: dict[str, Any] | None = None) -> None:
        self._record_event(action=action, storage_key=None, details=details)
        self._db.commit()

    def latest_event(self, action: AuditAction) -> AuditEvent | None:
        statement = (
            select(AuditEvent)
            .where(AuditEvent.action == action.value)
            .order_by(AuditEvent.id.desc())
            .limit(1)
        )
        return self._db.scalars(statement).first()

    def latest_event_time(self, action: AuditAction) -> datetime | None:
        event = self.latest_event(action)
        return event.created_at if event is not None else None

    def _record_event(
        self,
        *,
        action: AuditAction,
        storage_key: str | None,
        details: dict[str, Any] | None,
    ) -> None:
        self._db.add(AuditEvent(action=action.value, storage_key=storage_key, details=details))
