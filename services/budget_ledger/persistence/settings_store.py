from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from budget_ledger.models.settings import AppSettings, settings_from_payload, settings_to_payload
from budget_ledger.persistence.repository import AuditAction, DocumentRepository, StorageKey

logger = logging.getLogger(__name__)


class SettingsStore:
    """Persists AppSettings and exposes the sync history kept in the audit trail."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self) -> AppSettings:
        """Stored settings overlaid on the defaults; defaults alone when nothing usable is stored."""
        with self._session_factory() as session:
            raw = DocumentRepository(session).read(StorageKey.SETTINGS)
        if not raw:
            return AppSettings()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning({"event": "settings_storage_corrupt", "error": str(exc)})
            return AppSettings()
        if not isinstance(payload, dict):
            logger.warning({"event": "settings_storage_corrupt", "error": "settings document is not an object"})
            return AppSettings()
        return settings_from_payload(payload)

    def save(self, settings: AppSettings) -> AppSettings:
        payload = settings_to_payload(settings)
        with self._session_factory() as session:
            DocumentRepository(session).write(
                StorageKey.SETTINGS,
                json.dumps(payload, ensure_ascii=False),
                action=AuditAction.SAVE_SETTINGS,
                details={"fields": sorted(payload)},
            )
        return settings

    def record_sync(self, details: dict[str, Any]) -> None:
        with self._session_factory() as session:
            DocumentRepository(session).record_event(AuditAction.SYNC_COMPLETED, details)

    def last_sync_at(self) -> datetime | None:
        with self._session_factory() as session:
            return DocumentRepository(session).latest_event_time(AuditAction.SYNC_COMPLETED)

    def last_sync_details(self) -> dict[str, Any] | None:
        with self._session_factory() as session:
            event = DocumentRepository(session).latest_event(AuditAction.SYNC_COMPLETED)
            return dict(event.details or {}) if event is not None else None
