"""
Ledger storage and the batch reconciliation algorithm.

The whole ledger lives as one JSON array under the `budgets` storage key. Every
operation loads it, changes it in memory and writes it back in full, so the store is
not safe for concurrent writers: two processes syncing against the same database can
overwrite each other's changes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from typing import Callable, Iterable, Mapping, Protocol, Sequence, runtime_checkable
from uuid import uuid4

from sqlalchemy.orm import Session

from budget_ledger.fingerprint import fingerprint
from budget_ledger.models.budget import AttachedFile, Budget, budget_from_payload, budget_to_payload
from budget_ledger.persistence.repository import AuditAction, DocumentRepository, StorageKey

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def generate_budget_id() -> str:
    return uuid4().hex


@dataclass
class MergeResult:
    added: int = 0
    updated: int = 0


@runtime_checkable
class LedgerStore(Protocol):
    """Persistence seam used by the sync orchestrator and the HTTP API."""

    def get_all(self) -> list[Budget]:
        ...

    def upsert(self, budget: Budget) -> Budget:
        ...

    def delete(self, budget_id: str) -> None:
        ...

    def batch_merge(self, incoming: Sequence[Budget]) -> MergeResult:
        ...


class DocumentLedgerStore:
    """LedgerStore backed by a single JSON document in the database."""

    def __init__(self, session_factory: SessionFactory, id_factory: Callable[[], str] = generate_budget_id):
        self._session_factory = session_factory
        self._id_factory = id_factory

    def get_all(self) -> list[Budget]:
        """Every record, newest first. Missing or corrupt storage reads as an empty ledger."""
        with self._session_factory() as session:
            budgets = self._load(DocumentRepository(session))
        return sort_budgets(budgets)

    def upsert(self, budget: Budget) -> Budget:
        """Replace the record with the same id, or store it under a freshly generated id."""
        with self._session_factory() as session:
            repo = DocumentRepository(session)
            budgets = self._load(repo)

            index = _index_of(budgets, budget.id) if budget.id else None
            if index is not None:
                stored = budget
                budgets[index] = stored
            else:
                stored = replace(budget, id=self._id_factory())
                budgets.append(stored)

            self._save(
                repo,
                budgets,
                action=AuditAction.UPSERT_BUDGET,
                details={"budget_id": stored.id, "created": index is None},
            )
        return stored

    def delete(self, budget_id: str) -> None:
        with self._session_factory() as session:
            repo = DocumentRepository(session)
            budgets = self._load(repo)
            remaining = [budget for budget in budgets if budget.id != budget_id]
            if len(remaining) == len(budgets):
                return
            self._save(repo, remaining, action=AuditAction.DELETE_BUDGET, details={"budget_id": budget_id})

    def batch_merge(self, incoming: Sequence[Budget]) -> MergeResult:
        """
        Fold a batch of candidates into the ledger without creating duplicates.

        Each candidate is matched to a stored record by fingerprint. A match keeps the
        stored id and takes the candidate's fields (last merged wins, blank strings
        included; see `overlay_budget`); no match inserts the candidate under a new id. The
        resulting ledger replaces the stored one in full.

        Matching scans the working set once per candidate, O(incoming x ledger). That
        is fine for a few thousand quotes; index fingerprints before going further.
        """

        result = MergeResult()
        with self._session_factory() as session:
            repo = DocumentRepository(session)
            working = self._keyed(self._load(repo))
            fingerprints = {key: fingerprint(budget) for key, budget in working.items()}

            for candidate in incoming:
                candidate_fingerprint = fingerprint(candidate)
                existing_key = next(
                    (key for key, value in fingerprints.items() if value == candidate_fingerprint),
                    None,
                )
                if existing_key is not None:
                    merged = overlay_budget(working[existing_key], candidate)
                    working[existing_key] = merged
                    fingerprints[existing_key] = fingerprint(merged)
                    result.updated += 1
                else:
                    new_key = self._id_factory()
                    working[new_key] = replace(candidate, id=new_key)
                    fingerprints[new_key] = candidate_fingerprint
                    result.added += 1

            self._save(
                repo,
                list(working.values()),
                action=AuditAction.BATCH_MERGE,
                details={"incoming": len(incoming), "added": result.added, "updated": result.updated},
            )

        logger.info(
            {
                "event": "ledger_batch_merge",
                "incoming": len(incoming),
                "added": result.added,
                "updated": result.updated,
            }
        )
        return result

    def _keyed(self, budgets: Iterable[Budget]) -> dict[str, Budget]:
        """Key records by id, giving legacy records without one (or with a clashing one) a new id."""
        keyed: dict[str, Budget] = {}
        for budget in budgets:
            key = budget.id
            if not key or key in keyed:
                key = self._id_factory()
            keyed[key] = budget if key == budget.id else replace(budget, id=key)
        return keyed

    def _load(self, repo: DocumentRepository) -> list[Budget]:
        raw = repo.read(StorageKey.BUDGETS)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning({"event": "ledger_storage_corrupt", "error": str(exc)})
            return []
        if not isinstance(payload, list):
            logger.warning({"event": "ledger_storage_corrupt", "error": "ledger document is not a list"})
            return []
        return [budget_from_payload(item) for item in payload if isinstance(item, Mapping)]

    def _save(
        self,
        repo: DocumentRepository,
        budgets: Sequence[Budget],
        *,
        action: AuditAction,
        details: dict,
    ) -> None:
        document = json.dumps([budget_to_payload(budget) for budget in budgets], ensure_ascii=False)
        repo.write(StorageKey.BUDGETS, document, action=action, details=details)


def overlay_budget(existing: Budget, incoming: Budget) -> Budget:
    """
    `{...existing, ...incoming, id: existing.id}` with two refinements: a None field in
    `incoming` means "not supplied" and keeps the stored value, and attachments are only
    ever appended.
    """

    values = {}
    for budget_field in fields(Budget):
        incoming_value = getattr(incoming, budget_field.name)
        values[budget_field.name] = getattr(existing, budget_field.name) if incoming_value is None else incoming_value
    values["id"] = existing.id
    values["files"] = merge_files(existing.files, incoming.files)
    return Budget(**values)


def merge_files(existing: Sequence[AttachedFile], incoming: Sequence[AttachedFile]) -> list[AttachedFile]:
    known_ids = {attached.id for attached in existing}
    merged = list(existing)
    for attached in incoming:
        if attached.id not in known_ids:
            merged.append(attached)
            known_ids.add(attached.id)
    return merged


def sort_budgets(budgets: Sequence[Budget]) -> list[Budget]:
    """
    Newest first: by item number when every record has one, otherwise by date.
    """

    if budgets and all(budget.item_number is not None for budget in budgets):
        return sorted(budgets, key=lambda budget: budget.item_number, reverse=True)
    return sorted(budgets, key=lambda budget: budget.date, reverse=True)


def _index_of(budgets: Sequence[Budget], budget_id: str) -> int | None:
    for index, budget in enumerate(budgets):
        if budget.id == budget_id:
            return index
    return None
