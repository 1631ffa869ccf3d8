from __future__ import annotations

import json
from dataclasses import replace
from itertools import count
from pathlib import Path

import pytest

from budget_ledger.models.budget import AttachedFile, Budget, BudgetStatus, budget_to_payload
from budget_ledger.persistence.database import build_engine, build_session_factory, init_db
from budget_ledger.persistence.ledger_store import DocumentLedgerStore, LedgerStore, MergeResult, sort_budgets
from budget_ledger.persistence.models import AuditEvent
from budget_ledger.persistence.repository import AuditAction, DocumentRepository, StorageKey


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> DocumentLedgerStore:
    ids = count(1)
    return DocumentLedgerStore(session_factory, id_factory=lambda: f"id-{next(ids)}")


def _sheet_budget(description: str, client: str = "ACME", amount: float = 1000.0, **extra) -> Budget:
    return Budget(date="2025-02-14", client_name=client, service_description=description, budget_amount=amount, **extra)


def _write_raw(session_factory, payload: str) -> None:
    with session_factory() as session:
        DocumentRepository(session).write(StorageKey.BUDGETS, payload, action=AuditAction.BATCH_MERGE)


def test_document_store_satisfies_protocol(store):
    assert isinstance(store, LedgerStore)


def test_get_all_on_empty_storage_returns_empty_list(store):
    assert store.get_all() == []


@pytest.mark.parametrize("payload", ["{not json", '{"budgets": []}', "42"])
def test_get_all_on_corrupt_storage_returns_empty_list(store, session_factory, payload):
    _write_raw(session_factory, payload)

    assert store.get_all() == []


def test_get_all_tolerates_badly_typed_fields_in_stored_records(store, session_factory):
    _write_raw(
        session_factory,
        '[{"id": "x", "client_name": "ACME", "files": 5},'
        ' {"id": "y", "item_number": 1e999, "budget_amount": NaN, "discount": -1e999, "files": {"id": "f"}}]',
    )

    budgets = {budget.id: budget for budget in store.get_all()}

    assert budgets["x"].client_name == "ACME"
    assert budgets["x"].files == []
    assert budgets["y"].item_number is None
    assert budgets["y"].budget_amount == 0.0
    assert budgets["y"].discount == 0.0
    assert budgets["y"].files == []


def test_upsert_assigns_id_and_persists(store, session_factory):
    stored = store.upsert(_sheet_budget("Pintura"))

    assert stored.id == "id-1"
    reloaded = DocumentLedgerStore(session_factory).get_all()
    assert [budget.id for budget in reloaded] == ["id-1"]
    assert reloaded[0].service_description == "Pintura"


def test_upsert_replaces_record_with_matching_id(store):
    stored = store.upsert(_sheet_budget("Pintura"))

    edited = replace(stored, status=BudgetStatus.APPROVED, invoice_sent=True)
    store.upsert(edited)

    budgets = store.get_all()
    assert len(budgets) == 1
    assert budgets[0].status is BudgetStatus.APPROVED
    assert budgets[0].invoice_sent is True


def test_upsert_with_unknown_id_gets_a_fresh_id(store):
    stored = store.upsert(_sheet_budget("Pintura", id="not-in-ledger"))

    assert stored.id == "id-1"


def test_delete_removes_record_and_ignores_unknown_ids(store):
    first = store.upsert(_sheet_budget("Pintura"))
    store.upsert(_sheet_budget("Drywall"))

    store.delete(first.id)
    store.delete("missing")

    assert [budget.service_description for budget in store.get_all()] == ["Drywall"]


def test_batch_merge_inserts_new_records_with_ids(store):
    result = store.batch_merge([_sheet_budget("PR01724 Projeto"), _sheet_budget("Pintura", amount=250.0)])

    assert result == MergeResult(added=2, updated=0)
    budgets = store.get_all()
    assert sorted(budget.id for budget in budgets) == ["id-1", "id-2"]


def test_batch_merge_is_idempotent(store):
    batch = [_sheet_budget("PR01724 Projeto"), _sheet_budget("Pintura", amount=250.0), _sheet_budget("Drywall")]

    store.batch_merge(batch)
    first_pass = [budget_to_payload(budget) for budget in store.get_all()]
    result = store.batch_merge(batch)
    second_pass = [budget_to_payload(budget) for budget in store.get_all()]

    assert result == MergeResult(added=0, updated=3)
    assert second_pass == first_pass


def test_batch_merge_last_merged_wins_on_fingerprint_match(store):
    store.batch_merge([_sheet_budget("PR01724 Projeto", client="A")])
    store.batch_merge([_sheet_budget("pr 1724 revisão", client="B")])

    budgets = store.get_all()
    assert len(budgets) == 1
    assert budgets[0].client_name == "B"
    assert budgets[0].id == "id-1"


def test_batch_merge_keeps_stored_values_for_unsupplied_fields(store):
    store.batch_merge([_sheet_budget("PR01724 Projeto", item_number=88, order_number="PO-1")])
    store.batch_merge([_sheet_budget("PR01724 Projeto", item_number=None, order_number=None)])

    merged = store.get_all()[0]
    assert merged.item_number == 88
    assert merged.order_number == "PO-1"


def test_batch_merge_overwrites_with_blank_text(store):
    store.batch_merge([_sheet_budget("PR01724 Projeto", order_number="PO-1")])
    store.batch_merge([_sheet_budget("PR01724 Projeto", order_number="")])

    assert store.get_all()[0].order_number == ""


def test_batch_merge_appends_files_without_duplicates(store):
    first_file = AttachedFile(id="drive-1", name="PR01724-rev01.pdf", url="https://drive/1")
    second_file = AttachedFile(id="drive-2", name="PR01724-rev02.pdf", url="https://drive/2")
    store.batch_merge([_sheet_budget("PR01724 Projeto", files=[first_file])])
    store.batch_merge([_sheet_budget("PR01724 Projeto", files=[first_file, second_file])])

    files = store.get_all()[0].files
    assert [attached.id for attached in files] == ["drive-1", "drive-2"]


def test_batch_merge_preserves_direct_edits_on_unrelated_records(store):
    manual = store.upsert(_sheet_budget("Consultoria", client="Manual", invoice_sent=True))

    store.batch_merge([_sheet_budget("PR01724 Projeto")])

    budgets = {budget.id: budget for budget in store.get_all()}
    assert budgets[manual.id].invoice_sent is True
    assert len(budgets) == 2


def test_batch_merge_assigns_ids_to_legacy_records(store, session_factory):
    legacy = [
        {"id": "", "date": "2024-01-01", "client_name": "Legado", "service_description": "PR00500 antigo"},
        {"date": "2024-01-02", "client_name": "Legado 2", "service_description": "Reforma"},
        {"id": "dup", "date": "2024-01-03", "client_name": "Dup A", "service_description": "PR00600"},
        {"id": "dup", "date": "2024-01-04", "client_name": "Dup B", "service_description": "PR00700"},
    ]
    _write_raw(session_factory, json.dumps(legacy))

    store.batch_merge([])

    budgets = store.get_all()
    ids = [budget.id for budget in budgets]
    assert len(budgets) == 4
    assert all(ids)
    assert len(set(ids)) == 4


def test_batch_merge_records_audit_event(store, session_factory):
    store.batch_merge([_sheet_budget("PR01724 Projeto")])

    with session_factory() as session:
        event = DocumentRepository(session).latest_event(AuditAction.BATCH_MERGE)
        assert isinstance(event, AuditEvent)
        assert event.storage_key == StorageKey.BUDGETS.value
        assert event.details == {"incoming": 1, "added": 1, "updated": 0}


def test_get_all_sorts_by_item_number_when_every_record_has_one():
    budgets = [
        Budget(id="a", item_number=3, date="2025-01-01"),
        Budget(id="b", item_number=10, date="2024-01-01"),
        Budget(id="c", item_number=7, date="2026-01-01"),
    ]

    assert [budget.id for budget in sort_budgets(budgets)] == ["b", "c", "a"]


def test_get_all_falls_back_to_date_order():
    budgets = [
        Budget(id="a", item_number=3, date="2025-01-01"),
        Budget(id="b", item_number=None, date="2025-06-01"),
        Budget(id="c", item_number=7, date="2024-12-31"),
    ]

    assert [budget.id for budget in sort_budgets(budgets)] == ["b", "a", "c"]
