from pathlib import Path

import pytest

from budget_ledger.models.settings import DEFAULT_SHEET_NAME, DEFAULT_SPREADSHEET_ID, AppSettings
from budget_ledger.persistence.database import build_engine, build_session_factory, init_db
from budget_ledger.persistence.repository import AuditAction, DocumentRepository, StorageKey
from budget_ledger.persistence.settings_store import SettingsStore


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = build_engine(f"sqlite:///{tmp_path / 'settings.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


def test_load_without_stored_settings_returns_defaults(session_factory):
    settings = SettingsStore(session_factory).load()

    assert settings == AppSettings()
    assert settings.google_sheet_id == DEFAULT_SPREADSHEET_ID
    assert settings.sheet_name == DEFAULT_SHEET_NAME


def test_save_and_load_round_trip_survives_new_store(session_factory):
    SettingsStore(session_factory).save(
        AppSettings(drive_connected=True, drive_folder_name="2025", google_api_key="AIza-test-key", auto_sync=True)
    )

    restored = SettingsStore(session_factory).load()

    assert restored.drive_connected is True
    assert restored.drive_folder_name == "2025"
    assert restored.google_api_key == "AIza-test-key"
    assert restored.auto_sync is True


@pytest.mark.parametrize("payload", ["{broken", "[1, 2]"])
def test_corrupt_settings_degrade_to_defaults(session_factory, payload):
    with session_factory() as session:
        DocumentRepository(session).write(StorageKey.SETTINGS, payload, action=AuditAction.SAVE_SETTINGS)

    assert SettingsStore(session_factory).load() == AppSettings()


def test_mistyped_and_unknown_keys_fall_back_per_field(session_factory):
    with session_factory() as session:
        DocumentRepository(session).write(
            StorageKey.SETTINGS,
            '{"drive_connected": "yes", "sheet_name": "ABA 2", "legacy_flag": true}',
            action=AuditAction.SAVE_SETTINGS,
        )

    settings = SettingsStore(session_factory).load()

    assert settings.drive_connected is False
    assert settings.sheet_name == "ABA 2"


def test_last_sync_at_tracks_most_recent_sync_event(session_factory):
    store = SettingsStore(session_factory)
    assert store.last_sync_at() is None
    assert store.last_sync_details() is None

    store.record_sync({"sync_id": "first", "sheet_added": 1})
    store.record_sync({"sync_id": "second", "sheet_added": 0})

    assert store.last_sync_at() is not None
    assert store.last_sync_details() == {"sync_id": "second", "sheet_added": 0}
