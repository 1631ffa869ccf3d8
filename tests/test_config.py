from budget_ledger.config import SyncConfig, build_sources, build_sync_config
from budget_ledger.models.settings import DEFAULT_DRIVE_FOLDER_ID, DEFAULT_SHEET_NAME, DEFAULT_SPREADSHEET_ID, AppSettings
from budget_ledger.sources.drive import GoogleDriveSource
from budget_ledger.sources.sheets import GoogleSheetSource


def test_blank_settings_fall_back_to_builtin_sources():
    config = build_sync_config(AppSettings(google_sheet_id=" ", sheet_name="", drive_folder_id="", google_api_key="  "))

    assert config.spreadsheet_id == DEFAULT_SPREADSHEET_ID
    assert config.sheet_name == DEFAULT_SHEET_NAME
    assert config.drive_folder_id == DEFAULT_DRIVE_FOLDER_ID
    assert config.google_api_key is None
    assert config.placeholder_amount == 25500.0


def test_build_sources_wires_config_into_google_sources():
    sheet_source, drive_source = build_sources(
        SyncConfig(spreadsheet_id="sheet-1", sheet_name="ABA", drive_folder_id="folder-1", google_api_key="key")
    )

    assert isinstance(sheet_source, GoogleSheetSource)
    assert isinstance(drive_source, GoogleDriveSource)
    assert "spreadsheets/d/sheet-1/" in sheet_source.url
    assert drive_source.folder_id == "folder-1"
    assert drive_source.api_key == "key"
