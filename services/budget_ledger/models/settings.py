from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping

DEFAULT_SPREADSHEET_ID = "1cgbinJp_tdj_y9jTzC0ms_THw9ppgqRx"
DEFAULT_SHEET_NAME = "CONTROLE DE ORÇAMENTOS"
DEFAULT_DRIVE_FOLDER_ID = "1-IAFNjeRjt4p_hZB_c0Si8myi60u6PfY"


@dataclass(slots=True)
class AppSettings:
    """User-editable application settings, persisted next to the ledger."""

    drive_connected: bool = False
    drive_folder_name: str = ""
    drive_folder_id: str = DEFAULT_DRIVE_FOLDER_ID
    auto_sync: bool = False
    email_notifications: bool = True
    google_client_id: str = ""
    google_api_key: str = ""
    google_sheet_id: str = DEFAULT_SPREADSHEET_ID
    sheet_name: str = DEFAULT_SHEET_NAME


def settings_to_payload(settings: AppSettings) -> dict[str, Any]:
    return asdict(settings)


def settings_from_payload(payload: Mapping[str, Any]) -> AppSettings:
    """Overlay stored values onto the defaults, ignoring unknown keys and mistyped values."""

    defaults = AppSettings()
    values: dict[str, Any] = {}
    for settings_field in fields(AppSettings):
        default_value = getattr(defaults, settings_field.name)
        raw_value = payload.get(settings_field.name, default_value)
        if isinstance(default_value, bool):
            values[settings_field.name] = raw_value if isinstance(raw_value, bool) else default_value
        else:
            values[settings_field.name] = str(raw_value) if raw_value is not None else default_value
    return AppSettings(**values)
