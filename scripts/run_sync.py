#!/usr/bin/env python3
"""
Run one ledger sync pass from the command line.

Reads the stored application settings (sheet id, folder id, API key), applies any
overrides given as flags, syncs the master sheet and the quote folder into the ledger
database and prints the sync report as JSON. Exits with status 1 when any stage or
file failed.
"""

import argparse
import asyncio
import json
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import List, Optional

# Add services root to path
SERVICES_ROOT = Path(__file__).resolve().parents[1] / "services"
if str(SERVICES_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICES_ROOT))

from shared.observability.telemetry import configure_logging  # noqa: E402
from shared.provider_settings import ProviderSettingsError, load_provider_settings  # noqa: E402


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync the budget ledger with the master sheet and the quote folder")
    parser.add_argument("--db-url", help="SQLAlchemy URL of the ledger database (default: LEDGER_DB_URL or the bundled SQLite file)")
    parser.add_argument("--provider", help="Extraction provider override: deterministic, mock or openai")
    parser.add_argument("--sheet-id", help="Spreadsheet id override")
    parser.add_argument("--sheet-name", help="Sheet (tab) name override")
    parser.add_argument("--folder-id", help="Drive folder id override")
    parser.add_argument("--api-key", help="Google API key override (enables the Drive REST API listing)")
    parser.add_argument("--output", type=Path, help="Also write the JSON report to this file")
    parser.add_argument("--stats", action="store_true", help="Print ledger statistics after the sync")
    return parser.parse_args(argv)


def _print_progress(progress) -> None:
    counter = f" [{progress.current}/{progress.total}]" if progress.total else ""
    print(f"- {progress.stage}: {progress.message}{counter}", file=sys.stderr)


async def _run(args: argparse.Namespace) -> int:
    # Imported late so --db-url is in place before the engine is created.
    from budget_ledger.config import build_sources, build_sync_config
    from budget_ledger.extraction_provider import build_extraction_provider
    from budget_ledger.persistence.database import SessionLocal, init_db
    from budget_ledger.persistence.ledger_store import DocumentLedgerStore
    from budget_ledger.persistence.settings_store import SettingsStore
    from budget_ledger.stats import compute_stats
    from budget_ledger.sync import SyncOrchestrator

    init_db()
    ledger_store = DocumentLedgerStore(SessionLocal)
    settings_store = SettingsStore(SessionLocal)

    provider_settings = load_provider_settings()
    provider = build_extraction_provider(provider_settings.provider_name, settings=provider_settings)

    config = build_sync_config(settings_store.load())
    overrides = {
        "spreadsheet_id": args.sheet_id,
        "sheet_name": args.sheet_name,
        "drive_folder_id": args.folder_id,
        "google_api_key": args.api_key,
    }
    config = replace(config, **{key: value for key, value in overrides.items() if value})

    sheet_source, drive_source = build_sources(config)
    orchestrator = SyncOrchestrator(
        ledger_store,
        sheet_source,
        drive_source,
        provider,
        config,
        on_progress=_print_progress,
        history=settings_store,
    )
    report = await orchestrator.run()

    output = {"report": report.to_dict()}
    if args.stats:
        output["stats"] = asdict(compute_stats(ledger_store.get_all()))

    rendered = json.dumps(output, indent=2, ensure_ascii=False)
    print(rendered)
    if args.output:
        args.output.write_text(rendered, encoding="utf-8")

    return 1 if report.errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.db_url:
        os.environ["LEDGER_DB_URL"] = args.db_url
    if args.provider:
        os.environ["EXTRACTION_PROVIDER"] = args.provider

    configure_logging("budget-ledger-sync")
    try:
        return asyncio.run(_run(args))
    except ProviderSettingsError as exc:
        print(f"Invalid provider configuration: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
