"""Pytest configuration for the ledger test suite.

Puts `services/` on sys.path and points the ledger database at a throwaway SQLite
file before any application module creates its engine.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

SERVICES_ROOT = Path(__file__).resolve().parents[1] / "services"
if str(SERVICES_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICES_ROOT))

_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="budget-ledger-tests-"))
os.environ["LEDGER_DB_URL"] = f"sqlite:///{_TEST_DB_DIR / 'ledger.db'}"
os.environ.setdefault("EXTRACTION_PROVIDER", "deterministic")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
