from __future__ import annotations

"""
Provider abstraction for reading quote fields out of PDF documents.

The sync orchestrator hands each new quote file to an `ExtractionProvider` and gets
back an `ExtractedBudget` whose fields are all optional. Providers never apply
defaults; `budget_from_extraction` does that in one place. A provider that cannot
produce fields for a file raises `ExtractionError`, which the orchestrator counts as a
per-file failure without aborting the batch.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Protocol, runtime_checkable

from budget_ledger.models.drive_file import PDF_MIME_TYPE
from budget_ledger.models.extraction import ExtractedBudget

FIXTURE_ENV_VAR = "EXTRACTION_PROVIDER_FIXTURE"
DEFAULT_FIXTURE_KEY = "default"


class ExtractionError(RuntimeError):
    """The provider could not produce fields for one document."""


@dataclass(slots=True)
class ExtractionRequest:
    """
    Contract for extraction inputs.

    Attributes:
        content: Raw document bytes as downloaded from the file source.
        file_name: Original file name; useful context for the model and the only
            input the deterministic provider looks at.
        mime_type: Content type of `content` (PDF for every file the scanner emits).
    """

    content: bytes
    file_name: str
    mime_type: str = PDF_MIME_TYPE


@runtime_checkable
class ExtractionProvider(Protocol):
    """
    Pluggable interface for document extraction.

    Providers expose a `name` (used in logs and /health) and a blocking `extract`
    call; the orchestrator runs it off the event loop.
    """

    name: str

    def extract(self, request: ExtractionRequest) -> ExtractedBudget:
        ...


class DeterministicExtractionProvider:
    """
    Offline provider that only reads the file name.

    Every other field stays absent so the placeholder defaults apply; useful when no
    model is configured, and it never fails.
    """

    name = "deterministic"

    def extract(self, request: ExtractionRequest) -> ExtractedBudget:
        stem = Path(request.file_name).stem.strip()
        return ExtractedBudget(service_description=stem or None)


class MockExtractionProvider:
    """
    Fixture-driven provider used for tests and offline development.

    The fixture is a JSON object mapping file names to extracted fields, with an
    optional `default` entry for files not listed. A file with neither raises
    ExtractionError, which lets tests exercise the per-file failure path.
    """

    name = "mock"

    def __init__(self, fixture_path: str | Path | None = None):
        candidate = fixture_path or os.getenv(FIXTURE_ENV_VAR) or _default_fixture_path()
        self._fixture_path = Path(candidate)
        if not self._fixture_path.exists():
            raise FileNotFoundError(f"Mock extraction provider fixture not found at {self._fixture_path}")

    def extract(self, request: ExtractionRequest) -> ExtractedBudget:
        fixture = self._load_fixture()
        entry = fixture.get(request.file_name, fixture.get(DEFAULT_FIXTURE_KEY))
        if not isinstance(entry, dict):
            raise ExtractionError(f"No mock extraction fixture for '{request.file_name}'")
        return ExtractedBudget.from_payload(entry)

    def _load_fixture(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._fixture_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Mock extraction provider fixture is not valid JSON: {self._fixture_path}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Mock extraction provider fixture must be a JSON object: {self._fixture_path}")
        return payload


def _default_fixture_path() -> Path:
    return Path(__file__).resolve().parent / "fixtures" / "mock_extraction.json"


def build_extraction_provider(name: str | None, *, settings: Any | None = None) -> ExtractionProvider:
    """
    Factory that instantiates the requested extraction provider.

    Args:
        name: Provider identifier supplied via configuration or env vars.
        settings: ProviderSettings; required for the `openai` provider.
    """

    normalized = (name or "").strip().lower()
    if normalized in ("", "deterministic"):
        return DeterministicExtractionProvider()
    if normalized == "mock":
        return MockExtractionProvider()
    if normalized == "openai":
        if settings is None or getattr(settings, "openai", None) is None:
            raise ValueError("The openai extraction provider needs ProviderSettings with an OpenAI config")
        from budget_ledger.providers.openai_extraction import OpenAIExtractionProvider

        return OpenAIExtractionProvider(settings=settings)

    raise ValueError(f"Unsupported extraction provider '{name}'")
