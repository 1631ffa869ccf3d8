from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from budget_ledger.models.drive_file import DriveFile
from budget_ledger.parsers.sheet_rows import SheetCell


class SourceUnavailableError(RuntimeError):
    """An external source could not be reached or returned an unusable payload."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


@runtime_checkable
class SheetSource(Protocol):
    async def fetch_rows(self) -> List[List[SheetCell]]:
        ...


@runtime_checkable
class DriveSource(Protocol):
    async def list_files(self) -> List[DriveFile]:
        ...

    async def download(self, file: DriveFile) -> bytes:
        ...
