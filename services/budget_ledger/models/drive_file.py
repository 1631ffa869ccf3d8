from __future__ import annotations

from dataclasses import dataclass

PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True, slots=True)
class DriveFile:
    """One entry of a cloud folder listing, as returned by the file source."""

    id: str
    name: str
    mime_type: str = PDF_MIME_TYPE
    web_view_link: str = ""
    modified_time: str = ""


@dataclass(frozen=True, slots=True)
class ScannedFile:
    """A listing entry the scanner matched to a project reference."""

    file: DriveFile
    pr_code: str
    revision: int
