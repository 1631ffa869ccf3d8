from __future__ import annotations

import logging
from collections.abc import Iterable

from budget_ledger.models.drive_file import DriveFile, ScannedFile
from budget_ledger.parsers.normalizers import extract_pr_code, extract_revision_number

logger = logging.getLogger(__name__)


def scan_file(file: DriveFile) -> ScannedFile | None:
    """Attach PR code and revision to a listing entry; None when the name has no PR code."""

    pr_code = extract_pr_code(file.name)
    if pr_code is None:
        return None
    return ScannedFile(file=file, pr_code=pr_code, revision=extract_revision_number(file.name))


def scan_latest_revisions(files: Iterable[DriveFile]) -> list[ScannedFile]:
    """
    Keep one file per PR code: the one with the highest revision number.

    Ties keep the first file seen. Listing order from the source is not stable, so which
    of two equal revisions wins can differ between runs. Files whose names carry no PR
    code are dropped since they cannot be matched against the ledger.
    """

    latest: dict[str, ScannedFile] = {}
    skipped = 0
    total = 0
    for file in files:
        total += 1
        scanned = scan_file(file)
        if scanned is None:
            skipped += 1
            continue
        current = latest.get(scanned.pr_code)
        if current is None or scanned.revision > current.revision:
            latest[scanned.pr_code] = scanned

    logger.info(
        {
            "event": "file_scan_completed",
            "listed_files": total,
            "files_without_pr_code": skipped,
            "distinct_pr_codes": len(latest),
        }
    )
    return list(latest.values())
