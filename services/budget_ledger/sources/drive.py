from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from budget_ledger.models.drive_file import PDF_MIME_TYPE, DriveFile
from budget_ledger.sources.base import SourceUnavailableError
from budget_ledger.sources.http_client import ResilientHttpClient

logger = logging.getLogger(__name__)

SOURCE_NAME = "google_drive"
DRIVE_API_FILES_URL = "https://www.googleapis.com/drive/v3/files"
EMBEDDED_FOLDER_URL = "https://drive.google.com/embeddedfolderview"
PUBLIC_DOWNLOAD_URL = "https://drive.google.com/uc"
WEB_VIEW_LINK_TEMPLATE = "https://drive.google.com/file/d/{file_id}/view"
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, webViewLink, modifiedTime)"
PAGE_SIZE = 1000

# `["<file id>", "<name>.pdf", ...` entries inside the public folder page.
EMBEDDED_ENTRY_PATTERN = re.compile(r'\["([A-Za-z0-9_-]{25,})",\s*"([^"]*\.pdf[^"]*)"', re.IGNORECASE)


class GoogleDriveSource:
    """
    Lists and downloads the quote PDFs of one Drive folder.

    With an API key the Drive v3 REST API is used. Without one the folder must be
    public, and its embedded view page is scraped for file ids and names.
    """

    def __init__(
        self,
        folder_id: str,
        *,
        api_key: Optional[str] = None,
        http_client: Optional[ResilientHttpClient] = None,
    ):
        self.folder_id = folder_id
        self.api_key = api_key or None
        self._http = http_client or ResilientHttpClient()

    async def list_files(self, request_id: Optional[str] = None) -> List[DriveFile]:
        if self.api_key:
            files = await self._list_via_api(request_id)
            method = "api"
        else:
            files = await self._list_via_embedded_view(request_id)
            method = "embedded_view"
        logger.info({"event": "drive_files_listed", "method": method, "files": len(files)})
        return files

    async def download(self, file: DriveFile, request_id: Optional[str] = None) -> bytes:
        if self.api_key:
            url = f"{DRIVE_API_FILES_URL}/{file.id}"
            params = {"alt": "media", "key": self.api_key}
        else:
            url = PUBLIC_DOWNLOAD_URL
            params = {"export": "download", "id": file.id}
        try:
            response, _ = await self._http.get(url, params=params, request_id=request_id)
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(SOURCE_NAME, f"download of {file.id} failed ({type(exc).__name__})") from exc
        return response.content

    async def _list_via_api(self, request_id: Optional[str]) -> List[DriveFile]:
        files: List[DriveFile] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {
                "q": f"'{self.folder_id}' in parents and mimeType='{PDF_MIME_TYPE}' and trashed=false",
                "fields": LIST_FIELDS,
                "pageSize": PAGE_SIZE,
                "key": self.api_key,
            }
            if page_token:
                params["pageToken"] = page_token

            payload = await self._get_json(DRIVE_API_FILES_URL, params=params, request_id=request_id)
            for item in payload.get("files") or []:
                if isinstance(item, dict) and item.get("id") and item.get("name"):
                    files.append(_file_from_api(item))

            page_token = payload.get("nextPageToken")
            if not page_token:
                return files

    async def _list_via_embedded_view(self, request_id: Optional[str]) -> List[DriveFile]:
        try:
            response, _ = await self._http.get(
                EMBEDDED_FOLDER_URL,
                params={"id": self.folder_id},
                request_id=request_id,
            )
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(SOURCE_NAME, f"folder listing failed ({type(exc).__name__})") from exc
        return parse_embedded_folder_view(response.text)

    async def _get_json(self, url: str, *, params: Dict[str, Any], request_id: Optional[str]) -> Dict[str, Any]:
        try:
            response, _ = await self._http.get(url, params=params, request_id=request_id)
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(SOURCE_NAME, f"folder listing failed ({type(exc).__name__})") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceUnavailableError(SOURCE_NAME, "folder listing was not valid JSON") from exc
        if not isinstance(payload, dict):
            raise SourceUnavailableError(SOURCE_NAME, "folder listing was not a JSON object")
        return payload


def parse_embedded_folder_view(html: str) -> List[DriveFile]:
    """Pull `(id, name)` pairs of PDFs out of a public folder page, first occurrence per id."""

    files: List[DriveFile] = []
    seen: set[str] = set()
    for match in EMBEDDED_ENTRY_PATTERN.finditer(html):
        file_id, name = match.group(1), match.group(2)
        if file_id in seen:
            continue
        seen.add(file_id)
        files.append(
            DriveFile(
                id=file_id,
                name=name,
                mime_type=PDF_MIME_TYPE,
                web_view_link=WEB_VIEW_LINK_TEMPLATE.format(file_id=file_id),
            )
        )
    return files


def _file_from_api(item: Dict[str, Any]) -> DriveFile:
    file_id = str(item["id"])
    return DriveFile(
        id=file_id,
        name=str(item["name"]),
        mime_type=str(item.get("mimeType") or PDF_MIME_TYPE),
        web_view_link=str(item.get("webViewLink") or WEB_VIEW_LINK_TEMPLATE.format(file_id=file_id)),
        modified_time=str(item.get("modifiedTime") or ""),
    )
