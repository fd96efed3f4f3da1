"""Google Drive API service for file and change-feed operations."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libra.exceptions import DriveNotConnectedError
from libra.services.auth import get_valid_access_token

logger = logging.getLogger(__name__)

FILE_FIELDS = "id, name, mimeType, modifiedTime, size, trashed"


@dataclass
class FileMetadata:
    id: str
    name: str
    mime_type: str
    modified_time: str | None = None
    size: int | None = None
    trashed: bool = False
    web_view_link: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "FileMetadata":
        size = data.get("size")
        try:
            size = int(size) if size is not None else None
        except (TypeError, ValueError):
            size = None
        return cls(
            id=data["id"],
            name=data.get("name") or "Untitled",
            mime_type=data.get("mimeType") or "",
            modified_time=data.get("modifiedTime"),
            size=size or None,
            trashed=bool(data.get("trashed", False)),
            web_view_link=data.get("webViewLink"),
        )


@dataclass
class DriveChange:
    file_id: str | None
    removed: bool
    file: FileMetadata | None = None


@dataclass
class ChangePage:
    changes: list[DriveChange] = field(default_factory=list)
    next_page_token: str | None = None
    new_start_page_token: str | None = None


def escape_query_value(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveService:
    """Service for interacting with the Google Drive v3 API on behalf of one user."""

    DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"

    def __init__(self, access_token: str, client: httpx.AsyncClient):
        self.client = client
        self.headers = {"Authorization": f"Bearer {access_token}"}

    async def _get_json(self, path: str, params: dict) -> dict:
        response = await self.client.get(
            f"{self.DRIVE_API_BASE}{path}",
            headers=self.headers,
            params=params,
        )
        response.raise_for_status()
        return response.json()

    async def list_files(
        self,
        page_token: str | None = None,
        query: str = "trashed = false",
        page_size: int = 100,
    ) -> tuple[list[FileMetadata], str | None]:
        """List one page of the user's files."""
        params = {
            "q": query,
            "fields": f"nextPageToken, files({FILE_FIELDS})",
            "pageSize": page_size,
        }
        if page_token:
            params["pageToken"] = page_token

        data = await self._get_json("/files", params)
        files = [FileMetadata.from_api(f) for f in data.get("files", []) if f.get("id")]
        return files, data.get("nextPageToken")

    async def get_file_metadata(self, file_id: str) -> FileMetadata:
        data = await self._get_json(f"/files/{file_id}", {"fields": FILE_FIELDS})
        return FileMetadata.from_api(data)

    async def search_files(self, query: str, max_results: int = 10) -> list[FileMetadata]:
        """Full-text and name search across the user's Drive."""
        escaped = escape_query_value(query)
        data = await self._get_json(
            "/files",
            {
                "q": f"fullText contains '{escaped}' or name contains '{escaped}'",
                "pageSize": max_results,
                "fields": "files(id, name, mimeType, webViewLink, modifiedTime)",
            },
        )
        return [FileMetadata.from_api(f) for f in data.get("files", []) if f.get("id")]

    @asynccontextmanager
    async def _stream(self, path: str, params: dict) -> AsyncIterator[AsyncIterator[bytes]]:
        async with self.client.stream(
            "GET",
            f"{self.DRIVE_API_BASE}{path}",
            headers=self.headers,
            params=params,
        ) as response:
            response.raise_for_status()
            yield response.aiter_bytes()

    def stream_download(self, file_id: str):
        """Stream a file's content. Use as ``async with drive.stream_download(id) as chunks``."""
        return self._stream(f"/files/{file_id}", {"alt": "media"})

    def stream_export(self, file_id: str, mime_type: str):
        """Stream a Google-native file exported to ``mime_type``."""
        return self._stream(f"/files/{file_id}/export", {"mimeType": mime_type})

    async def get_start_page_token(self) -> str | None:
        data = await self._get_json("/changes/startPageToken", {})
        return data.get("startPageToken")

    async def list_changes(self, page_token: str) -> ChangePage:
        """Fetch one page of the change feed starting at ``page_token``."""
        data = await self._get_json(
            "/changes",
            {
                "pageToken": page_token,
                "fields": (
                    "nextPageToken, newStartPageToken, "
                    "changes(fileId, removed, file(id, name, mimeType, modifiedTime, size, trashed))"
                ),
            },
        )

        changes = []
        for change in data.get("changes", []):
            file_data = change.get("file")
            file = FileMetadata.from_api(file_data) if file_data and file_data.get("id") else None
            changes.append(
                DriveChange(
                    file_id=change.get("fileId") or (file.id if file else None),
                    removed=bool(change.get("removed", False)),
                    file=file,
                )
            )

        return ChangePage(
            changes=changes,
            next_page_token=data.get("nextPageToken"),
            new_start_page_token=data.get("newStartPageToken"),
        )


class DriveClientProvider:
    """Builds a :class:`DriveService` for a user from their stored OAuth tokens."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: httpx.AsyncClient,
    ):
        self.session_factory = session_factory
        self.http_client = http_client

    async def get_client(self, user_id: str) -> DriveService | None:
        """Return a Drive client for the user, or None if Drive is not usable."""
        try:
            async with self.session_factory() as db:
                access_token = await get_valid_access_token(db, user_id, self.http_client)
        except (DriveNotConnectedError, httpx.HTTPError) as e:
            logger.info(f"[DRIVE] No Drive client for user {user_id}: {e}")
            return None
        return DriveService(access_token, self.http_client)
