"""
Object storage client for card attachments.

Cards store attachments as a list of object paths inside the process
bucket. This module lists the bucket, enriches those paths with size,
date and content type, and resolves one-time download URLs. It never
uploads, renames or deletes.

API:
    GET /buckets/{bucket}/files       → { files: [{name, size, updated, content_type, isDir}] }
    GET /buckets/{bucket}/files/{id}  → { download_url }
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
from urllib.parse import quote

import requests

from .errors import MalformedDataError, RemoteReadError
from .schema import parse_timestamp

logger = logging.getLogger(__name__)

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


@dataclass
class StorageFile:
    """One entry of a bucket listing."""
    name: str
    size: int = 0
    updated: Optional[datetime] = None
    content_type: str = ""
    is_dir: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "StorageFile":
        updated = data.get("updated")
        try:
            updated = parse_timestamp(updated)
        except MalformedDataError:
            updated = None
        return cls(
            name=data.get("name") or "",
            size=int(data.get("size") or 0),
            updated=updated,
            content_type=data.get("content_type") or "",
            is_dir=bool(data.get("isDir", False)),
        )

    @property
    def base_name(self) -> str:
        return self.name.rstrip("/").split("/")[-1] or self.name


@dataclass
class AttachedFile:
    """An attachment path resolved against the bucket listing."""
    id: str
    name: str
    path: str
    size: int
    mod_date: Optional[datetime]
    content_type: str

    @classmethod
    def from_storage(cls, f: StorageFile) -> "AttachedFile":
        return cls(
            id=f.name,
            name=f.base_name,
            path=f.name,
            size=f.size,
            mod_date=f.updated,
            content_type=f.content_type,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "size_label": format_file_size(self.size),
            "mod_date": self.mod_date.isoformat() if self.mod_date else None,
            "content_type": self.content_type,
        }


def format_file_size(size: int) -> str:
    """Human size, base 1024: 0 → '0 Bytes', 1536 → '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    value, i = float(size), 0
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


class StorageClient:
    """HTTP client for the object storage API."""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg) -> "StorageClient":
        return cls(cfg.storage_url, timeout=cfg.http_timeout)

    def list_files(self, bucket: str) -> List[StorageFile]:
        """Every object in the bucket."""
        url = f"{self.base_url}/buckets/{quote(bucket, safe='')}/files"
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteReadError(f"Error listing bucket {bucket}: {e}")
        if not r.ok:
            raise RemoteReadError(
                f"Error listing bucket {bucket}: HTTP {r.status_code}",
                status_code=r.status_code,
            )
        try:
            data = r.json()
        except ValueError:
            raise RemoteReadError(f"Error listing bucket {bucket}: response is not JSON")
        entries = data.get("files") if isinstance(data, dict) else data
        return [StorageFile.from_dict(f) for f in (entries or [])]

    def download_url(self, bucket: str, file_id: str) -> str:
        """One-time download URL for an object."""
        url = f"{self.base_url}/buckets/{quote(bucket, safe='')}/files/{quote(file_id, safe='/')}"
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteReadError(f"Error getting download URL for {file_id}: {e}")
        if not r.ok:
            try:
                message = r.json().get("message")
            except (ValueError, AttributeError):
                message = None
            raise RemoteReadError(
                f"Error getting download URL: {message or r.reason or r.status_code}",
                status_code=r.status_code,
            )
        try:
            link = r.json().get("download_url")
        except (ValueError, AttributeError):
            link = None
        if not link:
            raise RemoteReadError(f"No download_url returned for {file_id}")
        return link

    def selectable_files(self, bucket: str) -> List[AttachedFile]:
        """Files that can be attached to a card: no directories, sorted by name."""
        files = [
            AttachedFile.from_storage(f)
            for f in self.list_files(bucket)
            if f.name and not f.name.endswith("/") and not f.is_dir
        ]
        return sorted(files, key=lambda f: f.name.casefold())

    async def describe_attachments(
        self, bucket: str, paths: Sequence[str]
    ) -> List[AttachedFile]:
        """
        Resolve attachment paths to file details.

        One listing request per path, all in flight at once. Paths that
        are missing from the bucket, or whose request fails, are skipped.
        """
        if not bucket or not paths:
            return []

        async def _describe(path: str) -> Optional[AttachedFile]:
            try:
                listing = await asyncio.to_thread(self.list_files, bucket)
            except RemoteReadError as e:
                logger.error(f"Error fetching details for file {path}: {e}")
                return None
            for f in listing:
                if f.name == path:
                    return AttachedFile.from_storage(f)
            return None

        results = await asyncio.gather(*(_describe(p) for p in paths))
        return [f for f in results if f is not None]
