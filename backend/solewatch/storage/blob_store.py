"""Blob storage for the catalog and alert documents.

Documents are addressed by key (``deals.json``, ``alerts.json``). Writes
replace the whole blob; the last write wins.
"""

import asyncio
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BlobRef:
    key: str
    url: str
    size: int
    uploaded_at: datetime


class BlobStore(ABC):
    """Key/value store for JSON documents."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Public URL of a blob, or None if it does not exist."""

    @abstractmethod
    async def put(self, key: str, content: str) -> str:
        """Write a blob, replacing any previous content. Returns its URL."""

    @abstractmethod
    async def list(self, prefix: str = "") -> List[BlobRef]:
        """Blobs whose key starts with ``prefix``."""

    @abstractmethod
    async def read(self, key: str) -> Optional[str]:
        """Blob content as text, or None if it does not exist."""


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory on the local filesystem.

    Writes go to a temporary file that is renamed into place, so readers
    never observe a half-written document.
    """

    def __init__(self, root: str, public_base_url: Optional[str] = None):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes store root: {key!r}")
        return path

    def _url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self._path(key).as_uri()

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        exists = await asyncio.to_thread(path.is_file)
        return self._url(key) if exists else None

    async def put(self, key: str, content: str) -> str:
        path = self._path(key)
        await asyncio.to_thread(self._write, path, content)
        logger.info("blob_written", key=key, bytes=len(content.encode("utf-8")))
        return self._url(key)

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)

    async def list(self, prefix: str = "") -> List[BlobRef]:
        return await asyncio.to_thread(self._list, prefix)

    def _list(self, prefix: str) -> List[BlobRef]:
        if not self.root.is_dir():
            return []
        refs = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.name.startswith("."):
                continue
            key = path.relative_to(self.root).as_posix()
            if not key.startswith(prefix):
                continue
            stat = path.stat()
            refs.append(
                BlobRef(
                    key=key,
                    url=self._url(key),
                    size=stat.st_size,
                    uploaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return refs

    async def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
