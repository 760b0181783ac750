"""
Blob store for payment evidence.

Files are written under MEDIA_ROOT and served by the web front (nginx or
similar) under MEDIA_BASE_URL. Keys are chosen by the caller, so the same key
always maps to the same URL; that is what makes a retried deposit submit
reuse an earlier upload.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from arena.services.errors import UploadFailed

logger = logging.getLogger(__name__)

# Leading bytes → file extension
_SIGNATURES = (
    (b"\xff\xd8\xff", ".jpg"),
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
    (b"%PDF-", ".pdf"),
)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def detect_extension(data: bytes) -> Optional[str]:
    for magic, ext in _SIGNATURES:
        if data.startswith(magic):
            return ext
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    return None


class LocalBlobStore:
    def __init__(self, root: Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid blob key: {key}")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def find(self, key_stem: str) -> Optional[str]:
        """Key of an existing blob stored under `key_stem` with any extension."""
        parent = self._path(key_stem).parent
        if not parent.is_dir():
            return None
        name = PurePosixPath(key_stem).name
        matches = [p for p in sorted(parent.glob(f"{name}.*")) if p.suffix != ".part"]
        if not matches:
            return None
        return str(PurePosixPath(key_stem).parent / matches[0].name)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    async def upload_image(self, data: bytes, key_stem: str, allow_pdf: bool = False) -> str:
        """
        Store `data` under `key_stem` + detected extension and return its URL.

        Raises UploadFailed for empty, oversized or non-image payloads and for
        filesystem errors.
        """
        if not data:
            raise UploadFailed("The uploaded file is empty.")
        if len(data) > MAX_UPLOAD_BYTES:
            raise UploadFailed("The uploaded file is larger than 10 MB.")

        ext = detect_extension(data)
        if ext is None or (ext == ".pdf" and not allow_pdf):
            raise UploadFailed("Only JPEG, PNG, GIF or WEBP images are accepted.")

        key = f"{key_stem}{ext}"
        path = self._path(key)
        try:
            await asyncio.to_thread(_write_atomic, path, data)
        except OSError as exc:
            logger.error("Blob write failed for %s: %s", key, exc)
            raise UploadFailed() from exc

        logger.info("Stored blob %s (%d bytes)", key, len(data))
        return self.url_for(key)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".part")
    tmp.write_bytes(data)
    tmp.replace(path)
