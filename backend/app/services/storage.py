"""Object storage backed by the local filesystem.

Objects live under ``settings.media_root/<folder>/<uuid><ext>``. Reads go
through ``/files/{key}`` and require a signed, expiring token.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException, status

from backend.app.core.security import create_signed_token, decode_signed_token
from backend.app.core.settings import get_settings

logger = logging.getLogger(__name__)

FILE_TOKEN_PURPOSE = "file"
DEFAULT_SIGNED_URL_TTL = 3600


class StorageError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class LocalStorageService:
    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None):
        settings = get_settings()
        self.root = Path(root or settings.media_root).resolve()
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file key")
        return path

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/files/{quote(key)}"

    def upload(self, data: bytes, original_name: str, folder: str) -> dict:
        ext = os.path.splitext(original_name or "")[1].lower()
        key = f"{folder}/{uuid.uuid4().hex}{ext}"
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Storage upload failed for %s: %s", key, exc)
            raise StorageError(f"File upload failed: {exc}") from exc
        logger.info("Stored %s (%d bytes)", key, len(data))
        return {"url": self.public_url(key), "key": key}

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Storage delete failed for %s: %s", key, exc)
            raise StorageError(f"File deletion failed: {exc}") from exc

    def signed_url(self, key: str, expires_in: int = DEFAULT_SIGNED_URL_TTL) -> str:
        token = create_signed_token(FILE_TOKEN_PURPOSE, {"key": key}, expires_in)
        return f"{self.public_url(key)}?token={token}"

    def resolve_signed(self, key: str, token: str) -> Path:
        try:
            payload = decode_signed_token(token, FILE_TOKEN_PURPOSE)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
        if payload.get("key") != key:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token does not match file")
        path = self._path_for(key)
        if not path.is_file():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
        return path

    def health_check(self) -> dict:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            writable = os.access(self.root, os.W_OK)
        except OSError as exc:
            logger.error("Storage health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}
        return {"status": "ok" if writable else "error", "backend": "local", "writable": writable}


_storage_instance = None


def get_storage() -> LocalStorageService:
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = LocalStorageService()
    return _storage_instance
