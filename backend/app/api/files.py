"""Serves locally stored objects to holders of a signed token."""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from backend.app.services.storage import LocalStorageService, get_storage

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{key:path}")
async def download_file(key: str, token: str, storage: LocalStorageService = Depends(get_storage)):
    path = storage.resolve_signed(key, token)
    return FileResponse(path)
