# app/utils/uploads.py
import logging
import mimetypes
import os
import re
import secrets
import shutil
import time
from os import SEEK_END
from pathlib import Path
from typing import Dict, Optional

from fastapi import HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.models.all_models import local_now

logger = logging.getLogger(__name__)

MB = 1024 * 1024

UPLOAD_CATEGORIES: Dict[str, dict] = {
    "images": {
        "allowed_types": [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp"],
        "max_size": 10 * MB,
        "max_files": 5,
    },
    "medical": {
        "allowed_types": [".dcm", ".dicom", ".jpg", ".jpeg", ".png", ".tiff", ".nii", ".nifti"],
        "max_size": 100 * MB,
        "max_files": 10,
    },
    "documents": {
        "allowed_types": [".pdf", ".doc", ".docx", ".txt", ".rtf"],
        "max_size": 25 * MB,
        "max_files": 5,
    },
    "avatars": {
        "allowed_types": [".jpg", ".jpeg", ".png", ".gif"],
        "max_size": 2 * MB,
        "max_files": 1,
    },
}

# `avatar` is accepted as an alias in serve URLs
CATEGORY_ALIASES = {"avatar": "avatars"}

EXTRA_MIME_TYPES = {
    ".dcm": "application/dicom",
    ".dicom": "application/dicom",
    ".nii": "application/octet-stream",
    ".nifti": "application/octet-stream",
}

def get_category(kind: str) -> dict:
    config = UPLOAD_CATEGORIES.get(CATEGORY_ALIASES.get(kind, kind))
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type"
        )
    return config

def category_dir(kind: str) -> Path:
    return Path(settings.UPLOAD_DIR) / CATEGORY_ALIASES.get(kind, kind)

def format_size(size: int) -> str:
    return f"{round(size / MB)}MB"

def safe_filename(original: str) -> str:
    """`<sanitized-stem>_<timestamp>_<random><ext>` for a client supplied name."""
    base = os.path.basename(original or "")
    stem, ext = os.path.splitext(base)
    stem = re.sub(r"[^a-zA-Z0-9]", "_", stem)[:50] or "file"
    return f"{stem}_{int(time.time() * 1000)}_{secrets.token_hex(8)}{ext.lower()}"

def resolve_path(kind: str, filename: str) -> Path:
    """Path of a stored file; names that would escape the category directory are rejected."""
    get_category(kind)
    if not filename or "/" in filename or "\\" in filename or ".." in filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file name"
        )

    directory = category_dir(kind).resolve()
    path = (directory / filename).resolve()
    if path.parent != directory:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file name"
        )
    return path

def content_type_for(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext in EXTRA_MIME_TYPES:
        return EXTRA_MIME_TYPES[ext]
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"

async def get_upload_file_size(file: UploadFile) -> int:
    """Read size from the underlying file object without loading into memory."""

    def _get_size() -> int:
        stream = file.file
        original_pos = stream.tell()
        try:
            stream.seek(0, SEEK_END)
            return stream.tell()
        finally:
            stream.seek(original_pos)

    return await run_in_threadpool(_get_size)

def check_file_count(kind: str, count: int) -> None:
    config = get_category(kind)
    if count == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files uploaded"
        )
    if count > config["max_files"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Too many files"
        )

async def validate_upload(kind: str, file: UploadFile) -> int:
    config = get_category(kind)
    ext = os.path.splitext(file.filename or "")[1].lower()
    if ext not in config["allowed_types"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed types: {', '.join(config['allowed_types'])}"
        )

    size = await get_upload_file_size(file)
    if size > config["max_size"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File too large"
        )
    return size

async def save_upload(kind: str, file: UploadFile, size: int, uploaded_by=None) -> dict:
    directory = category_dir(kind)
    directory.mkdir(parents=True, exist_ok=True)
    filename = safe_filename(file.filename)
    destination = directory / filename

    def _write() -> None:
        file.file.seek(0)
        with open(destination, "wb") as out:
            shutil.copyfileobj(file.file, out)

    await run_in_threadpool(_write)
    logger.info("Stored %s upload %s (%s bytes)", kind, filename, size)

    return {
        "filename": filename,
        "original_name": file.filename,
        "size": size,
        "mimetype": file.content_type or content_type_for(filename),
        "url": f"/api/uploads/serve/{kind}/{filename}",
        "uploaded_at": local_now(),
        "uploaded_by": str(uploaded_by) if uploaded_by else None,
    }

def remove_upload(kind: str, filename: str) -> None:
    path = resolve_path(kind, filename)
    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found"
        )
    path.unlink()
    logger.info("Deleted %s upload %s", kind, filename)

def stored_avatar_name(url: Optional[str]) -> Optional[str]:
    prefix = "/api/uploads/serve/avatars/"
    if url and url.startswith(prefix):
        return url[len(prefix):]
    return None
