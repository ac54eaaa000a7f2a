"""Upload tree layout and file persistence.

Files live under ``<UPLOADS_DIR>/{audio,documents,images}``. Stored URLs use
the ``/uploads/<kind>/<name>`` form and resolve against the directory that
contains the uploads tree.
"""

import time
import uuid
from pathlib import Path, PurePosixPath

import structlog
from fastapi import UploadFile

from talko.core.config import get_settings
from talko.core.exceptions import PayloadTooLargeError, ValidationError

logger = structlog.get_logger(__name__)

UPLOAD_KINDS = ("audio", "documents", "images")
_CHUNK_SIZE = 1024 * 1024


def uploads_root() -> Path:
    return Path(get_settings().uploads_dir).resolve()


def upload_dir(kind: str) -> Path:
    return uploads_root() / kind


def ensure_upload_dirs() -> None:
    for kind in UPLOAD_KINDS:
        upload_dir(kind).mkdir(parents=True, exist_ok=True)


def timestamped_name(prefix: str, extension: str) -> str:
    """``<prefix>_<epoch ms>_<suffix><ext>``; the suffix keeps same-millisecond writes apart."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}{extension}"


def public_url(kind: str, filename: str) -> str:
    return f"/uploads/{kind}/{filename}"


def safe_child(directory: Path, name: str) -> Path | None:
    """Join ``name`` onto ``directory`` unless it escapes it."""
    candidate = (directory / name).resolve()
    if candidate.parent != directory.resolve():
        return None
    return candidate


def path_from_url(url: str) -> Path | None:
    """Resolve a stored ``/uploads/...`` URL to a path inside the uploads tree."""
    relative = PurePosixPath(url.lstrip("/"))
    root = uploads_root()
    candidate = (root.parent / relative).resolve()
    if not candidate.is_relative_to(root):
        return None
    return candidate


def write_bytes(kind: str, filename: str, data: bytes) -> Path:
    directory = upload_dir(kind)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_bytes(data)
    return path


async def save_upload(upload: UploadFile | None, kind: str, field: str) -> tuple[Path, int]:
    """Persist a multipart upload under ``kind`` with a random name.

    The original extension is kept. Uploads above MAX_FILE_SIZE are removed
    and rejected with 413.

    Returns:
        Tuple of (stored path, size in bytes)
    """
    if upload is None or not upload.filename:
        raise ValidationError(f"No file uploaded. Please upload a file using the field name \"{field}\".")

    settings = get_settings()
    directory = upload_dir(kind)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{uuid.uuid4().hex}{Path(upload.filename).suffix.lower()}"

    size = 0
    with path.open("wb") as out:
        while chunk := await upload.read(_CHUNK_SIZE):
            size += len(chunk)
            if size > settings.max_file_size:
                break
            out.write(chunk)

    if size > settings.max_file_size:
        path.unlink(missing_ok=True)
        logger.info("upload_rejected", kind=kind, reason="too_large", limit=settings.max_file_size)
        raise PayloadTooLargeError(f"File exceeds the {settings.max_file_size} byte limit")

    logger.info("upload_saved", kind=kind, filename=path.name, original_name=upload.filename, size=size)
    return path, size


def remove_file(path: Path | None) -> bool:
    """Delete ``path`` if present. Returns whether a file was removed."""
    if path is None or not path.is_file():
        return False
    path.unlink()
    return True
