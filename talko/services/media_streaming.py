"""Audio file resolution and HTTP Range streaming.

Lookup order for a stream identifier:
1. A file of that name directly under uploads/audio
2. A UserAudio record id whose audio_url basename is under uploads/audio
3. That record's audio_url resolved against the uploads tree
"""

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import structlog
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.exceptions import NotFoundError, RangeNotSatisfiableError
from talko.db.models.media import UserAudio
from talko.services import storage

logger = structlog.get_logger(__name__)

CONTENT_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".webm": "audio/webm",
}
DEFAULT_CONTENT_TYPE = "audio/mpeg"
CACHE_CONTROL = "public, max-age=3600"
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def content_type_for(path: Path | str) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def parse_range(header: str | None, size: int) -> ByteRange | None:
    """Parse a single ``bytes=start-end`` range against a resource of ``size`` bytes.

    Returns None when there is no usable Range header (serve the whole file).
    The end is clamped to ``size - 1``; a suffix range ``bytes=-N`` selects the
    last N bytes. Raises RangeNotSatisfiableError when the start lies at or
    beyond the end of the resource.
    """
    if not header or not header.strip().lower().startswith("bytes="):
        return None

    range_spec = header.strip()[len("bytes="):].split(",")[0].strip()
    start_text, sep, end_text = range_spec.partition("-")
    if not sep:
        return None

    try:
        if not start_text:
            suffix = int(end_text)
            if suffix <= 0 or size == 0:
                raise RangeNotSatisfiableError(size)
            return ByteRange(max(0, size - suffix), size - 1)

        start = int(start_text)
        end = int(end_text) if end_text else size - 1
    except ValueError:
        return None

    if start < 0 or start >= size:
        raise RangeNotSatisfiableError(size)
    end = min(end, size - 1)
    if end < start:
        raise RangeNotSatisfiableError(size)
    return ByteRange(start, end)


def _is_file(path: Path | None) -> bool:
    return path is not None and path.is_file()


async def resolve_audio_path(identifier: str, session: AsyncSession) -> Path:
    """Locate the audio file for a filename or record id, or raise NotFoundError."""
    audio_dir = storage.upload_dir("audio")

    direct = storage.safe_child(audio_dir, identifier)
    if _is_file(direct):
        return direct

    record = await session.get(UserAudio, identifier)
    if record is not None and record.audio_url:
        by_name = storage.safe_child(audio_dir, PurePosixPath(record.audio_url).name)
        if _is_file(by_name):
            return by_name

        by_url = storage.path_from_url(record.audio_url)
        if _is_file(by_url):
            return by_url

    logger.info("audio_stream_not_found", identifier=identifier)
    raise NotFoundError(f"File {identifier} could not be located")


def _iter_file(path: Path, start: int, length: int):
    with path.open("rb") as fh:
        fh.seek(start)
        remaining = length
        while remaining > 0:
            chunk = fh.read(min(_CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def stream_file(path: Path, range_header: str | None = None) -> StreamingResponse:
    """Build a 200 or 206 streaming response for ``path``."""
    size = os.stat(path).st_size
    headers = {
        "Accept-Ranges": "bytes",
        "Cache-Control": CACHE_CONTROL,
    }
    media_type = content_type_for(path)

    byte_range = parse_range(range_header, size)
    if byte_range is None:
        headers["Content-Length"] = str(size)
        return StreamingResponse(_iter_file(path, 0, size), status_code=200, headers=headers, media_type=media_type)

    logger.debug("audio_stream_range", start=byte_range.start, end=byte_range.end, total=size)
    headers["Content-Range"] = f"bytes {byte_range.start}-{byte_range.end}/{size}"
    headers["Content-Length"] = str(byte_range.length)
    return StreamingResponse(
        _iter_file(path, byte_range.start, byte_range.length),
        status_code=206,
        headers=headers,
        media_type=media_type,
    )
