"""AudioService: speech synthesis, transcription and per-user audio history.

Generated speech is written to uploads/audio as ``audio_<ts>.mp3`` and
referenced by ``/uploads/audio/<name>``. Uploaded clips without a usable
extension are sniffed by magic number before transcription.
"""

import io
import zipfile
from datetime import datetime
from pathlib import Path, PurePosixPath

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.exceptions import NotFoundError
from talko.core.llm_client import AIClient
from talko.db.models.media import UserAudio
from talko.services import storage

logger = structlog.get_logger(__name__)

TEXT_TO_SPEECH = "text_to_speech"
SPEECH_TO_TEXT = "speech_to_text"

SUPPORTED_EXTENSIONS = (".flac", ".m4a", ".mp3", ".mp4", ".mpeg", ".mpga", ".oga", ".ogg", ".wav", ".webm")

# Hex prefixes of the first four bytes
_MAGIC_PREFIXES: tuple[tuple[str, str], ...] = (
    ("4944330", ".mp3"),  # ID3 tag
    ("fffb", ".mp3"),  # MPEG frame sync
    ("52494646", ".wav"),  # RIFF
    ("4f676753", ".ogg"),  # OggS
)


def sniff_audio_extension(header: bytes) -> str:
    """Guess an audio extension from leading bytes; defaults to .wav."""
    hex_header = header[:4].hex().lower()
    for prefix, extension in _MAGIC_PREFIXES:
        if hex_header.startswith(prefix):
            return extension
    return ".wav"


def ensure_audio_extension(path: Path) -> Path:
    """Rename ``path`` with a sniffed extension when its own is missing or unsupported."""
    if path.suffix.lower() in SUPPORTED_EXTENSIONS:
        return path

    with path.open("rb") as fh:
        extension = sniff_audio_extension(fh.read(4))
    renamed = path.with_name(path.name + extension)
    path.rename(renamed)
    logger.info("audio_extension_detected", filename=renamed.name, extension=extension)
    return renamed


def archive_name(text: str | None, fallback: str, extension: str) -> str:
    """Filesystem-safe archive entry name built from the first 30 chars of ``text``."""
    if not text:
        return fallback
    base = "".join(ch if ch.isascii() and ch.isalnum() else "_" for ch in text[:30])
    while "__" in base:
        base = base.replace("__", "_")
    return f"{base.lower()}{extension}"


class AudioService:
    """Vendor calls plus UserAudio persistence for the audio endpoints."""

    def __init__(self, ai: AIClient):
        self.ai = ai

    async def generate_speech(self, text: str, voice: str | None = None) -> tuple[str, str]:
        """Synthesize and store speech.

        Returns:
            Tuple of (filename, audio_url)
        """
        data = await self.ai.speech(text, voice)
        filename = storage.timestamped_name("audio", ".mp3")
        storage.write_bytes("audio", filename, data)
        logger.info("speech_generated", filename=filename, size=len(data))
        return filename, storage.public_url("audio", filename)

    async def transcribe(self, path: Path) -> tuple[Path, str]:
        """Transcribe an uploaded clip, fixing its extension first.

        Returns:
            Tuple of (final path, transcription text)
        """
        path = ensure_audio_extension(path)
        text = await self.ai.transcribe(path.name, path.read_bytes())
        return path, text

    @staticmethod
    async def save_record(
        session: AsyncSession,
        user_id: str,
        kind: str,
        text: str | None,
        audio_url: str,
    ) -> UserAudio | None:
        """Best-effort history write; failures are logged and the request proceeds."""
        record = UserAudio(
            user_id=user_id,
            type=kind,
            text=text,
            audio_url=audio_url,
            file_name=PurePosixPath(audio_url).name,
            confidence=1.0,
        )
        try:
            session.add(record)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.warning("audio_history_save_failed", user_id=user_id, error=str(exc), error_type=type(exc).__name__)
            return None
        return record

    @staticmethod
    async def history(session: AsyncSession, user_id: str) -> list[UserAudio]:
        result = await session.execute(
            select(UserAudio).where(UserAudio.user_id == user_id).order_by(UserAudio.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_owned(session: AsyncSession, audio_id: str, user_id: str, kind: str | None = None) -> UserAudio:
        query = select(UserAudio).where(UserAudio.id == audio_id, UserAudio.user_id == user_id)
        if kind is not None:
            query = query.where(UserAudio.type == kind)
        record = (await session.execute(query)).scalar_one_or_none()
        if record is None:
            raise NotFoundError("Audio not found or not authorized")
        return record

    @staticmethod
    async def list_owned(
        session: AsyncSession,
        audio_ids: list[str],
        user_id: str,
        kind: str | None = None,
    ) -> list[UserAudio]:
        query = select(UserAudio).where(UserAudio.id.in_(audio_ids), UserAudio.user_id == user_id)
        if kind is not None:
            query = query.where(UserAudio.type == kind)
        result = await session.execute(query.order_by(UserAudio.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def delete(session: AsyncSession, record: UserAudio) -> None:
        """Remove the record and its file."""
        if record.audio_url:
            removed = storage.remove_file(locate_file(record))
            logger.info("audio_file_removed", audio_id=record.id, removed=removed)
        await session.delete(record)
        await session.commit()


def locate_file(record: UserAudio) -> Path | None:
    """Find a record's file on disk: by stored URL, then by basename under uploads/audio."""
    if not record.audio_url:
        return None
    by_url = storage.path_from_url(record.audio_url)
    if by_url is not None and by_url.is_file():
        return by_url
    by_name = storage.safe_child(storage.upload_dir("audio"), PurePosixPath(record.audio_url).name)
    if by_name is not None and by_name.is_file():
        return by_name
    return None


def build_audio_zip(records: list[UserAudio]) -> tuple[bytes, int]:
    """Zip the files behind ``records``.

    Entries are named after their text. Transcriptions also get a ``.txt``
    sidecar with the text.

    Returns:
        Tuple of (zip bytes, number of files added)
    """
    buffer = io.BytesIO()
    added = 0
    used_names: set[str] = set()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for record in records:
            path = locate_file(record)
            if path is None:
                logger.warning("audio_zip_file_missing", audio_id=record.id, audio_url=record.audio_url)
                continue

            extension = ".mp3" if record.type == TEXT_TO_SPEECH else path.suffix
            name = _unique(archive_name(record.text, path.name, extension), used_names)
            archive.write(path, arcname=name)
            added += 1

            if record.type == SPEECH_TO_TEXT and record.text:
                archive.writestr(_unique(f"{Path(name).stem}.txt", used_names), record.text)

    logger.info("audio_zip_built", requested=len(records), added=added)
    return buffer.getvalue(), added


def _unique(name: str, used: set[str]) -> str:
    candidate = name
    counter = 1
    while candidate in used:
        stem, suffix = Path(name).stem, Path(name).suffix
        candidate = f"{stem}_{counter}{suffix}"
        counter += 1
    used.add(candidate)
    return candidate


def zip_filename(prefix: str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"{prefix}-{int(now.timestamp() * 1000)}.zip"
