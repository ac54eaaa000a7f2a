"""Audio routes: speech synthesis, transcription, streaming and history.

/stream is public so generated audio plays without a token; download,
history, export and delete require a signed-in user.
"""

import time

import structlog
from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from talko.api.schemas.requests import AudioIdsRequest, TextToSpeechRequest
from talko.core.auth import require_auth
from talko.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from talko.core.feature_gate import FeatureAccess, require_feature
from talko.core.llm_client import AIClient, get_ai_client
from talko.db.base import get_db_session
from talko.db.models.user import User
from talko.domain.features import FeatureType
from talko.services import storage
from talko.services.audio_service import (
    SPEECH_TO_TEXT,
    TEXT_TO_SPEECH,
    AudioService,
    build_audio_zip,
    zip_filename,
)
from talko.services.media_streaming import resolve_audio_path, stream_file
from talko.services.transcript_export import build_export_zip, render, resolve_format

logger = structlog.get_logger(__name__)

router = APIRouter()


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.post("/text-to-speech")
@router.post("/generate-speech")
async def text_to_speech(
    body: TextToSpeechRequest,
    access: FeatureAccess = Depends(require_feature(FeatureType.TEXT_TO_SPEECH)),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    ctx = await access.consume()
    service = AudioService(ai)
    filename, audio_url = await service.generate_speech(body.text, body.voice)

    if ctx.is_authenticated:
        record = await service.save_record(session, ctx.user_id, TEXT_TO_SPEECH, body.text, audio_url)
        access.link_resource("audio", record.id if record else None)

    stream_url = f"/api/audio/stream/{filename}"
    return {
        "success": True,
        "audioUrl": stream_url,
        "streamUrl": stream_url,
        "downloadUrl": f"/api/audio/download/{filename}" if ctx.is_authenticated else None,
        "canDownload": ctx.is_authenticated,
        "message": None if ctx.is_authenticated else "Log in to download and save your generated audio",
    }


@router.post("/speech-to-text")
async def speech_to_text(
    audio: UploadFile | None = File(None),
    access: FeatureAccess = Depends(require_feature(FeatureType.SPEECH_TO_TEXT)),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    path, _ = await storage.save_upload(audio, "audio", "audio")
    try:
        ctx = await access.consume()
    except AccessDeniedError:
        storage.remove_file(path)
        raise

    service = AudioService(ai)
    path, transcription = await service.transcribe(path)

    if ctx.is_authenticated:
        record = await service.save_record(
            session, ctx.user_id, SPEECH_TO_TEXT, transcription, storage.public_url("audio", path.name)
        )
        access.link_resource("audio", record.id if record else None)

    return {
        "success": True,
        "text": transcription,
        "transcription": transcription,
        "confidence": 1.0,
    }


@router.post("/transcribe")
async def transcribe(
    audio: UploadFile | None = File(None),
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    """Ungated transcription for signed-in users."""
    path, _ = await storage.save_upload(audio, "audio", "audio")
    service = AudioService(ai)
    path, transcription = await service.transcribe(path)
    await service.save_record(session, user.id, SPEECH_TO_TEXT, transcription, storage.public_url("audio", path.name))
    return {"success": True, "transcription": transcription}


@router.get("/stream/{identifier}")
async def stream_audio(identifier: str, request: Request, session: AsyncSession = Depends(get_db_session)):
    """Stream by filename or record id, honouring single Range requests."""
    path = await resolve_audio_path(identifier, session)
    return stream_file(path, request.headers.get("range"))


@router.get("/download/{filename}")
async def download_audio(filename: str, user: User = Depends(require_auth)):
    path = storage.safe_child(storage.upload_dir("audio"), filename)
    if path is None or not path.is_file():
        raise NotFoundError("File not found")
    return FileResponse(path, media_type="audio/mpeg", filename=filename)


@router.get("/history")
async def audio_history(user: User = Depends(require_auth), session: AsyncSession = Depends(get_db_session)):
    records = await AudioService.history(session, user.id)
    return {"success": True, "audioHistory": [r.to_dict() for r in records]}


@router.post("/download-zip")
@router.post("/download-multiple")
async def download_zip(
    body: AudioIdsRequest,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    records = await AudioService.list_owned(session, body.audio_ids, user.id)
    if not records:
        raise NotFoundError("No audio files found")

    data, added = build_audio_zip(records)
    if added == 0:
        raise NotFoundError("No audio files found")

    prefix = "audio-file" if len(body.audio_ids) == 1 else "audio-files"
    return Response(content=data, media_type="application/zip", headers=_attachment(zip_filename(prefix)))


@router.get("/export/{audio_id}")
async def export_transcription(
    audio_id: str,
    format: str = Query("txt"),
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    """Export one transcription as txt, json, csv, md or srt."""
    record = await AudioService.get_owned(session, audio_id, user.id, kind=SPEECH_TO_TEXT)
    if not record.text:
        raise ValidationError("No transcription text available for this item")

    export = resolve_format(format)
    filename = f"transcription-{int(time.time() * 1000)}{export.extension}"
    return Response(content=render(record, format), media_type=export.content_type, headers=_attachment(filename))


@router.post("/export-multiple")
async def export_multiple(
    body: AudioIdsRequest,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    records = await AudioService.list_owned(session, body.audio_ids, user.id, kind=SPEECH_TO_TEXT)
    if not records:
        raise NotFoundError("No transcriptions found")

    data, added = build_export_zip(records, body.format)
    logger.info("transcriptions_exported", requested=len(body.audio_ids), added=added, format=body.format)
    return Response(
        content=data,
        media_type="application/zip",
        headers=_attachment(zip_filename(f"transcriptions-{body.format}")),
    )


@router.delete("/{audio_id}")
async def delete_audio(
    audio_id: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    record = await AudioService.get_owned(session, audio_id, user.id)
    await AudioService.delete(session, record)
    return {"success": True, "message": "Audio deleted successfully"}
