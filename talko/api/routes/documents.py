"""Document routes: analysis, summaries, text extraction and history.

Uploads are checked for a supported extension before any quota is taken.
Anonymous uploads are removed once processed since no record points at them.
"""

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.auth import require_auth
from talko.core.context import RequestContext
from talko.core.exceptions import TalkoError, UnsupportedFileTypeError
from talko.core.feature_gate import FeatureAccess, require_feature
from talko.core.llm_client import AIClient, get_ai_client
from talko.db.base import get_db_session
from talko.db.models.user import User
from talko.domain.features import FeatureType
from talko.services import storage
from talko.services.document_service import SUPPORTED_EXTENSIONS, DocumentService, extract_text

router = APIRouter()


async def _accept_upload(document: UploadFile | None, access: FeatureAccess) -> tuple[Path, int, RequestContext]:
    """Save, check the extension, then take a quota slot."""
    path, size = await storage.save_upload(document, "documents", "document")
    try:
        if Path(document.filename).suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFileTypeError("Unsupported file type")
        ctx = await access.consume()
    except TalkoError:
        storage.remove_file(path)
        raise
    return path, size, ctx


def _discard_if_anonymous(ctx: RequestContext, path: Path) -> None:
    if not ctx.is_authenticated:
        storage.remove_file(path)


@router.post("/analyze")
async def analyze_document(
    document: UploadFile | None = File(None),
    prompt: str = Form(""),
    access: FeatureAccess = Depends(require_feature(FeatureType.DOCUMENT_ANALYSIS)),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    path, size, ctx = await _accept_upload(document, access)
    try:
        text = extract_text(path, document.filename)
        result = await DocumentService(ai).analyze(text, prompt or None)
    finally:
        _discard_if_anonymous(ctx, path)

    if ctx.is_authenticated:
        record = await DocumentService.save_record(
            session,
            ctx.user_id,
            path,
            document.filename,
            document.content_type,
            size,
            analysis={"prompt": prompt, "result": result},
        )
        access.link_resource("document", record.id)
    return {"success": True, "result": result}


@router.post("/summarize")
async def summarize_document(
    document: UploadFile | None = File(None),
    access: FeatureAccess = Depends(require_feature(FeatureType.DOCUMENT_PROCESSING)),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    path, size, ctx = await _accept_upload(document, access)
    try:
        text = extract_text(path, document.filename)
        summary = await DocumentService(ai).summarize(text)
    finally:
        _discard_if_anonymous(ctx, path)

    if ctx.is_authenticated:
        record = await DocumentService.save_record(
            session, ctx.user_id, path, document.filename, document.content_type, size, summary=summary
        )
        access.link_resource("document", record.id)
    return {"success": True, "summary": summary}


@router.post("/extract-text")
async def extract_document_text(
    document: UploadFile | None = File(None),
    access: FeatureAccess = Depends(require_feature(FeatureType.DOCUMENT_PROCESSING)),
    session: AsyncSession = Depends(get_db_session),
):
    path, size, ctx = await _accept_upload(document, access)
    try:
        text = extract_text(path, document.filename)
    finally:
        _discard_if_anonymous(ctx, path)

    if ctx.is_authenticated:
        record = await DocumentService.save_record(
            session, ctx.user_id, path, document.filename, document.content_type, size, extracted_text=text
        )
        access.link_resource("document", record.id)
    return {"success": True, "extractedText": text}


@router.post("/process")
async def process_document(
    document: UploadFile | None = File(None),
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    """Store an upload and its metadata without calling the model."""
    path, size = await storage.save_upload(document, "documents", "document")
    record = await DocumentService.save_record(session, user.id, path, document.filename, document.content_type, size)
    return {"success": True, "message": "Document processed successfully", "document": record.to_dict()}


@router.get("/history")
async def document_history(user: User = Depends(require_auth), session: AsyncSession = Depends(get_db_session)):
    documents = await DocumentService.history(session, user.id)
    return {"success": True, "documents": [d.to_dict() for d in documents]}


@router.get("/{document_id}")
async def get_document(
    document_id: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    document = await DocumentService.get_owned(session, document_id, user.id)
    return {"success": True, "document": document.to_dict()}


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    document = await DocumentService.get_owned(session, document_id, user.id)
    await DocumentService.delete(session, document)
    return {"success": True, "message": "Document deleted successfully"}
