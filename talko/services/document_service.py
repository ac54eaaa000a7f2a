"""DocumentService: text extraction, vendor analysis and document history.

Extraction by extension:
- .pdf -> page text via pymupdf
- .csv -> rows as a JSON array of objects
- .txt -> raw UTF-8 read
Anything else is rejected before a vendor call is made.
"""

import csv
import json
from pathlib import Path

import pymupdf
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.exceptions import NotFoundError, UnsupportedFileTypeError, ValidationError
from talko.core.llm_client import AIClient
from talko.db.models.media import Document
from talko.services import storage

logger = structlog.get_logger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".csv", ".txt")
MAX_PROMPT_CHARS = 4000

ANALYSIS_SYSTEM_PROMPT = "You are a document analysis assistant. Analyze the provided document."
SUMMARY_SYSTEM_PROMPT = "You are a document summarization assistant. Provide a concise summary of the text."


def extract_pdf_text(path: Path) -> str:
    with pymupdf.open(path) as doc:
        return "".join(page.get_text() for page in doc)


def extract_csv_rows(path: Path) -> list[dict]:
    # Undecodable bytes become U+FFFD, same as the .txt branch
    with path.open(newline="", encoding="utf-8-sig", errors="replace") as fh:
        return list(csv.DictReader(fh))


def extract_text(path: Path, original_name: str) -> str:
    """Extract plain text from an uploaded file, choosing the parser by extension."""
    extension = Path(original_name).suffix.lower()
    if extension == ".pdf":
        try:
            return extract_pdf_text(path)
        except (pymupdf.FileDataError, RuntimeError) as exc:
            logger.warning("pdf_extract_failed", filename=original_name, error=str(exc))
            raise ValidationError("Failed to extract text from PDF") from exc
    if extension == ".csv":
        try:
            return json.dumps(extract_csv_rows(path))
        except csv.Error as exc:
            logger.warning("csv_extract_failed", filename=original_name, error=str(exc))
            raise ValidationError("Failed to parse CSV file") from exc
    if extension == ".txt":
        return path.read_text(encoding="utf-8", errors="replace")
    raise UnsupportedFileTypeError(f"Unsupported file type: {extension or original_name}")


def truncate_for_prompt(text: str) -> str:
    return f"{text[:MAX_PROMPT_CHARS]}..."


def analysis_prompt(text: str, prompt: str | None = None) -> str:
    if prompt:
        return f"{prompt}\n\nDocument text:\n{truncate_for_prompt(text)}"
    return f"Analyze the following document text:\n\n{truncate_for_prompt(text)}"


class DocumentService:
    def __init__(self, ai: AIClient):
        self.ai = ai

    async def analyze(self, text: str, prompt: str | None = None) -> str:
        return await self.ai.complete(ANALYSIS_SYSTEM_PROMPT, analysis_prompt(text, prompt))

    async def summarize(self, text: str) -> str:
        return await self.ai.complete(
            SUMMARY_SYSTEM_PROMPT,
            f"Summarize the following text: {truncate_for_prompt(text)}",
        )

    @staticmethod
    async def save_record(
        session: AsyncSession,
        user_id: str,
        path: Path,
        original_name: str,
        file_type: str,
        file_size: int,
        **fields,
    ) -> Document:
        document = Document(
            user_id=user_id,
            filename=path.name,
            original_name=original_name,
            file_path=str(path),
            file_type=file_type or "application/octet-stream",
            file_size=file_size,
            **fields,
        )
        session.add(document)
        await session.commit()
        return document

    @staticmethod
    async def history(session: AsyncSession, user_id: str) -> list[Document]:
        result = await session.execute(
            select(Document).where(Document.user_id == user_id).order_by(Document.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_owned(session: AsyncSession, document_id: str, user_id: str) -> Document:
        result = await session.execute(
            select(Document).where(Document.id == document_id, Document.user_id == user_id)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError("Document not found")
        return document

    @staticmethod
    async def delete(session: AsyncSession, document: Document) -> None:
        path = storage.safe_child(storage.upload_dir("documents"), document.filename)
        removed = storage.remove_file(path)
        logger.info("document_file_removed", document_id=document.id, removed=removed)
        await session.delete(document)
        await session.commit()
