"""ImageService: generation via the vendor, local copies and image history."""

import base64
from pathlib import Path

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.exceptions import ExternalServiceError, NotFoundError
from talko.core.llm_client import AIClient
from talko.db.models.media import GeneratedImage
from talko.services import storage

logger = structlog.get_logger(__name__)

DOWNLOAD_TIMEOUT_SECONDS = 60.0


class ImageService:
    def __init__(self, ai: AIClient, http_client: httpx.AsyncClient | None = None):
        self.ai = ai
        self.http_client = http_client

    async def _download(self, url: str) -> bytes:
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT_SECONDS) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("image_download_failed", error=str(exc), error_type=type(exc).__name__)
            raise ExternalServiceError("Failed to download and process image") from exc
        return response.content

    async def generate(self, prompt: str, size: str = "1024x1024") -> tuple[str, Path, str]:
        """Generate an image and keep a local PNG copy.

        Returns:
            Tuple of (vendor image URL, local path, data URI)
        """
        image_url = await self.ai.generate_image(prompt, size)
        data = await self._download(image_url)
        filename = storage.timestamped_name("image", ".png")
        path = storage.write_bytes("images", filename, data)
        logger.info("image_generated", filename=filename, size=len(data))
        data_uri = "data:image/png;base64," + base64.b64encode(data).decode("ascii")
        return image_url, path, data_uri

    @staticmethod
    async def save_record(
        session: AsyncSession,
        user_id: str,
        image_url: str,
        file_name: str,
        prompt: str | None = None,
        is_generated: bool = False,
    ) -> GeneratedImage:
        record = GeneratedImage(
            user_id=user_id,
            prompt=prompt,
            image_url=image_url,
            file_name=file_name,
            is_generated=is_generated,
        )
        session.add(record)
        await session.commit()
        return record

    @staticmethod
    async def history(session: AsyncSession, user_id: str) -> list[GeneratedImage]:
        result = await session.execute(
            select(GeneratedImage)
            .where(GeneratedImage.user_id == user_id)
            .order_by(GeneratedImage.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_owned(session: AsyncSession, image_id: str, user_id: str) -> GeneratedImage:
        result = await session.execute(
            select(GeneratedImage).where(GeneratedImage.id == image_id, GeneratedImage.user_id == user_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Image not found")
        return record

    @staticmethod
    async def delete(session: AsyncSession, record: GeneratedImage) -> None:
        """Remove the record and its local file (generated images keep theirs under file_name)."""
        path = None
        if record.file_name:
            path = storage.safe_child(storage.upload_dir("images"), record.file_name)
        elif record.image_url.startswith("/uploads/"):
            path = storage.path_from_url(record.image_url)
        removed = storage.remove_file(path)
        logger.info("image_file_removed", image_id=record.id, removed=removed)
        await session.delete(record)
        await session.commit()
