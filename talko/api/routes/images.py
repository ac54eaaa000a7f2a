"""Image routes: gated generation, uploads and per-user history."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from talko.api.schemas.requests import ImageGenerateRequest
from talko.core.auth import get_optional_user, require_auth
from talko.core.feature_gate import FeatureAccess, require_feature
from talko.core.llm_client import AIClient, get_ai_client
from talko.db.base import get_db_session
from talko.db.models.user import User
from talko.domain.features import FeatureType
from talko.services import storage
from talko.services.image_service import ImageService

router = APIRouter()


@router.post("/generate")
async def generate_image(
    body: ImageGenerateRequest,
    access: FeatureAccess = Depends(require_feature(FeatureType.IMAGE_GENERATION)),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    ctx = await access.consume()
    image_url, path, data_uri = await ImageService(ai).generate(body.prompt, body.size)

    if ctx.is_authenticated:
        record = await ImageService.save_record(
            session,
            ctx.user_id,
            image_url=image_url,
            file_name=path.name,
            prompt=body.prompt,
            is_generated=True,
        )
        access.link_resource("image", record.id)

    return {"success": True, "imageUrl": image_url, "base64Data": data_uri}


@router.post("/upload")
async def upload_image(
    image: UploadFile | None = File(None),
    user: User | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Store an uploaded image; signed-in users also get a history record."""
    path, _ = await storage.save_upload(image, "images", "image")
    url = storage.public_url("images", path.name)
    if user is not None:
        await ImageService.save_record(session, user.id, image_url=url, file_name=path.name)
    return {"success": True, "data": {"url": url}}


@router.get("/history")
async def image_history(user: User = Depends(require_auth), session: AsyncSession = Depends(get_db_session)):
    images = await ImageService.history(session, user.id)
    return {"success": True, "data": [image.to_dict() for image in images]}


@router.get("/{image_id}")
async def get_image(image_id: str, user: User = Depends(require_auth), session: AsyncSession = Depends(get_db_session)):
    image = await ImageService.get_owned(session, image_id, user.id)
    return {"success": True, "data": image.to_dict()}


@router.delete("/{image_id}")
async def delete_image(
    image_id: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    image = await ImageService.get_owned(session, image_id, user.id)
    await ImageService.delete(session, image)
    return {"success": True, "message": "Image deleted successfully"}
