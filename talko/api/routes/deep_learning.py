"""User insight routes. The deepLearning feature has no anonymous quota."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from talko.core.feature_gate import FeatureAccess, require_feature
from talko.core.llm_client import AIClient, get_ai_client
from talko.db.base import get_db_session
from talko.domain.features import FeatureType
from talko.services.insights_service import InsightsService

router = APIRouter()

_insights_access = require_feature(FeatureType.DEEP_LEARNING)


def _respond(result: dict):
    # Not enough history is reported as a 400 with the same envelope
    if not result["success"]:
        return JSONResponse(status_code=400, content=result)
    return result


@router.get("/analyze")
async def analyze_user(
    access: FeatureAccess = Depends(_insights_access),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    ctx = await access.consume()
    return _respond(await InsightsService(ai).analyze_user(session, ctx.user_id))


@router.get("/recommendations")
async def recommendations(
    access: FeatureAccess = Depends(_insights_access),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    ctx = await access.consume()
    return _respond(await InsightsService(ai).recommendations(session, ctx.user_id))
