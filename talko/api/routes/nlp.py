"""NLP routes. Every endpoint takes one NLP quota slot."""

from fastapi import APIRouter, Depends

from talko.api.schemas.requests import SummarizeTextRequest, TextRequest
from talko.core.feature_gate import FeatureAccess, require_feature
from talko.core.llm_client import AIClient, get_ai_client
from talko.domain.features import FeatureType
from talko.services.nlp_service import NlpService

router = APIRouter()

_nlp_access = require_feature(FeatureType.NLP)


@router.post("/sentiment")
async def analyze_sentiment(
    body: TextRequest,
    access: FeatureAccess = Depends(_nlp_access),
    ai: AIClient = Depends(get_ai_client),
):
    await access.consume()
    sentiment = await NlpService(ai).sentiment(body.text)
    return {"success": True, "sentiment": sentiment, "text": body.text}


@router.post("/entities")
async def extract_entities(
    body: TextRequest,
    access: FeatureAccess = Depends(_nlp_access),
    ai: AIClient = Depends(get_ai_client),
):
    """Entities as parsed JSON, or ``rawResponse`` when the model output is not JSON."""
    await access.consume()
    entities, raw = await NlpService(ai).entities(body.text)
    if entities is None:
        return {"success": True, "rawResponse": raw, "text": body.text}
    return {"success": True, "entities": entities, "text": body.text}


@router.post("/keywords")
async def extract_keywords(
    body: TextRequest,
    access: FeatureAccess = Depends(_nlp_access),
    ai: AIClient = Depends(get_ai_client),
):
    await access.consume()
    keywords = await NlpService(ai).keywords(body.text)
    return {"success": True, "keywords": keywords, "text": body.text}


@router.post("/summarize")
async def summarize_text(
    body: SummarizeTextRequest,
    access: FeatureAccess = Depends(_nlp_access),
    ai: AIClient = Depends(get_ai_client),
):
    await access.consume()
    summary = await NlpService(ai).summarize(body.text, body.max_length)
    return {"success": True, "summary": summary, "text": body.text}
