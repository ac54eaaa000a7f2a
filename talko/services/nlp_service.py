"""NLP utilities over the text model: sentiment, entities, keywords, summaries."""

import json

from talko.core.llm_client import AIClient, parse_json_response

SENTIMENT_PROMPT = (
    "You will respond with an object with two props : sentiment (the sentiment) and confidence (int). "
    "You are a sentiment analysis expert. Analyze the sentiment of the following text and categorize it "
    "as positive, negative, or neutral. Also provide a confidence score from 0 to 1."
)
ENTITIES_PROMPT = (
    "You are an entity extraction expert. Extract named entities from the following text and categorize "
    "them (person, organization, location, date, etc.). Return the result as a valid JSON array with "
    '"entity", "type", and "confidence" properties.'
)
KEYWORDS_PROMPT = "Extract the most important keywords from the text as a comma-separated list."


class NlpService:
    def __init__(self, ai: AIClient):
        self.ai = ai

    async def sentiment(self, text: str) -> str:
        return await self.ai.complete(SENTIMENT_PROMPT, text, max_tokens=150)

    async def entities(self, text: str) -> tuple[dict | list | None, str]:
        """Extract entities in JSON mode.

        Returns:
            Tuple of (parsed entities or None when unparsable, raw model output)
        """
        raw = await self.ai.complete(ENTITIES_PROMPT, text, max_tokens=500, json_mode=True)
        try:
            return parse_json_response(raw or "{}"), raw
        except json.JSONDecodeError:
            return None, raw

    async def keywords(self, text: str) -> list[str]:
        raw = await self.ai.complete(KEYWORDS_PROMPT, text, max_tokens=50)
        return [keyword.strip() for keyword in raw.split(",") if keyword.strip()]

    async def summarize(self, text: str, max_length: int | None = None) -> str:
        limit = f" in {max_length} words or less" if max_length else ""
        system = f"You are a text summarization expert. Summarize the following text{limit}."
        return await self.ai.complete(system, text, max_tokens=500)
