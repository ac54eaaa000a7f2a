"""InsightsService: behaviour analysis and learning recommendations.

Reads a user's recent conversations and activity records and asks the text
model for patterns and suggestions. Signed-in users only.
"""

import json
import re
from collections import Counter
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from talko.core.llm_client import AIClient
from talko.db.models.activity import ActivityRecord
from talko.db.models.conversation import Conversation

logger = structlog.get_logger(__name__)

ANALYSIS_CONVERSATIONS = 50
RECOMMENDATION_CONVERSATIONS = 10
ACTIVITY_WINDOW = 100

ANALYST_PROMPT = (
    "Respond always in md format. Use icons and fancy layout to respond. You are an AI data analyst. "
    "Analyze the provided user data to identify patterns, topics of interest, and interaction styles."
)
TOPICS_PROMPT = "You are an AI text analyst. Extract the main topics from the provided text."
RECOMMENDER_PROMPT = (
    "You are an AI learning assistant. Based on the user's interests, suggest learning resources and topics."
)

_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*])\s*")


def parse_topic_lines(raw: str) -> list[str]:
    """Split a numbered or bulleted model answer into topic strings."""
    topics = []
    for line in raw.splitlines():
        cleaned = _LIST_MARKER.sub("", line).strip()
        if cleaned:
            topics.append(cleaned)
    return topics


class InsightsService:
    def __init__(self, ai: AIClient):
        self.ai = ai

    async def analyze_user(self, session: AsyncSession, user_id: str) -> dict:
        result = await session.execute(
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .options(selectinload(Conversation.messages))
            .order_by(Conversation.created_at.desc())
            .limit(ANALYSIS_CONVERSATIONS)
        )
        conversations = list(result.scalars().all())
        if not conversations:
            return {"success": False, "message": "Not enough conversation data to analyze"}

        activity = await session.execute(
            select(ActivityRecord.feature_type)
            .where(ActivityRecord.user_id == user_id)
            .order_by(ActivityRecord.timestamp.desc())
            .limit(ACTIVITY_WINDOW)
        )
        usage_patterns = dict(Counter(activity.scalars().all()))

        transcript = "\n\n".join(
            "\n".join(f"{m.role}: {m.content}" for m in conversation.messages)
            for conversation in conversations
        )

        analysis = await self.ai.complete(
            ANALYST_PROMPT,
            f"Analyze the following user data and provide insights. Conversation history: {transcript[:4000]}. "
            f"Feature usage stats: {json.dumps(usage_patterns)}. "
            "Identify: 1) Main topics of interest 2) Interaction patterns 3) Content preferences "
            "4) Learning recommendations",
            max_tokens=1000,
        )
        topics = parse_topic_lines(
            await self.ai.complete(
                TOPICS_PROMPT,
                f"Extract 5-8 main topics from this text: {transcript[:3000]}",
                max_tokens=300,
            )
        )

        logger.info("user_analysis_generated", user_id=user_id, conversations=len(conversations))
        return {
            "success": True,
            "analysis": analysis,
            "topicsOfInterest": topics,
            "usagePatterns": usage_patterns,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def recommendations(self, session: AsyncSession, user_id: str) -> dict:
        result = await session.execute(
            select(Conversation.title)
            .where(Conversation.user_id == user_id)
            .order_by(Conversation.created_at.desc())
            .limit(RECOMMENDATION_CONVERSATIONS)
        )
        titles = list(result.scalars().all())
        if not titles:
            return {"success": False, "message": "Not enough data to generate recommendations"}

        topics = ", ".join(titles)
        recommendations = await self.ai.complete(
            RECOMMENDER_PROMPT,
            f"Based on these topics: {topics}, suggest 5 learning recommendations, including resources, "
            "topics to explore, and skills to develop.",
            max_tokens=500,
        )
        return {
            "success": True,
            "recommendations": recommendations,
            "basedOn": topics,
            "timestamp": datetime.now(UTC).isoformat(),
        }
