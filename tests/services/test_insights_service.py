"""Tests for InsightsService."""

import pytest

from talko.db.models.activity import ActivityRecord
from talko.db.models.conversation import Conversation, Message
from talko.services.insights_service import InsightsService, parse_topic_lines

pytestmark = pytest.mark.unit


def test_parse_topic_lines_strips_markers():
    raw = "1. Python\n2) Machine learning\n- Cooking\n\n* Travel"

    assert parse_topic_lines(raw) == ["Python", "Machine learning", "Cooking", "Travel"]


async def test_analyze_user_without_conversations(db_session, fake_ai):
    result = await InsightsService(fake_ai).analyze_user(db_session, "user-1")

    assert result["success"] is False
    assert fake_ai.calls == []


async def test_analyze_user_counts_feature_usage(db_session, fake_ai):
    conversation = Conversation(user_id="user-1", title="Learning Rust")
    db_session.add(conversation)
    await db_session.flush()
    db_session.add(Message(conversation_id=conversation.id, role="user", content="How do lifetimes work?", position=0))
    db_session.add_all(
        [
            ActivityRecord(user_id="user-1", feature_type="chat"),
            ActivityRecord(user_id="user-1", feature_type="chat"),
            ActivityRecord(user_id="user-1", feature_type="nlp"),
        ]
    )
    await db_session.commit()
    fake_ai.chat_reply = "1. Rust\n2. Memory safety"

    result = await InsightsService(fake_ai).analyze_user(db_session, "user-1")

    assert result["success"] is True
    assert result["usagePatterns"] == {"chat": 2, "nlp": 1}
    assert result["topicsOfInterest"] == ["Rust", "Memory safety"]


async def test_recommendations_based_on_titles(db_session, fake_ai):
    db_session.add(Conversation(user_id="user-2", title="Sourdough"))
    await db_session.commit()

    result = await InsightsService(fake_ai).recommendations(db_session, "user-2")

    assert result["success"] is True
    assert result["basedOn"] == "Sourdough"
