"""ChatService: completions plus conversation persistence for signed-in users."""

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from talko.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from talko.core.llm_client import AIClient
from talko.db.models.conversation import Conversation, Message

logger = structlog.get_logger(__name__)

TITLE_LENGTH = 30


@dataclass
class ChatReply:
    response: str
    message_id: str | None = None
    conversation_id: str | None = None


def build_prompt_messages(message: str | None, messages: list[dict] | None) -> list[dict]:
    """Normalize the request body into vendor chat messages."""
    if messages:
        return [{"role": m["role"], "content": m["content"]} for m in messages]
    if message:
        return [{"role": "user", "content": message}]
    raise ValidationError("Either message or messages is required")


def conversation_title(prompt_messages: list[dict]) -> str:
    return prompt_messages[0]["content"][:TITLE_LENGTH]


class ChatService:
    def __init__(self, ai: AIClient):
        self.ai = ai

    async def send(
        self,
        session: AsyncSession,
        prompt_messages: list[dict],
        user_id: str | None = None,
        conversation_id: str | None = None,
    ) -> ChatReply:
        """Ask the model and, for signed-in users, append both turns to a conversation.

        An unknown or foreign ``conversation_id`` starts a new conversation.
        """
        reply = await self.ai.chat(prompt_messages)

        if user_id is None:
            return ChatReply(response=reply)

        conversation = None
        if conversation_id:
            conversation = await session.get(Conversation, conversation_id)
            if conversation is not None and conversation.user_id != user_id:
                conversation = None
        if conversation is None:
            conversation = Conversation(user_id=user_id, title=conversation_title(prompt_messages))
            session.add(conversation)
            await session.flush()

        next_position = await self._next_position(session, conversation.id)
        user_message = Message(
            conversation_id=conversation.id,
            role="user",
            content=prompt_messages[-1]["content"],
            position=next_position,
        )
        assistant_message = Message(
            conversation_id=conversation.id,
            role="assistant",
            content=reply,
            position=next_position + 1,
        )
        session.add_all([user_message, assistant_message])
        conversation.updated_at = datetime.now(timezone.utc)
        await session.commit()

        logger.info("chat_turn_saved", conversation_id=conversation.id, user_id=user_id)
        return ChatReply(response=reply, message_id=assistant_message.id, conversation_id=conversation.id)

    @staticmethod
    async def _next_position(session: AsyncSession, conversation_id: str) -> int:
        result = await session.execute(
            select(func.max(Message.position)).where(Message.conversation_id == conversation_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    @staticmethod
    async def list_conversations(session: AsyncSession, user_id: str) -> list[Conversation]:
        result = await session.execute(
            select(Conversation).where(Conversation.user_id == user_id).order_by(Conversation.updated_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_owned(session: AsyncSession, conversation_id: str, user_id: str) -> Conversation:
        """Load a conversation with messages; 404 when missing, 403 when foreign."""
        result = await session.execute(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .options(selectinload(Conversation.messages))
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if conversation.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return conversation

    @staticmethod
    async def delete(session: AsyncSession, conversation_id: str, user_id: str) -> None:
        conversation = await ChatService.get_owned(session, conversation_id, user_id)
        await session.delete(conversation)
        await session.commit()

    @staticmethod
    async def rename(session: AsyncSession, conversation_id: str, user_id: str, title: str) -> Conversation:
        conversation = await ChatService.get_owned(session, conversation_id, user_id)
        conversation.title = title
        await session.commit()
        await session.refresh(conversation, ["messages", "updated_at"])
        return conversation


def conversation_to_dict(conversation: Conversation, include_messages: bool = False) -> dict:
    data = {
        "_id": conversation.id,
        "userId": conversation.user_id,
        "title": conversation.title,
        "createdAt": conversation.created_at.isoformat() if conversation.created_at else None,
        "updatedAt": conversation.updated_at.isoformat() if conversation.updated_at else None,
    }
    if include_messages:
        data["messages"] = [
            {
                "_id": m.id,
                "role": m.role,
                "content": m.content,
                "createdAt": m.created_at.isoformat() if m.created_at else None,
            }
            for m in conversation.messages
        ]
    return data
