"""Chat routes: gated completions and conversation history."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from talko.api.schemas.requests import ChatSendRequest, RenameConversationRequest
from talko.core.auth import require_auth
from talko.core.feature_gate import FeatureAccess, require_feature
from talko.core.llm_client import AIClient, get_ai_client
from talko.db.base import get_db_session
from talko.db.models.user import User
from talko.domain.features import FeatureType
from talko.services.chat_service import ChatService, build_prompt_messages, conversation_to_dict

router = APIRouter()


@router.post("/send")
async def send_message(
    body: ChatSendRequest,
    access: FeatureAccess = Depends(require_feature(FeatureType.CHAT)),
    session: AsyncSession = Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    """Send a message (or a full message list) to the chat model.

    Signed-in users get the exchange appended to a conversation; anonymous
    callers only get the reply.
    """
    ctx = await access.consume()
    prompt_messages = build_prompt_messages(
        body.message,
        [m.model_dump() for m in body.messages] if body.messages else None,
    )
    reply = await ChatService(ai).send(
        session,
        prompt_messages,
        user_id=ctx.user_id,
        conversation_id=body.conversation_id,
    )

    access.link_resource("conversation", reply.conversation_id)
    if reply.conversation_id is None:
        return {"success": True, "response": reply.response}
    return {
        "success": True,
        "id": reply.message_id,
        "response": reply.response,
        "conversationId": reply.conversation_id,
    }


@router.get("/history")
async def conversation_history(
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    conversations = await ChatService.list_conversations(session, user.id)
    return {"success": True, "conversations": [conversation_to_dict(c) for c in conversations]}


@router.get("/conversation/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    conversation = await ChatService.get_owned(session, conversation_id, user.id)
    return {"success": True, "conversation": conversation_to_dict(conversation, include_messages=True)}


@router.patch("/conversation/{conversation_id}")
async def rename_conversation(
    conversation_id: str,
    body: RenameConversationRequest,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    conversation = await ChatService.rename(session, conversation_id, user.id, body.title)
    return {"success": True, "conversation": conversation_to_dict(conversation)}


@router.delete("/conversation/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_db_session),
):
    await ChatService.delete(session, conversation_id, user.id)
    return {"success": True, "message": "Conversation deleted successfully"}
