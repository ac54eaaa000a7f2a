"""Request body schemas. Field aliases follow the camelCase wire format."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------- Auth ----------


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: str | None = None
    username: str | None = None
    password: str = Field(min_length=1)


# ---------- Chat ----------


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    messages: list[ChatMessage] | None = None
    conversation_id: str | None = Field(default=None, alias="conversationId")

    @model_validator(mode="after")
    def require_content(self) -> "ChatSendRequest":
        if not self.message and not self.messages:
            raise ValueError("Either message or messages is required")
        return self


class RenameConversationRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)


# ---------- Audio ----------


class TextToSpeechRequest(BaseModel):
    text: str = Field(min_length=1)
    voice: str | None = None


class AudioIdsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audio_ids: list[str] = Field(alias="audioIds", min_length=1)
    format: str = "txt"


# ---------- Images ----------


class ImageGenerateRequest(BaseModel):
    prompt: str = Field(min_length=1)
    size: str = "1024x1024"


# ---------- NLP ----------


class TextRequest(BaseModel):
    text: str = Field(min_length=1)


class SummarizeTextRequest(TextRequest):
    model_config = ConfigDict(populate_by_name=True)

    max_length: int | None = Field(default=None, alias="maxLength", gt=0)
