"""Re-export all models so Base.metadata sees them."""

from talko.db.models.activity import ActivityRecord
from talko.db.models.conversation import Conversation, Message
from talko.db.models.media import Document, GeneratedImage, UserAudio
from talko.db.models.user import User

__all__ = [
    "ActivityRecord",
    "Conversation",
    "Document",
    "GeneratedImage",
    "Message",
    "User",
    "UserAudio",
]
