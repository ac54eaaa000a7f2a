"""Feature catalog and anonymous quota table.

Pure domain definitions, no I/O.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from talko.core.exceptions import InvalidFeatureError

# Sentinel returned for identities without a cap
UNLIMITED = -1


class FeatureType(StrEnum):
    """Gated AI features. Values are the wire names clients send."""

    CHAT = "chat"
    TEXT_TO_SPEECH = "textToSpeech"
    SPEECH_TO_TEXT = "speechToText"
    IMAGE_GENERATION = "imageGeneration"
    DOCUMENT_ANALYSIS = "documentAnalysis"
    DOCUMENT_PROCESSING = "documentProcessing"
    CONVERSATION = "conversation"
    DEEP_LEARNING = "deepLearning"
    NLP = "nlp"


# Per-window invocation caps for anonymous identities; 0 means login required
ANONYMOUS_LIMITS: dict[FeatureType, int] = {
    FeatureType.CHAT: 5,
    FeatureType.TEXT_TO_SPEECH: 3,
    FeatureType.SPEECH_TO_TEXT: 3,
    FeatureType.IMAGE_GENERATION: 2,
    FeatureType.DOCUMENT_ANALYSIS: 2,
    FeatureType.DOCUMENT_PROCESSING: 2,
    FeatureType.CONVERSATION: 3,
    FeatureType.DEEP_LEARNING: 0,
    FeatureType.NLP: 3,
}


def parse_feature(value: str) -> FeatureType:
    """Map a wire name to FeatureType, raising InvalidFeatureError otherwise."""
    try:
        return FeatureType(value)
    except ValueError:
        raise InvalidFeatureError(value) from None


def anonymous_limit(feature: FeatureType) -> int:
    return ANONYMOUS_LIMITS[feature]


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a feature access check.

    ``remaining`` is UNLIMITED for authenticated identities. Denials carry
    ``login_required`` (limit 0, no retry hint) or the usage snapshot and
    ``retry_after`` timestamp.
    """

    allowed: bool
    feature: FeatureType
    limit: int
    usage: int
    remaining: int
    login_required: bool = False
    retry_after: datetime | None = None
