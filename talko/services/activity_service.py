"""Best-effort activity log writes."""

import structlog

from talko.db.base import session_scope
from talko.db.models.activity import ActivityRecord
from talko.domain.features import FeatureType

logger = structlog.get_logger(__name__)


async def record_activity(
    feature: FeatureType,
    user_id: str | None = None,
    session_id: str | None = None,
    resource_id: str | None = None,
    resource_type: str | None = None,
) -> None:
    """Append one ActivityRecord in its own transaction.

    Failures are logged and dropped; they never reach the caller.
    """
    if user_id is None and session_id is None:
        logger.warning("activity_record_skipped", feature=feature.value, reason="no_identity")
        return

    try:
        async with session_scope() as session:
            session.add(
                ActivityRecord(
                    user_id=user_id,
                    session_id=None if user_id else session_id,
                    feature_type=feature.value,
                    is_anonymous=user_id is None,
                    resource_id=resource_id,
                    resource_type=resource_type,
                )
            )
    except Exception as exc:
        logger.warning(
            "activity_record_failed",
            feature=feature.value,
            user_id=user_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )
