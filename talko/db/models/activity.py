"""ActivityRecord model: append-only log of feature invocations."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String

from talko.db.base import Base


class ActivityRecord(Base):
    """One feature invocation, authenticated or anonymous.

    Exactly one of user_id / session_id identifies the caller. Rows are never
    updated and have no expiry.
    """

    __tablename__ = "activity_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=True, index=True)
    session_id = Column(String(255), nullable=True, index=True)

    feature_type = Column(String(50), nullable=False)  # FeatureType value
    is_anonymous = Column(Boolean, nullable=False, default=False)
    resource_id = Column(String(36), nullable=True)
    resource_type = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    __table_args__ = (
        CheckConstraint(
            "user_id IS NOT NULL OR session_id IS NOT NULL",
            name="ck_activity_records_identity",
        ),
    )
