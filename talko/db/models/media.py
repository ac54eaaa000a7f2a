"""Media artifact models: generated/uploaded audio, images and documents.

Each row points at a file under the uploads tree; deleting the row through
the API also removes the file.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

from talko.db.base import Base


class UserAudio(Base):
    __tablename__ = "user_audio"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # text_to_speech, speech_to_text
    text = Column(Text, nullable=True)
    audio_url = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True, index=True)
    duration = Column(Float, nullable=True)
    confidence = Column(Float, nullable=True, default=1.0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "text": self.text,
            "audioUrl": self.audio_url,
            "fileName": self.file_name,
            "duration": self.duration,
            "confidence": self.confidence,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class GeneratedImage(Base):
    __tablename__ = "images"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    prompt = Column(Text, nullable=True)
    image_url = Column(String(1000), nullable=False)
    file_name = Column(String(255), nullable=True)
    is_generated = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "userId": self.user_id,
            "prompt": self.prompt,
            "imageUrl": self.image_url,
            "fileName": self.file_name,
            "isGenerated": self.is_generated,
            "generatedAt": self.created_at.isoformat() if self.created_at else None,
        }


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    file_path = Column(String(1000), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False)
    extracted_text = Column(Text, nullable=True)
    analysis = Column(JSON, nullable=True)  # {"prompt": ..., "result": ...}
    summary = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "userId": self.user_id,
            "filename": self.filename,
            "originalName": self.original_name,
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "extractedText": self.extracted_text,
            "analysis": self.analysis,
            "summary": self.summary,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
