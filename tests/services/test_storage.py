"""Tests for the upload tree helpers."""

import re
from io import BytesIO

import pytest
from fastapi import UploadFile

from talko.core.exceptions import PayloadTooLargeError, ValidationError
from talko.services import storage

pytestmark = pytest.mark.unit


def test_timestamped_name_format():
    assert re.fullmatch(r"audio_\d{13}_[0-9a-f]{6}\.mp3", storage.timestamped_name("audio", ".mp3"))


def test_safe_child_blocks_traversal(settings):
    directory = storage.upload_dir("audio")

    assert storage.safe_child(directory, "clip.mp3") == (directory / "clip.mp3").resolve()
    assert storage.safe_child(directory, "../images/x.png") is None


def test_path_from_url_stays_inside_uploads(settings):
    assert storage.path_from_url("/uploads/audio/a.mp3") == storage.upload_dir("audio") / "a.mp3"
    assert storage.path_from_url("/uploads/../talko.db") is None


async def test_save_upload_keeps_extension(settings):
    upload = UploadFile(BytesIO(b"hello"), filename="Notes.TXT")

    path, size = await storage.save_upload(upload, "documents", "document")

    assert path.suffix == ".txt"
    assert size == 5
    assert path.read_bytes() == b"hello"


async def test_save_upload_requires_file(settings):
    with pytest.raises(ValidationError) as exc_info:
        await storage.save_upload(None, "audio", "audio")

    assert 'field name "audio"' in exc_info.value.message


async def test_save_upload_rejects_oversized(settings, monkeypatch):
    monkeypatch.setattr(settings, "max_file_size", 4)
    upload = UploadFile(BytesIO(b"too large"), filename="big.txt")

    with pytest.raises(PayloadTooLargeError):
        await storage.save_upload(upload, "documents", "document")

    assert list(storage.upload_dir("documents").iterdir()) == []
