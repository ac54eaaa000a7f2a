"""Tests for /api/audio: synthesis, transcription, streaming, history and export."""

import io
import zipfile

import pytest

from talko.services import storage

pytestmark = pytest.mark.integration


async def _speak(client, text="hello there", headers=None) -> str:
    """Generate speech and return the stored filename."""
    response = await client.post("/api/audio/text-to-speech", json={"text": text}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["streamUrl"].rsplit("/", 1)[-1]


async def _history(client, headers) -> list[dict]:
    response = await client.get("/api/audio/history", headers=headers)
    return response.json()["audioHistory"]


# ============================================================================
# Text to speech
# ============================================================================


async def test_anonymous_tts_has_no_download(client):
    response = await client.post("/api/audio/text-to-speech", json={"text": "hello"})

    body = response.json()
    assert body["success"] is True
    assert body["canDownload"] is False
    assert body["downloadUrl"] is None
    assert body["streamUrl"].startswith("/api/audio/stream/audio_")
    assert body["message"]


async def test_authenticated_tts_saves_history(client, auth_headers):
    filename = await _speak(client, "Good morning", headers=auth_headers)

    history = await _history(client, auth_headers)

    assert len(history) == 1
    assert history[0]["type"] == "text_to_speech"
    assert history[0]["text"] == "Good morning"
    assert history[0]["audioUrl"] == f"/uploads/audio/{filename}"


async def test_generate_speech_alias(client):
    response = await client.post("/api/audio/generate-speech", json={"text": "alias"})

    assert response.status_code == 200


# ============================================================================
# Streaming
# ============================================================================


async def test_stream_full_file(client):
    filename = await _speak(client)
    size = (storage.upload_dir("audio") / filename).stat().st_size

    response = await client.get(f"/api/audio/stream/{filename}")

    assert response.status_code == 200
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["content-type"] == "audio/mpeg"
    assert int(response.headers["content-length"]) == size
    assert len(response.content) == size


async def test_stream_partial_content(client):
    filename = await _speak(client)
    data = (storage.upload_dir("audio") / filename).read_bytes()

    response = await client.get(f"/api/audio/stream/{filename}", headers={"Range": "bytes=10-19"})

    assert response.status_code == 206
    assert response.headers["content-range"] == f"bytes 10-19/{len(data)}"
    assert response.content == data[10:20]


async def test_stream_range_past_end_is_416(client):
    filename = await _speak(client)
    size = (storage.upload_dir("audio") / filename).stat().st_size

    response = await client.get(f"/api/audio/stream/{filename}", headers={"Range": f"bytes={size}-"})

    assert response.status_code == 416
    assert response.headers["content-range"] == f"bytes */{size}"


async def test_stream_by_record_id(client, auth_headers):
    await _speak(client, headers=auth_headers)
    record_id = (await _history(client, auth_headers))[0]["_id"]

    response = await client.get(f"/api/audio/stream/{record_id}")

    assert response.status_code == 200


async def test_stream_unknown_is_404(client):
    response = await client.get("/api/audio/stream/nothing-here.mp3")

    assert response.status_code == 404
    assert response.json()["success"] is False


async def test_deleted_audio_no_longer_streams(client, auth_headers):
    filename = await _speak(client, headers=auth_headers)
    record_id = (await _history(client, auth_headers))[0]["_id"]

    response = await client.delete(f"/api/audio/{record_id}", headers=auth_headers)
    assert response.status_code == 200

    assert (await client.get(f"/api/audio/stream/{filename}")).status_code == 404
    assert (await client.get(f"/api/audio/stream/{record_id}")).status_code == 404


async def test_delete_other_users_audio_is_404(client, register):
    owner = await register("owner", "owner@example.com")
    intruder = await register("intruder", "intruder@example.com")
    await _speak(client, headers=owner)
    record_id = (await _history(client, owner))[0]["_id"]

    response = await client.delete(f"/api/audio/{record_id}", headers=intruder)

    assert response.status_code == 404


# ============================================================================
# Speech to text
# ============================================================================


async def test_speech_to_text_sniffs_extensionless_upload(client, auth_headers, fake_ai):
    response = await client.post(
        "/api/audio/speech-to-text",
        files={"audio": ("blob", b"RIFF\x00\x00\x00\x00WAVE", "application/octet-stream")},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "transcribed words"
    assert body["transcription"] == "transcribed words"
    assert fake_ai.calls[-1][1].endswith(".wav")

    history = await _history(client, auth_headers)
    assert history[0]["type"] == "speech_to_text"
    assert history[0]["audioUrl"].endswith(".wav")


async def test_speech_to_text_extensionless_mp3_matches_named_upload(client, auth_headers, fake_ai):
    blob = b"ID3\x04\x00\x00" + b"\x00" * 64

    named = await client.post(
        "/api/audio/speech-to-text",
        files={"audio": ("voice.mp3", blob, "audio/mpeg")},
        headers=auth_headers,
    )
    bare = await client.post(
        "/api/audio/speech-to-text",
        files={"audio": ("blob", blob, "application/octet-stream")},
        headers=auth_headers,
    )

    assert named.status_code == bare.status_code == 200
    assert named.json()["text"] == bare.json()["text"]
    sent_names = [name for kind, name in fake_ai.calls if kind == "transcribe"]
    assert [name.rsplit(".", 1)[-1] for name in sent_names] == ["mp3", "mp3"]
    history = await _history(client, auth_headers)
    assert all(item["audioUrl"].endswith(".mp3") for item in history)


async def test_speech_to_text_requires_file(client):
    response = await client.post("/api/audio/speech-to-text", data={"other": "x"})

    assert response.status_code == 400


async def test_speech_to_text_denied_upload_is_removed(client):
    for _ in range(3):
        await client.post("/api/audio/speech-to-text", files={"audio": ("a.mp3", b"ID3\x03abc", "audio/mpeg")})
    before = set(storage.upload_dir("audio").iterdir())

    response = await client.post("/api/audio/speech-to-text", files={"audio": ("a.mp3", b"ID3\x03abc", "audio/mpeg")})

    assert response.status_code == 403
    assert set(storage.upload_dir("audio").iterdir()) == before


async def test_transcribe_requires_login(client):
    response = await client.post("/api/audio/transcribe", files={"audio": ("a.mp3", b"ID3\x03", "audio/mpeg")})

    assert response.status_code == 401


# ============================================================================
# Download and export
# ============================================================================


async def test_download_requires_login(client):
    filename = await _speak(client)

    assert (await client.get(f"/api/audio/download/{filename}")).status_code == 401


async def test_download_file(client, auth_headers):
    filename = await _speak(client, headers=auth_headers)

    response = await client.get(f"/api/audio/download/{filename}", headers=auth_headers)

    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]


async def test_download_zip(client, auth_headers):
    await _speak(client, "first clip", headers=auth_headers)
    await _speak(client, "second clip", headers=auth_headers)
    ids = [item["_id"] for item in await _history(client, auth_headers)]

    response = await client.post("/api/audio/download-zip", json={"audioIds": ids}, headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    names = zipfile.ZipFile(io.BytesIO(response.content)).namelist()
    assert sorted(names) == ["first_clip.mp3", "second_clip.mp3"]


async def test_download_zip_unknown_ids_is_404(client, auth_headers):
    response = await client.post("/api/audio/download-multiple", json={"audioIds": ["nope"]}, headers=auth_headers)

    assert response.status_code == 404


async def _transcription_id(client, headers) -> str:
    await client.post(
        "/api/audio/speech-to-text",
        files={"audio": ("memo.mp3", b"ID3\x03abc", "audio/mpeg")},
        headers=headers,
    )
    return (await _history(client, headers))[0]["_id"]


async def test_export_transcription_as_markdown(client, auth_headers):
    audio_id = await _transcription_id(client, auth_headers)

    response = await client.get(f"/api/audio/export/{audio_id}?format=md", headers=auth_headers)

    assert response.status_code == 200
    assert response.text.startswith("# Transcription")
    assert response.headers["content-type"].startswith("text/markdown")


async def test_export_pdf_not_implemented(client, auth_headers):
    audio_id = await _transcription_id(client, auth_headers)

    response = await client.get(f"/api/audio/export/{audio_id}?format=pdf", headers=auth_headers)

    assert response.status_code == 501


async def test_export_tts_record_is_404(client, auth_headers):
    await _speak(client, headers=auth_headers)
    audio_id = (await _history(client, auth_headers))[0]["_id"]

    response = await client.get(f"/api/audio/export/{audio_id}", headers=auth_headers)

    assert response.status_code == 404


async def test_export_multiple(client, auth_headers):
    audio_id = await _transcription_id(client, auth_headers)

    response = await client.post(
        "/api/audio/export-multiple",
        json={"audioIds": [audio_id], "format": "json"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    names = zipfile.ZipFile(io.BytesIO(response.content)).namelist()
    assert names == ["transcribed_words.json"]
