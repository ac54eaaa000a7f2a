"""Transcription export formats."""

import csv
import io
import json
import zipfile
from dataclasses import dataclass

from talko.core.exceptions import NotImplementedFormatError, ValidationError
from talko.db.models.media import UserAudio
from talko.services.audio_service import archive_name

PLANNED_FORMATS = ("docx", "pdf")


@dataclass(frozen=True)
class ExportFormat:
    extension: str
    content_type: str


EXPORT_FORMATS: dict[str, ExportFormat] = {
    "txt": ExportFormat(".txt", "text/plain"),
    "json": ExportFormat(".json", "application/json"),
    "csv": ExportFormat(".csv", "text/csv"),
    "md": ExportFormat(".md", "text/markdown"),
    "srt": ExportFormat(".srt", "text/plain"),
}


def resolve_format(name: str) -> ExportFormat:
    """Look up an export format; docx/pdf are 501, anything unknown is 400."""
    if name in PLANNED_FORMATS:
        raise NotImplementedFormatError(f"{name.upper()} export not yet implemented")
    try:
        return EXPORT_FORMATS[name]
    except KeyError:
        raise ValidationError(f"Unsupported export format: {name}") from None


def _created(record: UserAudio) -> str:
    return record.created_at.isoformat() if record.created_at else ""


def render(record: UserAudio, fmt: str) -> str:
    text = record.text or ""
    if fmt == "json":
        return json.dumps(
            {
                "id": record.id,
                "text": text,
                "createdAt": _created(record),
                "metadata": {
                    "duration": record.duration if record.duration is not None else "",
                    "userId": record.user_id,
                    "type": record.type,
                },
            },
            indent=2,
        )
    if fmt == "csv":
        out = io.StringIO()
        writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(["id", "text", "created_at"])
        writer.writerow([record.id, text, _created(record)])
        return out.getvalue().rstrip("\n")
    if fmt == "md":
        return f"# Transcription\n\n{text}\n\n---\n\nGenerated: {_created(record)}"
    if fmt == "srt":
        # No real timing data; one cue spanning the first ten seconds
        return f"1\n00:00:00,000 --> 00:00:10,000\n{text}"
    return text


def build_export_zip(records: list[UserAudio], fmt: str) -> tuple[bytes, int]:
    """Zip one rendered file per transcription with text.

    Unknown formats fall back to plain text inside the archive.

    Returns:
        Tuple of (zip bytes, number of entries)
    """
    export = EXPORT_FORMATS.get(fmt)
    if export is None:
        fmt, export = "txt", EXPORT_FORMATS["txt"]

    buffer = io.BytesIO()
    added = 0
    used: set[str] = set()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for record in records:
            if not record.text:
                continue
            name = archive_name(record.text, f"{record.id}{export.extension}", export.extension)
            if name in used:
                name = f"{name[: -len(export.extension)]}_{record.id[:8]}{export.extension}"
            used.add(name)
            archive.writestr(name, render(record, fmt))
            added += 1
    return buffer.getvalue(), added
