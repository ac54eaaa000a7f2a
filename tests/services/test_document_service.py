"""Tests for document text extraction and prompt building."""

import json

import pymupdf
import pytest

from talko.core.exceptions import UnsupportedFileTypeError, ValidationError
from talko.services.document_service import MAX_PROMPT_CHARS, analysis_prompt, extract_text, truncate_for_prompt

pytestmark = pytest.mark.unit


def test_extract_txt(tmp_path):
    path = tmp_path / "notes"
    path.write_text("plain notes", encoding="utf-8")

    assert extract_text(path, "notes.txt") == "plain notes"


def test_extract_csv_as_json_rows(tmp_path):
    path = tmp_path / "data"
    path.write_text("name,age\nAda,36\nAlan,41\n", encoding="utf-8")

    rows = json.loads(extract_text(path, "people.CSV"))

    assert rows == [{"name": "Ada", "age": "36"}, {"name": "Alan", "age": "41"}]


def test_extract_csv_replaces_undecodable_bytes(tmp_path):
    path = tmp_path / "data"
    path.write_bytes(b"city\nM\xfcnchen\n")

    rows = json.loads(extract_text(path, "cities.csv"))

    assert rows == [{"city": "M�nchen"}]


def test_oversized_csv_field_is_a_validation_error(tmp_path):
    path = tmp_path / "data"
    path.write_text("blob\n" + "x" * 200_000 + "\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        extract_text(path, "huge.csv")


def test_extract_pdf(tmp_path):
    path = tmp_path / "doc.pdf"
    doc = pymupdf.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Quarterly report")
    doc.save(str(path))
    doc.close()

    assert "Quarterly report" in extract_text(path, "doc.pdf")


def test_corrupt_pdf_is_a_validation_error(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not a pdf")

    with pytest.raises(ValidationError):
        extract_text(path, "broken.pdf")


def test_unsupported_extension(tmp_path):
    path = tmp_path / "sheet"
    path.write_bytes(b"PK")

    with pytest.raises(UnsupportedFileTypeError) as exc_info:
        extract_text(path, "sheet.xlsx")

    assert exc_info.value.status_code == 400


def test_truncate_always_appends_ellipsis():
    assert truncate_for_prompt("short") == "short..."
    assert len(truncate_for_prompt("x" * 10_000)) == MAX_PROMPT_CHARS + 3


def test_analysis_prompt_uses_custom_instruction():
    prompt = analysis_prompt("body", "List the risks")

    assert prompt.startswith("List the risks")
    assert "body..." in prompt
