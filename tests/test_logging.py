"""Tests for the structlog processors."""

import pytest

from talko.core.logging import REDACTED, SERVICE_NAME, add_service, redact_secrets

pytestmark = pytest.mark.unit


def test_credentials_are_masked():
    event = {"event": "login_attempt", "email": "ada@example.com", "password": "s3cret-pass", "Authorization": "Bearer x"}

    result = redact_secrets(None, "info", event)

    assert result["password"] == REDACTED
    assert result["Authorization"] == REDACTED
    assert result["email"] == "ada@example.com"


def test_nested_credentials_are_masked_without_touching_the_original():
    body = {"username": "ada", "password": "s3cret-pass"}

    result = redact_secrets(None, "info", {"event": "register", "body": body})

    assert result["body"] == {"username": "ada", "password": REDACTED}
    assert body["password"] == "s3cret-pass"


def test_empty_credential_left_alone():
    assert redact_secrets(None, "info", {"event": "x", "token": None})["token"] is None


def test_service_name_added():
    assert add_service(None, "info", {"event": "x"})["service"] == SERVICE_NAME
