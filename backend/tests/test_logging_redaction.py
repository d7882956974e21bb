import json
import logging

from deskwise.infra.logging import (
    RedactingJsonFormatter,
    clear_log_context,
    redact_pii,
    update_log_context,
)


def _format(message: str, **extra) -> dict:
    record = logging.LogRecord("deskwise.test", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(RedactingJsonFormatter().format(record))


def test_redacts_contact_details_in_message():
    message = redact_pii("Call jane.doe@example.com or 555-123-4567 at 42 Main Street")

    assert "jane.doe@example.com" not in message
    assert "555-123-4567" not in message
    assert "Main Street" not in message
    assert "[REDACTED_EMAIL]" in message


def test_redacts_tokens():
    message = redact_pii("GET /callback?token=abc123&state=ok Authorization: Bearer eyJhbGci.x.y")

    assert "abc123" not in message
    assert "eyJhbGci" not in message
    assert "token=[REDACTED_TOKEN]" in message


def test_sensitive_extra_keys_are_masked():
    payload = _format(
        "schedule_item_created",
        extra={"item_id": "item-1", "email": "tech@example.com", "location": "12 Oak Ave"},
    )

    assert payload["item_id"] == "item-1"
    assert payload["email"] == "[REDACTED]"
    assert payload["location"] == "[REDACTED]"


def test_log_context_is_merged_and_cleared():
    update_log_context(request_id="req-1", org_id="org-1", status_code=None)
    try:
        payload = _format("request")
        assert payload["request_id"] == "req-1"
        assert payload["org_id"] == "org-1"
        assert "status_code" not in payload
    finally:
        clear_log_context()

    assert "request_id" not in _format("request")
