import pytest

from with_postgres_ready.errors_catalog import actionable_error, format_seconds


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("readiness_timeout", seconds="2")

    assert "Timed out waiting for postgres to be ready after 2 seconds." in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("no_such_error")


def test_format_seconds_drops_trailing_zero():
    assert format_seconds(2.0) == "2"
    assert format_seconds(0.5) == "0.5"
