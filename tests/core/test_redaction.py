# tests/core/test_redaction.py
"""Tests for sensitive-data redaction."""

import pytest

from phaseconf.core.redaction import REDACTED, redact_event, redact_sensitive, redact_value, truncate


class TestRedactSensitive:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("token=abc123", "token=[REDACTED]"),
            ("API_KEY: sk-live-999", "API_KEY=[REDACTED]"),
            ("password = hunter2", "password=[REDACTED]"),
            ("secret:xyz", "secret=[REDACTED]"),
            ("auth=opaque", "auth=[REDACTED]"),
            ("using token pss_service_42 now", "using token=[REDACTED] now"),
            ('PHASE_SERVICE_TOKEN="pss_service:v2:abc123"', "PHASE_SERVICE_TOKEN=[REDACTED]"),
            ("password='hunter2hunter'", "password=[REDACTED]"),
            ('password: "two words"', "password=[REDACTED]"),
            ("token abcdefghijklmnop", "token=[REDACTED]"),
            ("Authorization header auth opaque-value", "Authorization header auth=[REDACTED]"),
        ],
    )
    def test_labelled_values_are_redacted(self, text: str, expected: str) -> None:
        assert redact_sensitive(text) == expected

    def test_prose_after_label_is_kept(self) -> None:
        text = "Token loaded from workspace root .env file"

        assert redact_sensitive(text) == text

    @pytest.mark.parametrize(
        "text",
        [
            "Service token loaded from process-environment in 3ms",
            "No service token found after checking 5 sources",
            "401 Unauthorized: service token rejected",
            "Confirm the service token has access to the application",
            "monkey business with a turkey",
        ],
    )
    def test_ordinary_words_after_label_are_kept(self, text: str) -> None:
        assert redact_sensitive(text) == text

    def test_quoted_env_line_stored_by_monitor_is_redacted(self) -> None:
        from phaseconf.contracts import LogLevel
        from phaseconf.monitoring import Monitor

        entry = Monitor().log(LogLevel.ERROR, "token-loading", 'bad line PHASE_SERVICE_TOKEN="pss_service:v2:abc123"')

        assert entry is not None
        assert "abc123" not in entry.message

    def test_bearer_header_is_redacted(self) -> None:
        text = "Authorization: Bearer Service pss_service:v2:abcdef"

        result = redact_sensitive(text)

        assert "pss_service" not in result
        assert REDACTED in result

    def test_known_secret_scrubbed_anywhere(self) -> None:
        result = redact_sensitive("rejected credential ZZZTOPSECRET for app", known_secrets=["ZZZTOPSECRET"])

        assert "ZZZTOPSECRET" not in result

    def test_short_known_secrets_are_ignored(self) -> None:
        assert redact_sensitive("a b c", known_secrets=["b"]) == "a b c"

    def test_already_redacted_text_is_stable(self) -> None:
        once = redact_sensitive("token=abc123 key: def456")

        assert redact_sensitive(once) == once

    def test_none_and_non_strings(self) -> None:
        assert redact_sensitive(None) == ""  # type: ignore[arg-type]
        assert redact_sensitive(42) == "42"  # type: ignore[arg-type]


class TestRedactValue:
    def test_nested_structures(self) -> None:
        value = {"msg": "token=abc123", "items": ["key: 1a2b3c", 7], "pair": ("secret=x1",)}

        result = redact_value(value)

        assert result == {
            "msg": "token=[REDACTED]",
            "items": ["key=[REDACTED]", 7],
            "pair": ("secret=[REDACTED]",),
        }


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("hello", 100) == "hello"

    def test_long_text_clipped_with_marker(self) -> None:
        result = truncate("x" * 500, 100)

        assert len(result) == 100
        assert result.endswith("... [truncated]")


class TestRedactEvent:
    def test_processor_redacts_string_values(self) -> None:
        event = {"event": "login with password=hunter2", "count": 3}

        result = redact_event(None, "info", event)

        assert result == {"event": "login with password=[REDACTED]", "count": 3}
