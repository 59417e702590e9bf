"""Tests for sensitive data redaction and JSON-safe normalization."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from anglesite_resilience.core.errors import NetworkError
from anglesite_resilience.core.observability import (
    redact_for_logging,
    redact_sensitive_data,
    redact_text,
)
from anglesite_resilience.core.safe_json import (
    CIRCULAR_MARKER,
    MAX_DEPTH_MARKER,
    safe_json_dumps,
    to_json_safe,
    truncate_text,
)


class TestRedactText:
    """Tests for pattern-based redaction."""

    def test_email_and_ip(self):
        text = redact_text("user alice@example.com from 192.168.1.20")
        assert "alice@example.com" not in text
        assert "192.168.1.20" not in text
        assert "[REDACTED:EMAIL]" in text
        assert "[REDACTED:IP_ADDRESS]" in text

    def test_bearer_token(self):
        assert "abc.def" not in redact_text("Authorization: Bearer abc.def")

    def test_password_assignment(self):
        assert "hunter22" not in redact_text("password=hunter22")

    def test_plain_text_untouched(self):
        assert redact_text("Retry attempt 2/3: list-websites") == "Retry attempt 2/3: list-websites"


class TestRedactSensitiveData:
    """Tests for recursive redaction."""

    def test_sensitive_keys_replaced(self):
        data = {"api_key": "whatever", "nested": {"Password": "x", "site": "blog"}, "items": [{"token": "t"}]}
        result = redact_sensitive_data(data)
        assert result["api_key"] == "[REDACTED:API_KEY]"
        assert result["nested"]["Password"] == "[REDACTED:PASSWORD]"
        assert result["nested"]["site"] == "blog"
        assert result["items"][0]["token"] == "[REDACTED:TOKEN]"

    def test_none_values_kept(self):
        assert redact_sensitive_data({"api_key": None}) == {"api_key": None}

    def test_original_not_modified(self):
        data = {"email": "alice@example.com"}
        redact_sensitive_data(data)
        assert data == {"email": "alice@example.com"}

    def test_redact_for_logging(self):
        text = redact_for_logging({"secret": "s", "message": "x" * 100}, max_length=40)
        assert "[REDACTED:SECRET]" in text
        assert text.endswith("...")
        assert len(text) == 43


class Color(Enum):
    RED = "red"


@dataclass
class Point:
    x: int
    y: int


class TestToJsonSafe:
    """Tests for JSON-safe normalization."""

    def test_common_types(self):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        result = to_json_safe({"when": stamp, "color": Color.RED, "point": Point(1, 2), "tags": {"a"}})
        assert result == {"when": stamp.isoformat(), "color": "red", "point": {"x": 1, "y": 2}, "tags": ["a"]}

    def test_cycle_broken(self):
        items = [1]
        items.append(items)
        assert to_json_safe(items) == [1, CIRCULAR_MARKER]

    def test_shared_reference_is_not_a_cycle(self):
        shared = {"v": 1}
        assert to_json_safe({"a": shared, "b": shared}) == {"a": {"v": 1}, "b": {"v": 1}}

    def test_depth_limit(self):
        deep = {"a": {"b": {"c": {}}}}
        assert to_json_safe(deep, max_depth=2) == {"a": {"b": MAX_DEPTH_MARKER}}

    def test_exceptions(self):
        assert to_json_safe(ValueError("bad")) == {"name": "ValueError", "message": "bad"}
        assert to_json_safe(NetworkError("refused", "ECONNREFUSED"))["code"] == "ECONNREFUSED"

    def test_safe_json_dumps_never_raises(self):
        loop = {}
        loop["loop"] = loop
        assert json.loads(safe_json_dumps(loop)) == {"loop": CIRCULAR_MARKER}

    def test_truncate_text(self):
        assert truncate_text("abcdef", 10) == "abcdef"
        assert truncate_text("a" * 50, 20).endswith("...[truncated]")
        assert len(truncate_text("a" * 50, 20)) == 20
        assert truncate_text("abc", 0) == ""
