"""Tests for user-facing message sanitization."""

import pytest

from anglesite_resilience.core.translation import (
    extract_filename,
    redact_secrets,
    reduce_user_paths,
    sanitize_message,
    sanitize_path,
    truncate_message,
)


class TestSanitizePath:
    """Tests for sanitize_path."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/Users/alice/secret/file.txt", "file.txt"),
            ("C:\\Users\\alice\\Documents\\site\\index.md", "index.md"),
            ("relative/dir/", "dir"),
            ("plain.txt", "plain.txt"),
            ("", ""),
        ],
    )
    def test_keeps_only_basename(self, path, expected):
        assert sanitize_path(path) == expected


class TestReduceUserPaths:
    """Home and temp directories never survive into user text."""

    def test_macos_home(self):
        text = reduce_user_paths("Failed to open /Users/alice/secret/file.txt for reading")
        assert text == "Failed to open file.txt for reading"
        assert "alice" not in text

    def test_linux_home(self):
        assert reduce_user_paths("ENOENT: /home/bob/site/index.md") == "ENOENT: index.md"

    def test_windows_home(self):
        text = reduce_user_paths("Cannot read C:\\Users\\carol\\site\\post.md")
        assert "carol" not in text
        assert text.endswith("post.md")

    def test_temp_folders(self):
        text = reduce_user_paths("lock held at /var/folders/xy/T/anglesite.lock")
        assert text == "lock held at anglesite.lock"

    def test_private_temp_folders(self):
        text = reduce_user_paths("open /private/var/folders/ab/cd/T/tmp.txt failed")
        assert text == "open tmp.txt failed"

    def test_other_paths_untouched(self):
        assert reduce_user_paths("bad file /etc/hosts") == "bad file /etc/hosts"


class TestRedactSecrets:
    """Tests for key=value secret redaction."""

    @pytest.mark.parametrize(
        "text,leaked",
        [
            ("request failed token=abc123XYZ", "abc123XYZ"),
            ("login failed password: hunter2!", "hunter2!"),
            ("bad api_key=sk-live-999", "sk-live-999"),
            ("API-KEY: qwerty", "qwerty"),
            ("secret=s3cr3t", "s3cr3t"),
            ("auth=bearer-value", "bearer-value"),
            ("token=eyJhbGci.eyJzdWIi.c2lnbmF0dXJl", "eyJzdWIi"),
            ("api_key=sk.live.999", "live.999"),
        ],
    )
    def test_secret_values_removed(self, text, leaked):
        redacted = redact_secrets(text)
        assert leaked not in redacted
        assert "[REDACTED]" in redacted

    def test_sanitize_message_does_both(self):
        text = sanitize_message("token=abc failed for /Users/alice/site/a.md")
        assert text == "token=[REDACTED] failed for a.md"

    def test_dotted_token_fully_redacted(self):
        assert redact_secrets("token=eyJ.a.b rejected") == "token=[REDACTED] rejected"


class TestTruncateMessage:
    """Tests for truncate_message."""

    def test_short_text_unchanged(self):
        assert truncate_message("hello", 10) == "hello"

    def test_long_text_ends_with_ellipsis(self):
        result = truncate_message("x" * 600, 500)
        assert len(result) == 500
        assert result.endswith("...")

    def test_tiny_limit(self):
        assert truncate_message("abcdef", 2) == "ab"


class TestExtractFilename:
    """Tests for extract_filename."""

    @pytest.mark.parametrize(
        "message,expected",
        [
            ('Cannot open "index.md"', "index.md"),
            ("ENOENT: /home/bob/site/index.md", "index.md"),
            ("Could not read file config.toml", "config.toml"),
            ("Error at C:\\sites\\blog\\post.md", "post.md"),
            ("Something went wrong", None),
            ("", None),
        ],
    )
    def test_extract(self, message, expected):
        assert extract_filename(message) == expected
