"""Tests for threadbot.slack_formatter."""

from __future__ import annotations

from threadbot.slack_formatter import (
    format_error_notice,
    format_reaction_reply,
    split_message,
)


class TestReactionReply:
    def test_mentions_reactor(self):
        assert format_reaction_reply("U123", "answer") == "<@U123>\n\nanswer"


class TestErrorNotice:
    def test_contains_trace_id(self):
        assert "Ab3xY9" in format_error_notice("Ab3xY9")

    def test_fixed_text(self):
        assert format_error_notice("a") != format_error_notice("b")
        assert format_error_notice("a")[:-1] == format_error_notice("b")[:-1]


class TestSplitMessage:
    def test_short_message(self):
        assert split_message("hello", max_len=100) == ["hello"]

    def test_splits_at_newline(self):
        text = "line one\nline two\nline three"
        chunks = split_message(text, max_len=18)
        assert chunks == ["line one\nline two", "line three"]

    def test_falls_back_to_space(self):
        chunks = split_message("aaaa bbbb cccc", max_len=10)
        assert all(len(c) <= 10 for c in chunks)
        assert "".join(chunks).replace(" ", "") == "aaaabbbbcccc"

    def test_hard_split(self):
        chunks = split_message("x" * 25, max_len=10)
        assert chunks == ["x" * 10, "x" * 10, "x" * 5]
