"""Tests for threadbot.tokens."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from threadbot.tokens import char_length, token_counter


class TestTokenCounter:
    def test_empty_name_is_character_length(self) -> None:
        assert token_counter("") is char_length

    def test_counts_encoded_tokens(self) -> None:
        encoding = MagicMock()
        encoding.encode.return_value = [1, 2, 3]
        with patch("tiktoken.get_encoding", return_value=encoding) as get:
            metric = token_counter("cl100k_base")
            assert metric("hello there world") == 3
        get.assert_called_once_with("cl100k_base")
        encoding.encode.assert_called_once_with(
            "hello there world", disallowed_special=()
        )

    def test_unknown_encoding_degrades(self) -> None:
        with patch("tiktoken.get_encoding", side_effect=ValueError("unknown")):
            metric = token_counter("no_such_encoding")
        assert metric is char_length

    def test_download_failure_degrades(self) -> None:
        with patch("tiktoken.get_encoding", side_effect=OSError("offline")):
            metric = token_counter("cl100k_base")
        assert metric("abcd") == 4


class TestCharLength:
    def test_length(self) -> None:
        assert char_length("héllo") == 5
