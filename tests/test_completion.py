"""Tests for threadbot.completion."""

from __future__ import annotations

from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from threadbot.completion import (
    EMPTY_THREAD_PLACEHOLDER,
    CompletionClient,
    _merge_consecutive_roles,
    to_request,
)
from threadbot.conversation import ChatMessage, Role
from threadbot.errors import CompletionUnavailable, EmptyCompletion


def _mock_anthropic_response(*texts: str) -> MagicMock:
    """Create a mock Anthropic API response."""
    blocks = []
    for text in texts:
        block = MagicMock()
        block.type = "text"
        block.text = text
        blocks.append(block)
    resp = MagicMock()
    resp.content = blocks
    return resp


@pytest.fixture()
def mock_anthropic() -> MagicMock:
    client = MagicMock()
    client.messages.create.return_value = _mock_anthropic_response("Hello from Claude")
    return client


@pytest.fixture()
def completion(mock_anthropic: MagicMock) -> CompletionClient:
    return CompletionClient(
        model="claude-test", temperature=0.5, max_tokens=700, client=mock_anthropic
    )


CONTEXT = [
    ChatMessage(role=Role.SYSTEM, content="You are Frederica."),
    ChatMessage(role=Role.USER, content="hi"),
]


# ---------------------------------------------------------------------------
# Request shaping
# ---------------------------------------------------------------------------


class TestMergeConsecutiveRoles:
    def test_empty(self) -> None:
        assert _merge_consecutive_roles([]) == []

    def test_merges_consecutive_user(self) -> None:
        msgs = [
            {"role": "user", "content": "a"},
            {"role": "user", "content": "b"},
            {"role": "assistant", "content": "c"},
        ]
        result = _merge_consecutive_roles(msgs)
        assert result == [
            {"role": "user", "content": "a\nb"},
            {"role": "assistant", "content": "c"},
        ]

    def test_does_not_mutate_input(self) -> None:
        msgs = [
            {"role": "user", "content": "a"},
            {"role": "user", "content": "b"},
        ]
        original = [m.copy() for m in msgs]
        _merge_consecutive_roles(msgs)
        assert msgs == original


class TestToRequest:
    def test_system_split_out(self) -> None:
        system, turns = to_request(CONTEXT)
        assert system == "You are Frederica."
        assert turns == [{"role": "user", "content": "hi"}]

    def test_drops_leading_assistant(self) -> None:
        context = [
            ChatMessage(role=Role.SYSTEM, content="sys"),
            ChatMessage(role=Role.ASSISTANT, content="I started this"),
            ChatMessage(role=Role.USER, content="ok"),
        ]
        _, turns = to_request(context)
        assert turns == [{"role": "user", "content": "ok"}]

    def test_preamble_only(self) -> None:
        system, turns = to_request([ChatMessage(role=Role.SYSTEM, content="sys")])
        assert system == "sys"
        assert turns == []


# ---------------------------------------------------------------------------
# CompletionClient.complete
# ---------------------------------------------------------------------------


class TestComplete:
    def test_returns_text(
        self, completion: CompletionClient, mock_anthropic: MagicMock
    ) -> None:
        assert completion.complete(CONTEXT) == "Hello from Claude"
        kwargs = mock_anthropic.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["temperature"] == 0.5
        assert kwargs["max_tokens"] == 700
        assert kwargs["system"] == "You are Frederica."
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_joins_text_blocks(
        self, completion: CompletionClient, mock_anthropic: MagicMock
    ) -> None:
        mock_anthropic.messages.create.return_value = _mock_anthropic_response(
            "part one", "part two"
        )
        assert completion.complete(CONTEXT) == "part one\npart two"

    def test_no_content_raises_empty_completion(
        self, completion: CompletionClient, mock_anthropic: MagicMock
    ) -> None:
        mock_anthropic.messages.create.return_value = _mock_anthropic_response()
        with pytest.raises(EmptyCompletion):
            completion.complete(CONTEXT)

    def test_preamble_only_sends_placeholder_turn(
        self, completion: CompletionClient, mock_anthropic: MagicMock
    ) -> None:
        result = completion.complete([ChatMessage(role=Role.SYSTEM, content="sys")])
        assert result == "Hello from Claude"
        kwargs = mock_anthropic.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["messages"] == [
            {"role": "user", "content": EMPTY_THREAD_PLACEHOLDER}
        ]

    def test_api_error_raises_completion_unavailable(
        self, completion: CompletionClient, mock_anthropic: MagicMock
    ) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_anthropic.messages.create.side_effect = anthropic.APIConnectionError(
            request=request
        )
        with pytest.raises(CompletionUnavailable, match="failed creating"):
            completion.complete(CONTEXT)

    def test_builds_client_from_api_key(self) -> None:
        client = CompletionClient(
            model="m", temperature=0.0, max_tokens=1, api_key="sk-ant-test"
        )
        assert isinstance(client.client, anthropic.Anthropic)
