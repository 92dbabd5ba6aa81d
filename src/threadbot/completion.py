"""Completion client over the Anthropic Messages API.

Takes an assembled thread context and returns the model's reply text.
System-role messages are sent through the API's ``system`` parameter and
the remaining turns are normalised to the alternation the API expects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import anthropic

from threadbot.conversation import ChatMessage, Role
from threadbot.errors import CompletionUnavailable, EmptyCompletion

logger = logging.getLogger(__name__)

EMPTY_THREAD_PLACEHOLDER = "(waiting for response)"


def _merge_consecutive_roles(
    messages: list[dict[str, str]],
) -> list[dict[str, str]]:
    """Merge consecutive messages with the same role.

    The Anthropic API requires alternating user/assistant roles.
    Consecutive same-role messages are joined with newlines.
    """
    if not messages:
        return []

    merged: list[dict[str, str]] = [messages[0].copy()]
    for msg in messages[1:]:
        if msg["role"] == merged[-1]["role"]:
            merged[-1]["content"] += "\n" + msg["content"]
        else:
            merged.append(msg.copy())
    return merged


def to_request(messages: list[ChatMessage]) -> tuple[str, list[dict[str, str]]]:
    """Split a context into the API's ``system`` text and turn list.

    Leading assistant turns are dropped since a conversation must open
    with the user.
    """
    system = "\n\n".join(m.content for m in messages if m.role is Role.SYSTEM)
    turns = _merge_consecutive_roles(
        [m.as_dict() for m in messages if m.role is not Role.SYSTEM]
    )
    while turns and turns[0]["role"] != Role.USER.value:
        turns = turns[1:]
    return system, turns


@dataclass
class CompletionClient:
    """Calls the completion endpoint with fixed model parameters.

    Args:
        model: Model identifier.
        temperature: Sampling temperature.
        max_tokens: Maximum output tokens.
        api_key: Anthropic API key, used when *client* is not given.
        client: Optional pre-built anthropic.Anthropic (for testing).
    """

    model: str
    temperature: float
    max_tokens: int
    api_key: str = field(default="", repr=False)
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = anthropic.Anthropic(api_key=self.api_key)

    def complete(self, messages: list[ChatMessage]) -> str:
        """Return the model's reply to *messages*.

        Raises:
            CompletionUnavailable: On network, auth, quota or other API errors.
            EmptyCompletion: If the response carries no text.
        """
        system, turns = to_request(messages)
        if not turns:
            # Nothing of the thread fit the budget; the API needs one user turn.
            logger.info("No thread messages left after truncation, sending placeholder")
            turns = [{"role": Role.USER.value, "content": EMPTY_THREAD_PLACEHOLDER}]

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system

        try:
            response = self.client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise CompletionUnavailable(
                f"failed creating chat completion: {exc}"
            ) from exc

        parts = [
            block.text
            for block in response.content or []
            if getattr(block, "type", "text") == "text" and getattr(block, "text", "")
        ]
        if not parts:
            raise EmptyCompletion("no choices returned")

        completion = "\n".join(parts)
        logger.info("Completion: %s", completion)
        return completion
