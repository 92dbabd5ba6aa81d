"""Thread-context assembly for threadbot.

Fetches a Slack thread, converts it into role-tagged chat messages, and
trims the oldest messages so the conversation fits the context budget.
The conversion and truncation steps are pure functions; only
ConversationAssembler talks to Slack.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from slack_sdk.errors import SlackApiError

from threadbot.errors import EmptyThread, EncodingFailure, HistoryUnavailable
from threadbot.tokens import SizeMetric, char_length

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChatMessage:
    """A single message as sent to the completion endpoint."""

    role: Role
    content: str
    author_id: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


# Exactly what is sent to the completion endpoint, preamble first
ThreadContext = list[ChatMessage]


@dataclass(frozen=True)
class SlackMessage:
    """A single Slack message."""

    text: str
    user: str
    ts: str
    thread_ts: str | None = None
    bot_id: str = ""

    @classmethod
    def from_api(cls, m: dict[str, Any]) -> SlackMessage:
        return cls(
            text=m.get("text", "") or "",
            user=m.get("user", "") or "",
            ts=m.get("ts", "") or "",
            thread_ts=m.get("thread_ts"),
            bot_id=m.get("bot_id", "") or "",
        )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def classify_role(author: str, bot_id: str) -> Role:
    """Messages written by the bot itself are the assistant's turns."""
    if author == bot_id:
        return Role.ASSISTANT
    return Role.USER


def convert(messages: list[SlackMessage], bot_id: str) -> list[ChatMessage]:
    """Convert raw thread messages into chat messages.

    Messages with no author or no text (joins, file shares, deleted
    messages) are dropped. A message's author is its ``bot_id`` when it was
    posted by an app, otherwise its ``user``.
    """
    conversation: list[ChatMessage] = []
    for msg in messages:
        if not msg.user or not msg.text:
            continue
        author = msg.bot_id or msg.user
        conversation.append(
            ChatMessage(
                role=classify_role(author, bot_id),
                content=msg.text,
                author_id=msg.user,
            )
        )
    return conversation


def truncate(
    messages: list[ChatMessage],
    budget: int,
    metric: SizeMetric = char_length,
) -> list[ChatMessage]:
    """Keep the longest run of newest messages whose total size fits *budget*.

    Walks from the newest message backwards. When the running total first
    exceeds the budget, everything up to and including that message is
    dropped. If the newest message alone is over budget the result is
    empty.

    Raises:
        EncodingFailure: If *metric* fails on any message content.
    """
    total = 0
    for i in range(len(messages) - 1, -1, -1):
        content = messages[i].content
        try:
            total += metric(content)
        except Exception as exc:
            raise EncodingFailure(
                f"failed encoding message {content[:80]!r}: {exc}"
            ) from exc
        if total > budget:
            return messages[i + 1 :]
    return messages


def append_unless_last(
    messages: list[ChatMessage], message: ChatMessage
) -> list[ChatMessage]:
    """Append *message* unless the sequence already ends with the same content."""
    if messages and messages[-1].content == message.content:
        return messages
    return [*messages, message]


def log_messages(messages: list[ChatMessage]) -> None:
    """Dump an assembled context at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("-----MESSAGES_BEGIN-----")
    for msg in messages:
        logger.debug("%s: %s", msg.role.value, msg.content)
    logger.debug("-----MESSAGES_END-----")


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


@dataclass
class ConversationAssembler:
    """Builds the context sent to the model from a Slack thread.

    Args:
        client: slack_sdk WebClient (usually ``app.client``).
        bot_id: The bot's own ``bot_id``; its messages become assistant turns.
        budget: Maximum total size of the assembled context.
        metric: Size metric applied to each message's content.
    """

    client: Any
    bot_id: str
    budget: int
    metric: SizeMetric = char_length

    def _replies(self, channel: str, ts: str, **params: Any) -> list[SlackMessage]:
        """Call conversations.replies, following cursors unless *limit* is set."""
        messages: list[SlackMessage] = []
        cursor = ""
        while True:
            if cursor:
                params["cursor"] = cursor
            try:
                result = self.client.conversations_replies(
                    channel=channel, ts=ts, **params
                )
            except SlackApiError as exc:
                raise HistoryUnavailable(
                    f"failed getting conversation history: "
                    f"{exc.response.get('error', exc)}"
                ) from exc
            messages.extend(
                SlackMessage.from_api(m) for m in result.get("messages", [])
            )
            if "limit" in params:
                break
            metadata = result.get("response_metadata") or {}
            cursor = metadata.get("next_cursor", "")
            if not cursor:
                break

        if not messages:
            raise EmptyThread(
                f"failed getting conversation history: no messages in {channel}/{ts}"
            )
        return messages

    def fetch_thread(self, channel: str, thread_ts: str) -> list[SlackMessage]:
        """Fetch every message in a thread, parent first.

        Raises:
            HistoryUnavailable: If the Slack API call fails.
            EmptyThread: If the thread has no messages.
        """
        logger.info("Getting replies channel=%s ts=%s", channel, thread_ts)
        replies = self._replies(channel, thread_ts)
        logger.info("Got %d replies", len(replies))
        for msg in replies:
            logger.debug(
                "%s: %s thread_ts=%s ts=%s", msg.user, msg.text, msg.thread_ts, msg.ts
            )
        return replies

    def fetch_message(self, channel: str, ts: str) -> SlackMessage:
        """Fetch the single message at *ts*.

        Raises:
            HistoryUnavailable: If the Slack API call fails.
            EmptyThread: If no message exists at *ts*.
        """
        return self._replies(channel, ts, limit=1)[0]

    def history(
        self,
        channel: str,
        thread_ts: str,
        budget: int,
        trailing: ChatMessage | None = None,
    ) -> list[ChatMessage]:
        """Fetch, convert and truncate a thread to *budget*.

        *trailing* is appended after the thread (unless the thread already
        ends with it) and counts against the budget like any other message.
        """
        converted = convert(self.fetch_thread(channel, thread_ts), self.bot_id)
        if trailing is not None:
            converted = append_unless_last(converted, trailing)
        truncated = truncate(converted, budget, self.metric)
        if len(truncated) < len(converted):
            logger.info(
                "Dropped %d oldest messages to fit budget %d",
                len(converted) - len(truncated),
                budget,
            )
        return truncated

    def assemble(
        self,
        channel: str,
        thread_ts: str,
        preamble: ChatMessage,
        trailing: ChatMessage | None = None,
    ) -> ThreadContext:
        """Return ``[preamble] + history [+ trailing]`` sized to fit the budget.

        The preamble is never dropped; the history gets whatever budget the
        preamble leaves.
        """
        try:
            preamble_size = self.metric(preamble.content)
        except Exception as exc:
            raise EncodingFailure(f"failed encoding preamble: {exc}") from exc
        messages = self.history(
            channel, thread_ts, self.budget - preamble_size, trailing=trailing
        )
        return [preamble, *messages]
