"""Slack bot that answers in threads using an LLM.

Listens via Socket Mode for two triggers:

- an @mention of the bot, answered in the mention's thread;
- a configured reaction (``:osiete_ai:`` by default) on a message,
  answered in that message's thread with a mention of the reactor.

Each trigger assembles the thread into a budgeted context, asks the
completion endpoint for a reply, and posts it back. Bolt acks every event
and runs each listener on its own worker thread; handlers share nothing
but read-only config and client handles.

Handlers never raise. Completion failures are reported in the thread with
a short trace ID that matches the log line; other failures are only
logged.
"""

from __future__ import annotations

import logging
import os
import secrets
import string
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from slack_sdk.errors import SlackApiError

from threadbot.completion import CompletionClient
from threadbot.config import BotConfig
from threadbot.conversation import (
    ChatMessage,
    ConversationAssembler,
    Role,
    ThreadContext,
    log_messages,
)
from threadbot.errors import (
    CompletionUnavailable,
    ConfigurationError,
    EmptyCompletion,
    PostFailure,
    ThreadBotError,
)
from threadbot.slack_formatter import (
    format_error_notice,
    format_reaction_reply,
    split_message,
)
from threadbot.tokens import token_counter

logger = logging.getLogger(__name__)

TRACE_ID_LENGTH = 6
_TRACE_ALPHABET = string.ascii_letters + string.digits


class Outcome(str, Enum):
    """How handling a single event ended."""

    IGNORED = "ignored"
    POSTED = "posted"
    ERROR_REPORTED = "error-reported"
    FAILED = "failed"


@dataclass(frozen=True)
class BotIdentity:
    """The bot's own IDs, as reported by auth.test."""

    bot_id: str
    user_id: str

    def is_self(self, bot_id: str, user_id: str) -> bool:
        """True if an event with these sender IDs came from this bot."""
        return bool(
            (bot_id and bot_id == self.bot_id)
            or (user_id and user_id == self.user_id)
        )


def resolve_identity(client: Any) -> BotIdentity:
    """Look up the bot's IDs via auth.test.

    Raises:
        SlackApiError: If the token is rejected.
    """
    auth = client.auth_test()
    identity = BotIdentity(
        bot_id=auth.get("bot_id", "") or "", user_id=auth.get("user_id", "") or ""
    )
    logger.info(
        "Bot identity resolved: bot_id=%s user_id=%s",
        identity.bot_id,
        identity.user_id,
    )
    return identity


def generate_trace_id(length: int = TRACE_ID_LENGTH) -> str:
    """Random alphanumeric ID shown to users so a failure can be found in logs."""
    return "".join(secrets.choice(_TRACE_ALPHABET) for _ in range(length))


def first_non_empty(*values: str | None) -> str:
    for value in values:
        if value:
            return value
    return ""


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


@dataclass
class EventDispatcher:
    """Routes mention and reaction events to the model and back to Slack.

    Args:
        config: Bot configuration.
        identity: The bot's own IDs, for the self-mention guard.
        assembler: Builds thread contexts.
        completion: Completion collaborator.
        client: slack_sdk WebClient used to post replies.
    """

    config: BotConfig
    identity: BotIdentity
    assembler: ConversationAssembler
    completion: CompletionClient
    client: Any = field(repr=False)

    @property
    def preamble(self) -> ChatMessage:
        return ChatMessage(role=Role.SYSTEM, content=self.config.system_message)

    # -- Event handlers -----------------------------------------------------

    def handle_mention(self, event: dict[str, Any]) -> Outcome:
        """Answer an app_mention in its thread."""
        if self.identity.is_self(event.get("bot_id", ""), event.get("user", "")):
            logger.debug("Ignoring mention sent by the bot itself")
            return Outcome.IGNORED

        channel = event.get("channel", "")
        thread_ts = first_non_empty(event.get("thread_ts"), event.get("ts"))
        logger.info(
            "app_mention from user=%s channel=%s thread=%s",
            event.get("user", ""),
            channel,
            thread_ts,
        )
        try:
            context = self.assembler.assemble(channel, thread_ts, self.preamble)
            log_messages(context)
            return self._respond(channel, thread_ts, context)
        except ThreadBotError as exc:
            logger.error("Mention in %s/%s not answered: %s", channel, thread_ts, exc)
        except Exception:
            logger.exception("Error handling app_mention event")
        return Outcome.FAILED

    def handle_reaction(self, event: dict[str, Any]) -> Outcome:
        """Answer the message that received the trigger reaction."""
        item = event.get("item") or {}
        if event.get("reaction") != self.config.trigger_reaction:
            return Outcome.IGNORED
        if item.get("type") != "message":
            return Outcome.IGNORED

        channel = item.get("channel", "")
        reactor = event.get("user", "")
        logger.info(
            "reaction %s from user=%s channel=%s ts=%s",
            event.get("reaction"),
            reactor,
            channel,
            item.get("ts", ""),
        )
        thread_ts = ""
        try:
            source = self.assembler.fetch_message(channel, item.get("ts", ""))
            thread_ts = first_non_empty(source.thread_ts, source.ts)
            trailing = None
            if source.text:
                trailing = ChatMessage(
                    role=Role.USER, content=source.text, author_id=source.user
                )
            context = self.assembler.assemble(
                channel, thread_ts, self.preamble, trailing=trailing
            )
            log_messages(context)
            return self._respond(channel, thread_ts, context, reactor=reactor)
        except ThreadBotError as exc:
            logger.error("Reaction in %s/%s not answered: %s", channel, thread_ts, exc)
        except Exception:
            logger.exception("Error handling reaction_added event")
        return Outcome.FAILED

    def handle_member_joined(self, event: dict[str, Any]) -> Outcome:
        logger.info(
            "User %s joined channel %s", event.get("user", ""), event.get("channel", "")
        )
        return Outcome.IGNORED

    # -- Helpers ------------------------------------------------------------

    def _respond(
        self,
        channel: str,
        thread_ts: str,
        context: ThreadContext,
        reactor: str = "",
    ) -> Outcome:
        """Complete *context* and post the reply, or an error notice."""
        try:
            completion = self.completion.complete(context)
        except (CompletionUnavailable, EmptyCompletion) as exc:
            trace_id = generate_trace_id()
            logger.error("Failed creating chat completion %s: %s", trace_id, exc)
            self._post_error_notice(channel, thread_ts, trace_id)
            return Outcome.ERROR_REPORTED

        if reactor:
            completion = format_reaction_reply(reactor, completion)
        self.post_on_thread(channel, completion, thread_ts)
        return Outcome.POSTED

    def post_on_thread(self, channel: str, text: str, thread_ts: str) -> None:
        """Post *text* as one or more replies in a thread.

        Raises:
            PostFailure: If Slack rejects any chunk.
        """
        for chunk in split_message(text):
            try:
                self.client.chat_postMessage(
                    channel=channel, text=chunk, thread_ts=thread_ts
                )
            except SlackApiError as exc:
                raise PostFailure(f"failed posting message: {exc}") from exc

    def _post_error_notice(self, channel: str, thread_ts: str, trace_id: str) -> None:
        try:
            self.post_on_thread(channel, format_error_notice(trace_id), thread_ts)
        except PostFailure as exc:
            logger.error("Failed posting error notice %s: %s", trace_id, exc)


# ---------------------------------------------------------------------------
# SlackBot
# ---------------------------------------------------------------------------


@dataclass
class SlackBot:
    """Wires the dispatcher to a slack_bolt App.

    Args:
        config: Bot configuration.
        app: Optional pre-built slack_bolt.App (for testing).
        anthropic_client: Optional pre-built anthropic.Anthropic (for testing).
    """

    config: BotConfig
    app: Any = field(default=None, repr=False)
    anthropic_client: Any = field(default=None, repr=False)
    identity: BotIdentity = field(init=False)
    dispatcher: EventDispatcher = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.app is None:
            from slack_bolt import App

            self.app = App(
                token=self.config.slack_bot_token,
                listener_executor=ThreadPoolExecutor(
                    max_workers=self.config.max_concurrent_events,
                    thread_name_prefix="threadbot-event",
                ),
            )

        self.identity = resolve_identity(self.app.client)
        self.dispatcher = EventDispatcher(
            config=self.config,
            identity=self.identity,
            assembler=ConversationAssembler(
                client=self.app.client,
                bot_id=self.identity.bot_id,
                budget=self.config.context_token_budget,
                metric=token_counter(self.config.tokenizer_encoding),
            ),
            completion=CompletionClient(
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                api_key=self.config.anthropic_api_key,
                client=self.anthropic_client,
            ),
            client=self.app.client,
        )

        self.app.event("app_mention")(self._on_mention)
        self.app.event("reaction_added")(self._on_reaction)
        self.app.event("member_joined_channel")(self._on_member_joined)

        @self.app.middleware
        def _log_all_events(body, next):
            event = body.get("event", {})
            logger.debug(
                "Event received: type=%s user=%s channel=%s",
                event.get("type", "unknown"),
                event.get("user", ""),
                event.get("channel", ""),
            )
            next()

    # Bolt injects listener arguments by name, so these take ``event`` only.

    def _on_mention(self, event: dict[str, Any]) -> None:
        self.dispatcher.handle_mention(event)

    def _on_reaction(self, event: dict[str, Any]) -> None:
        self.dispatcher.handle_reaction(event)

    def _on_member_joined(self, event: dict[str, Any]) -> None:
        self.dispatcher.handle_member_joined(event)

    def start(self) -> None:
        """Start the bot (blocking). Connects via Socket Mode."""
        from slack_bolt.adapter.socket_mode import SocketModeHandler

        logger.info("Connecting to Slack with Socket Mode...")
        handler = SocketModeHandler(self.app, self.config.slack_app_token)
        handler.start()


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entrypoint for the Slack bot."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    try:
        config = BotConfig.from_env()
    except ConfigurationError as exc:
        raise SystemExit(f"threadbot: {exc}") from exc
    logger.info("Starting with %r", config)

    bot = SlackBot(config=config)
    bot.start()


if __name__ == "__main__":
    main()
