"""threadbot: Slack thread bridge to an LLM completion endpoint."""

__version__ = "0.1.0"

from threadbot.config import BotConfig
from threadbot.conversation import (
    ChatMessage,
    ConversationAssembler,
    Role,
    SlackMessage,
    ThreadContext,
    classify_role,
    convert,
    truncate,
)
from threadbot.slack_bot import (
    BotIdentity,
    EventDispatcher,
    Outcome,
    SlackBot,
    generate_trace_id,
)

__all__ = [
    # config
    "BotConfig",
    # conversation
    "ChatMessage",
    "ConversationAssembler",
    "Role",
    "SlackMessage",
    "ThreadContext",
    "classify_role",
    "convert",
    "truncate",
    # slack_bot
    "BotIdentity",
    "EventDispatcher",
    "Outcome",
    "SlackBot",
    "generate_trace_id",
]
