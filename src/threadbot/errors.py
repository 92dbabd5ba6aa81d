"""Error taxonomy for threadbot.

Configuration errors are fatal at startup. Everything else is local to a
single Slack event: raised by the collaborator that failed and caught at
the dispatcher boundary in slack_bot.py.
"""

from __future__ import annotations


class ThreadBotError(Exception):
    """Base class for all threadbot errors."""


class ConfigurationError(ThreadBotError, ValueError):
    """The process cannot start with the given configuration."""


class ConfigurationMissing(ConfigurationError):
    """One or more required settings are unset."""

    def __init__(self, names: list[str]):
        super().__init__(
            f"Missing required environment variables: {', '.join(names)}"
        )
        self.names = list(names)


class ConfigurationInvalid(ConfigurationError):
    """A setting is present but cannot be parsed."""


class HistoryUnavailable(ThreadBotError):
    """The Slack history call for a thread failed."""


class EmptyThread(ThreadBotError):
    """Slack returned no messages for a thread."""


class EncodingFailure(ThreadBotError):
    """The size metric could not be computed for a message."""


class CompletionUnavailable(ThreadBotError):
    """The completion endpoint failed (network, auth, quota)."""


class EmptyCompletion(ThreadBotError):
    """The completion endpoint answered without any text."""


class PostFailure(ThreadBotError):
    """Posting a message to Slack failed."""
