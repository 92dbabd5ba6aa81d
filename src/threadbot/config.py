"""Configuration for the threadbot process.

A single frozen BotConfig is built once at startup and passed into every
component. Values come from environment variables first, then from the
``bot:`` section of an optional YAML file named by THREADBOT_CONFIG, then
from the defaults below.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from threadbot.errors import ConfigurationInvalid, ConfigurationMissing

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_SYSTEM_MESSAGE = "The assistant's name is Frederica."
DEFAULT_TRIGGER_REACTION = "osiete_ai"
DEFAULT_TOKENIZER_ENCODING = "cl100k_base"

_REQUIRED = ("SLACK_BOT_TOKEN", "SLACK_APP_TOKEN", "ANTHROPIC_API_KEY")


@dataclass(frozen=True)
class BotConfig:
    """Immutable settings shared read-only by all event handlers."""

    slack_bot_token: str
    slack_app_token: str
    anthropic_api_key: str
    model: str = DEFAULT_MODEL
    temperature: float = 0.5
    max_tokens: int = 700
    system_message: str = DEFAULT_SYSTEM_MESSAGE
    trigger_reaction: str = DEFAULT_TRIGGER_REACTION
    context_token_budget: int = 3000
    tokenizer_encoding: str = DEFAULT_TOKENIZER_ENCODING
    max_concurrent_events: int = 10

    def __repr__(self) -> str:
        # Keep credentials out of logs.
        return (
            f"BotConfig(model={self.model!r}, temperature={self.temperature}, "
            f"max_tokens={self.max_tokens}, "
            f"trigger_reaction={self.trigger_reaction!r}, "
            f"context_token_budget={self.context_token_budget}, "
            f"tokenizer_encoding={self.tokenizer_encoding!r}, "
            f"max_concurrent_events={self.max_concurrent_events})"
        )

    @classmethod
    def from_env(cls, config_path: Path | None = None) -> BotConfig:
        """Create config from environment variables and an optional YAML file.

        Required env vars: SLACK_BOT_TOKEN, SLACK_APP_TOKEN, ANTHROPIC_API_KEY.

        Args:
            config_path: YAML file with a ``bot:`` section. Defaults to the
                THREADBOT_CONFIG env var; no file is read when neither is set.

        Raises:
            ConfigurationMissing: If required environment variables are unset.
            ConfigurationInvalid: If a numeric setting cannot be parsed or
                is not positive where it must be.
        """
        missing = [name for name in _REQUIRED if not os.environ.get(name, "")]
        if missing:
            raise ConfigurationMissing(missing)

        if config_path is None and os.environ.get("THREADBOT_CONFIG"):
            config_path = Path(os.environ["THREADBOT_CONFIG"])
        file_cfg = _load_bot_config(config_path) if config_path else {}

        def setting(name: str, default: Any) -> Any:
            value = os.environ.get(name)
            if value is not None:
                return value
            return file_cfg.get(name.lower(), default)

        return cls(
            slack_bot_token=os.environ["SLACK_BOT_TOKEN"],
            slack_app_token=os.environ["SLACK_APP_TOKEN"],
            anthropic_api_key=os.environ["ANTHROPIC_API_KEY"],
            model=str(setting("LLM_MODEL", DEFAULT_MODEL)),
            temperature=_parse(
                float, "LLM_TEMPERATURE", setting("LLM_TEMPERATURE", 0.5)
            ),
            max_tokens=_positive("LLM_MAX_TOKENS", setting("LLM_MAX_TOKENS", 700)),
            system_message=str(setting("SYSTEM_MESSAGE", DEFAULT_SYSTEM_MESSAGE)),
            trigger_reaction=str(
                setting("TRIGGER_REACTION", DEFAULT_TRIGGER_REACTION)
            ),
            context_token_budget=_positive(
                "CONTEXT_TOKEN_BUDGET", setting("CONTEXT_TOKEN_BUDGET", 3000)
            ),
            tokenizer_encoding=str(
                setting("TOKENIZER_ENCODING", DEFAULT_TOKENIZER_ENCODING) or ""
            ),
            max_concurrent_events=_positive(
                "MAX_CONCURRENT_EVENTS", setting("MAX_CONCURRENT_EVENTS", 10)
            ),
        )


def _parse(kind: type, name: str, value: Any) -> Any:
    """Coerce a raw setting to int or float, naming the setting on failure."""
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationInvalid(
            f"{name} must be {kind.__name__}, got {value!r}"
        ) from exc


def _positive(name: str, value: Any) -> int:
    """Parse an int setting that must be at least 1."""
    number = _parse(int, name, value)
    if number < 1:
        raise ConfigurationInvalid(f"{name} must be positive, got {number}")
    return number


def _load_bot_config(config_path: Path) -> dict[str, Any]:
    """Load the bot section from a YAML file, returning {} when absent."""
    if not config_path.exists():
        logger.warning(
            "Config file %s not found, using environment only", config_path
        )
        return {}
    try:
        raw = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigurationInvalid(f"Could not parse {config_path}: {exc}") from exc
    if isinstance(raw, dict) and isinstance(raw.get("bot"), dict):
        return raw["bot"]
    return {}
