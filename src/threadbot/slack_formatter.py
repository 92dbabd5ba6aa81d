"""Slack message text for threadbot replies.

Pure functions: no Slack calls, no configuration.
"""

from __future__ import annotations

# Slack truncates messages beyond ~4000 characters
SLACK_MAX_MESSAGE_CHARS = 3900

ERROR_NOTICE = "Something went wrong. Please try again later. {trace_id}"


def format_reaction_reply(reactor: str, completion: str) -> str:
    """Prefix a completion with a mention of the user who reacted."""
    return f"<@{reactor}>\n\n{completion}"


def format_error_notice(trace_id: str) -> str:
    """User-visible notice for a failed completion, tagged for log lookup."""
    return ERROR_NOTICE.format(trace_id=trace_id)


def split_message(text: str, max_len: int = SLACK_MAX_MESSAGE_CHARS) -> list[str]:
    """Split a message into chunks that fit Slack's character limit."""
    if len(text) <= max_len:
        return [text]

    chunks = []
    while text:
        if len(text) <= max_len:
            chunks.append(text)
            break

        # Try to split at a newline
        split_at = text.rfind("\n", 0, max_len)
        if split_at <= 0:
            # Fall back to space
            split_at = text.rfind(" ", 0, max_len)
        if split_at <= 0:
            split_at = max_len

        chunks.append(text[:split_at])
        text = text[split_at:].lstrip("\n")

    return chunks
