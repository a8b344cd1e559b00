"""Bot mention detection for LINE text messages."""

from __future__ import annotations

from typing import Any


def is_bot_mentioned(
    message: dict[str, Any], bot_name: str | None, bot_user_id: str | None,
) -> bool:
    """Return True if the message is addressed to the bot.

    Without a configured bot name every message counts as a mention.
    Otherwise either the literal ``@bot_name`` in the text or a "user"
    mentionee with the bot's user ID counts.
    """
    if not bot_name:
        return True

    if f"@{bot_name}" in (message.get("text") or ""):
        return True

    mentionees = (message.get("mention") or {}).get("mentionees") or []
    return any(
        m.get("type") == "user" and bot_user_id and m.get("userId") == bot_user_id
        for m in mentionees
    )


def strip_mention(text: str, bot_name: str | None) -> str:
    """Remove the first ``@bot_name`` from the text and trim it."""
    if not bot_name:
        return text
    mention = f"@{bot_name}"
    if mention not in text:
        return text
    return text.replace(mention, "", 1).strip()
