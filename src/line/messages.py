"""LINE message object builders."""

from __future__ import annotations

from typing import Any


def create_text_message(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def create_flex_message(alt_text: str, contents: dict[str, Any]) -> dict[str, Any]:
    """Build a flex message; alt_text is shown in notifications."""
    return {"type": "flex", "altText": alt_text, "contents": contents}
