"""Convert Makkaizou replies into LINE text messages."""

from __future__ import annotations

import re
from typing import Any

from src.line.messages import create_text_message
from src.models import MakkaizouResponse

# LINE rejects text messages longer than this
MAX_MESSAGE_LENGTH = 5000
# Chunk size used once a reply has to be split, leaving some headroom
CHUNK_LENGTH = 4900

FALLBACK_TEXT = "Sorry, I couldn't process your request at this time."

_SENTENCE_END = re.compile(r"[.!?]\s")


def _break_point(text: str, limit: int) -> int:
    window = text[:limit]
    last_sentence = None
    for last_sentence in _SENTENCE_END.finditer(window):
        pass
    if last_sentence is not None:
        return last_sentence.end()
    newline = window.rfind("\n")
    if newline > 0:
        return newline + 1
    return limit


def split_text(text: str, limit: int = CHUNK_LENGTH) -> list[str]:
    """Split text into chunks of at most ``limit`` characters.

    Prefers to cut after the last sentence end, then after the last newline,
    then hard at ``limit``. Joining the chunks gives back ``text``.
    """
    chunks: list[str] = []
    remaining = text
    while remaining:
        cut = len(remaining) if len(remaining) <= limit else _break_point(remaining, limit)
        chunks.append(remaining[:cut])
        remaining = remaining[cut:]
    return chunks


def format_response(response: MakkaizouResponse | None) -> list[dict[str, Any]]:
    if response is None or not response.response:
        return [create_text_message(FALLBACK_TEXT)]

    text = response.response
    if len(text) <= MAX_MESSAGE_LENGTH:
        return [create_text_message(text)]
    return [create_text_message(chunk) for chunk in split_text(text)]
