"""
Provider for already-shaped transcript messages.

Accepts {"text": ..., "isFinal": ..., "timestamp": ...} (snake_case keys are
accepted too). Used by the WebSocket server when a client does its own
recognition, and by tests.
"""

import time
from typing import Any

from ..tracker import TranscriptEvent
from ..transcription_provider import TranscriptionProvider


class PlainProvider(TranscriptionProvider):
    """Pass-through provider for plain transcript messages."""

    name = "plain"

    def parse(self, message: dict[str, Any]) -> TranscriptEvent | None:
        text = message.get("text")
        if not isinstance(text, str) or not text.strip():
            return None
        is_final = message.get("isFinal", message.get("is_final", False))
        timestamp = message.get("timestamp")
        return TranscriptEvent(
            text=text,
            is_final=bool(is_final),
            timestamp=float(timestamp) if timestamp is not None else time.monotonic()
        )

    def reset(self) -> None:
        pass
