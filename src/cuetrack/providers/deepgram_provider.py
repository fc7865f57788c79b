# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Deepgram live-streaming transcript provider.

Deepgram streams one "Results" message per hypothesis for the current audio
segment. With interim_results enabled, a segment is revised until a message
arrives with is_final=true; several final segments can make up one utterance,
which ends with speech_final=true (endpointing) or a separate UtteranceEnd
message.

The tracker wants the cumulative hypothesis for the utterance, so finalized
segments are buffered here and prefixed to each new hypothesis.

The speech-source side is expected to connect with interim results and
utterance events on, e.g. model=nova-2, interim_results=true,
endpointing=100 and vad_events=true.
"""

import logging
import time
from typing import Any

from ..tracker import TranscriptEvent
from ..transcription_provider import TranscriptionProvider

logger = logging.getLogger(__name__)


class DeepgramProvider(TranscriptionProvider):
    """Turns Deepgram live-streaming messages into cumulative transcript events."""

    name = "deepgram"

    def __init__(self) -> None:
        self._final_segments: list[str] = []

    @property
    def pending_text(self) -> str:
        """Finalized text of the utterance in progress."""
        return " ".join(self._final_segments)

    def reset(self) -> None:
        self._final_segments = []

    def parse(self, message: dict[str, Any]) -> TranscriptEvent | None:
        msg_type = message.get("type", "Results")

        if msg_type == "UtteranceEnd":
            logger.debug("Deepgram: utterance end")
            self.reset()
            return None

        if msg_type != "Results":
            # SpeechStarted, Metadata, ...
            return None

        alternatives = message["channel"]["alternatives"]
        transcript: str = str(alternatives[0].get("transcript", "")).strip() if alternatives else ""
        is_final: bool = bool(message.get("is_final", False))
        speech_final: bool = bool(message.get("speech_final", False))
        timestamp: float = self._timestamp(message)

        parts: list[str] = self._final_segments + ([transcript] if transcript else [])
        text: str = " ".join(parts)

        if is_final and transcript:
            self._final_segments.append(transcript)
        if speech_final:
            self.reset()

        if not text:
            return None

        return TranscriptEvent(text=text, is_final=is_final, timestamp=timestamp)

    @staticmethod
    def _timestamp(message: dict[str, Any]) -> float:
        """Audio-clock end time of the message, falling back to the wall clock."""
        start = message.get("start")
        duration = message.get("duration")
        if start is None or duration is None:
            return time.monotonic()
        return float(start) + float(duration)
