"""
Base interface for transcript sources.

A provider turns the raw messages of one speech recognizer (Deepgram's live
streaming JSON, a plain test harness, ...) into TranscriptEvents for the tracker.
Providers own any buffering needed so that each event's text is the full
hypothesis for the current utterance, which is what the tracker expects.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from .tracker import TranscriptEvent

logger = logging.getLogger(__name__)


class TranscriptionProvider(ABC):
    """Base interface for transcript sources."""

    name: str = ""

    @abstractmethod
    def parse(self, message: dict[str, Any]) -> TranscriptEvent | None:
        """
        Convert one decoded message into a transcript event.

        Args:
            message: Decoded JSON message from the recognizer

        Returns:
            TranscriptEvent, or None if the message carries no transcript
        """

    @abstractmethod
    def reset(self) -> None:
        """Forget any buffered utterance (e.g. when the session restarts)."""

    def handle_message(self, message: str | bytes | dict[str, Any]) -> TranscriptEvent | None:
        """
        Decode and parse a message, ignoring anything malformed.

        Recognizers occasionally send keep-alives, metadata or garbage; none of
        that should ever reach the tracker or break the session.
        """
        if isinstance(message, (str, bytes)):
            try:
                message = json.loads(message)
            except ValueError as e:
                logger.warning("%s: ignoring undecodable message: %s", self.name, e)
                return None
        if not isinstance(message, dict):
            logger.warning("%s: ignoring non-object message: %r", self.name, message)
            return None
        try:
            return self.parse(message)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("%s: ignoring malformed message: %s", self.name, e)
            return None
