# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Script tracking module that aligns a live transcript with the script text.

Each transcript event carries the recognizer's full current hypothesis for the
utterance. The engine works out which words it hasn't seen yet, searches for
them around the cursor and moves the cursor - but never further than a fixed
cap per event, so a burst of spurious matches can't throw the display ahead.

Phases per event, in order:
1. Backward search (speaker restarted a sentence)
2. Pause-relaxed forward search (speaker resumed after a silence)
3. Regular forward search (single words, then consecutive runs)
4. Advance cap
"""

import logging
import time
from dataclasses import dataclass, field

from . import debug_log
from .matching import (
    DEFAULT_PROFILE,
    MatchingProfile,
    find_best_run,
    scan_backward,
    scan_single_word,
)
from .script_parser import ReferenceScript, SpokenWord, build_reference, spoken_words

logger = logging.getLogger(__name__)

# Words re-processed when a hypothesis brings no new words
FALLBACK_WORD_COUNT: int = 5
# Silence longer than this between events counts as a pause
PAUSE_THRESHOLD_MS: int = 1000
# Backward single-word search starts this many words behind the cursor
BACKWARD_SCAN_OFFSET: int = 5
# Backward run search ignores this many words just behind the cursor
BACKWARD_RUN_EXCLUSION: int = 3
# Fewest matches for a backward run to be trusted
BACKWARD_MIN_RUN: int = 3
# Shortest word considered for backward single-word search
BACKWARD_MIN_WORD_LEN: int = 4


@dataclass
class TranscriptEvent:
    """A hypothesis from the speech recognizer."""
    text: str  # Full current hypothesis for the utterance (not a delta)
    is_final: bool = False
    timestamp: float = field(default_factory=time.monotonic)  # Seconds

    def __repr__(self) -> str:
        status: str = "final" if self.is_final else "interim"
        return f"TranscriptEvent({status} @ {self.timestamp:.3f}: '{self.text}')"


@dataclass
class AlignmentState:
    """Everything the engine remembers between events for one session."""
    cursor: int = 0
    consumed_word_count: int = 0
    last_event_time: float | None = None
    profile: MatchingProfile = DEFAULT_PROFILE

    def reset(self, cursor: int = 0) -> None:
        """Forget transcript history, keeping the profile."""
        self.cursor = cursor
        self.consumed_word_count = 0
        self.last_event_time = None


@dataclass
class ScriptPosition:
    """Represents the current position in the script."""
    cursor: int  # Words with index < cursor have been spoken
    total_words: int
    previous_cursor: int = 0
    # Whether this update moved the cursor backwards
    is_backtrack: bool = False
    # Whether this update followed a pause in speech
    paused: bool = False
    matched_words: list[str] = field(default_factory=list)

    @property
    def progress(self) -> float:
        """Overall progress through the script (0.0 to 1.0)."""
        if self.total_words == 0:
            return 0.0
        return self.cursor / self.total_words


class AlignmentEngine:
    """
    Tracks position in a script based on spoken words.

    One engine owns exactly one AlignmentState. Switching scripts, restarting
    or jumping all go through this object, so nothing leaks between sessions.
    Calls are synchronous and must not overlap; use ThreadedTracker to drive
    an engine from another thread.
    """

    script: ReferenceScript
    state: AlignmentState
    pause_threshold_ms: int

    def __init__(
        self,
        script_text: str = "",
        profile: MatchingProfile = DEFAULT_PROFILE,
        pause_threshold_ms: int = PAUSE_THRESHOLD_MS
    ) -> None:
        """
        Initialize the engine.

        Args:
            script_text: The full script text
            profile: Matching profile (search windows, thresholds and caps)
            pause_threshold_ms: Gap between events treated as a pause

        Raises:
            ValueError: If pause_threshold_ms is not positive
        """
        if pause_threshold_ms <= 0:
            raise ValueError(
                f"pause_threshold_ms must be positive, got {pause_threshold_ms}")
        self.pause_threshold_ms = pause_threshold_ms
        self.script = build_reference(script_text)
        self.state = AlignmentState(profile=profile)
        self._last_backtrack: bool = False
        self._last_paused: bool = False

    @property
    def cursor(self) -> int:
        """Index of the next word the speaker is expected to say."""
        return self.state.cursor

    @property
    def profile(self) -> MatchingProfile:
        """The active matching profile."""
        return self.state.profile

    @property
    def words(self) -> list[str]:
        """Normalized script words."""
        return self.script.texts

    @property
    def total_words(self) -> int:
        """Number of words in the script."""
        return len(self.script)

    @property
    def progress(self) -> float:
        """Get overall progress through the script (0.0 to 1.0)."""
        return self.current_position.progress

    @property
    def current_position(self) -> ScriptPosition:
        """Get the current position without updating."""
        return ScriptPosition(
            cursor=self.state.cursor,
            total_words=len(self.script),
            previous_cursor=self.state.cursor,
            is_backtrack=self._last_backtrack,
            paused=self._last_paused
        )

    def set_script(self, script_text: str) -> None:
        """Replace the script. Positions into the old one are meaningless, so reset."""
        self.script = build_reference(script_text)
        self.reset()

    def set_profile(self, profile: MatchingProfile) -> None:
        """Switch matching profile without losing the current position."""
        self.state.profile = profile

    def set_look_ahead(self, look_ahead_words: int) -> None:
        """Change how far forward long words may be searched.

        Raises:
            ValueError: If look_ahead_words is not a positive integer
        """
        self.state.profile = self.state.profile.with_look_ahead(look_ahead_words)

    def set_allow_backward(self, allow: bool) -> None:
        """Enable or disable backward (restart) detection."""
        self.state.profile = self.state.profile.with_backward_match(bool(allow))

    def reset(self) -> None:
        """Reset tracking to the beginning of the script."""
        self.state.reset()
        self._last_backtrack = False
        self._last_paused = False
        debug_log.clear_logs()

    def jump_to(self, word_index: int) -> None:
        """Jump to a specific position in the script (e.g. the user clicked a word).

        The consumed-word count is cleared so that whatever the recognizer sends
        next is matched from the new position.
        """
        word_index = max(0, min(int(word_index), len(self.script)))
        self.state.reset(cursor=word_index)
        self._last_backtrack = False
        self._last_paused = False
        debug_log.log_jump(word_index, self._word_at(word_index))

    def update(
        self,
        transcription: str,
        is_final: bool = False,
        timestamp: float | None = None
    ) -> ScriptPosition:
        """Convenience wrapper around handle_event()."""
        if timestamp is None:
            timestamp = time.monotonic()
        return self.handle_event(TranscriptEvent(
            text=transcription, is_final=is_final, timestamp=timestamp))

    def handle_event(self, event: TranscriptEvent) -> ScriptPosition:
        """
        Update position based on a transcript event.

        Noise is expected traffic: anything that can't be matched simply leaves
        the cursor where it is.

        Args:
            event: The recognizer's current hypothesis

        Returns:
            Updated ScriptPosition
        """
        words: list[SpokenWord] = spoken_words(event.text)
        if not words or not self.script:
            return self.current_position

        state = self.state
        profile = state.profile

        # 1. Work out which words haven't been folded in yet
        new_start: int = min(state.consumed_word_count, len(words))
        new_words: list[SpokenWord] = words[new_start:]
        if not new_words:
            # A revision shrank the hypothesis; look at its tail again
            new_words = words[-FALLBACK_WORD_COUNT:]
            logger.debug("No new words, re-processing last %d", len(new_words))
        state.consumed_word_count = len(words)
        debug_log.log_transcript(event.text, [w.text for w in new_words], event.is_final)

        # 2. Pause detection
        paused: bool = (
            state.last_event_time is not None
            and (event.timestamp - state.last_event_time) * 1000 > self.pause_threshold_ms
        )
        state.last_event_time = event.timestamp

        cursor: int = state.cursor
        tentative: int = cursor

        # 3. Backward phase
        if profile.allow_backward_match:
            tentative = self._backward_phase(new_words, cursor, profile)

        # 4. Pause-relaxed forward phase
        relaxed_hit: bool = False
        if paused:
            relaxed = self._pause_phase(new_words, tentative, profile)
            if relaxed != tentative:
                logger.debug("Pause-relaxed match: %d -> %d", tentative, relaxed)
                tentative = relaxed
                relaxed_hit = True

        # 5. Regular forward phase
        candidate: int = self._forward_phase(new_words, tentative, profile)

        # 6. Advance cap
        cap: int = cursor + profile.max_advance(event.is_final)
        new_cursor: int = min(candidate, cap, len(self.script))
        if candidate > cap:
            logger.debug("Advance capped: candidate %d, cap %d", candidate, cap)

        # 7. Commit
        state.cursor = new_cursor
        self._last_backtrack = new_cursor < cursor
        self._last_paused = paused

        if new_cursor != cursor:
            reason: str = "forward"
            if new_cursor < cursor:
                reason = "backtrack"
            elif relaxed_hit:
                reason = "pause"
            logger.debug("Cursor %d -> %d (%s)", cursor, new_cursor, reason)
            debug_log.log_position_update(
                cursor, new_cursor,
                self.script.words_between(min(cursor, new_cursor), max(cursor, new_cursor)),
                reason
            )

        matched: list[str] = (
            self.script.words_between(cursor, new_cursor) if new_cursor > cursor else []
        )
        return ScriptPosition(
            cursor=new_cursor,
            total_words=len(self.script),
            previous_cursor=cursor,
            is_backtrack=self._last_backtrack,
            paused=paused,
            matched_words=matched
        )

    def _backward_phase(
        self,
        words: list[SpokenWord],
        cursor: int,
        profile: MatchingProfile
    ) -> int:
        """Look behind the cursor for words the speaker is repeating.

        A single long word found well behind the cursor is enough for a
        tentative move; otherwise a run of at least three words is required.
        """
        floor: int = max(0, cursor - profile.look_behind_words)
        tentative: int = cursor
        single_hit: bool = False

        for word in words:
            if len(word.text) < BACKWARD_MIN_WORD_LEN:
                continue
            hit = scan_backward(word, self.script, cursor - BACKWARD_SCAN_OFFSET, floor)
            if hit is not None:
                logger.debug("Backward single-word match '%s' at %d", word.text, hit)
                tentative = hit + 1
                single_hit = True

        if single_hit or len(words) < 2:
            return tentative

        run = find_best_run(
            words, self.script,
            floor, cursor - BACKWARD_RUN_EXCLUSION,
            profile.max_run_gap,
            max(BACKWARD_MIN_RUN, profile.min_consecutive_for_confidence)
        )
        if run is not None and run.next_position < cursor:
            logger.debug("Backward run of %d ending at %d", run.count, run.last_index)
            return run.next_position
        return cursor

    def _pause_phase(
        self,
        words: list[SpokenWord],
        start: int,
        profile: MatchingProfile
    ) -> int:
        """After a silence, advance past the first new word found close ahead."""
        for word in words:
            if len(word.text) < profile.pause_min_word_len:
                continue
            hit = scan_single_word(word, self.script, start, profile.pause_window_words)
            if hit is not None:
                return hit + 1
        return start

    def _forward_phase(
        self,
        words: list[SpokenWord],
        start: int,
        profile: MatchingProfile
    ) -> int:
        """Find the furthest position supported by the new words ahead of start."""
        furthest: int = start
        for word in words:
            length = len(word.text)
            hits: list[int] = []
            if length >= profile.min_word_len_for_local_match:
                hit = scan_single_word(word, self.script, furthest, profile.near_window_words)
                if hit is not None:
                    hits.append(hit)
            if length >= profile.min_word_len_for_long_range_match:
                hit = scan_single_word(word, self.script, furthest, profile.look_ahead_words)
                if hit is not None:
                    hits.append(hit)
            if hits:
                furthest = max(furthest, max(hits) + 1)

        run = find_best_run(
            words, self.script,
            start, start + profile.look_ahead_words,
            profile.max_run_gap,
            profile.min_consecutive_for_confidence
        )
        if run is not None:
            logger.debug("Forward run of %d ending at %d", run.count, run.last_index)
            furthest = max(furthest, run.next_position)
        return furthest

    def _word_at(self, index: int) -> str:
        if 0 <= index < len(self.script):
            return self.script[index].text
        return "<END>"
