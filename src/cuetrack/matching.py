# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Candidate search: proposes script positions for a batch of spoken words.

Two primitives, both pure:
- Single-word scans look for the first script word equivalent to one spoken word
  inside a bounded window.
- Consecutive-run scans score a trial start position by how many spoken words
  can be matched in order from there, tolerating small gaps on the script side
  (filler words, a skipped "the").

How far and how eagerly these search is controlled by a MatchingProfile.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace

from .equivalence import words_match
from .script_parser import ReferenceScript, SpokenWord


@dataclass(frozen=True)
class MatchingProfile:
    """Tuning parameters for candidate search and the tracker's advance caps."""
    look_ahead_words: int = 50
    look_behind_words: int = 30
    allow_backward_match: bool = True
    min_word_len_for_local_match: int = 3
    min_word_len_for_long_range_match: int = 6
    min_consecutive_for_confidence: int = 2
    max_advance_per_final_event: int = 12
    max_advance_per_interim_event: int = 6
    # Narrow window used for words that are not long enough to search far
    near_window_words: int = 5
    # Largest step between two consecutive matches of a run
    max_run_gap: int = 2
    # Relaxed single-word matching right after the speaker pauses
    pause_min_word_len: int = 2
    pause_window_words: int = 3
    name: str = "default"

    def __post_init__(self) -> None:
        positive = (
            "look_ahead_words",
            "min_word_len_for_local_match",
            "min_word_len_for_long_range_match",
            "min_consecutive_for_confidence",
            "max_advance_per_final_event",
            "max_advance_per_interim_event",
            "near_window_words",
            "max_run_gap",
            "pause_min_word_len",
            "pause_window_words",
        )
        for attr in positive:
            value = getattr(self, attr)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{attr} must be a positive integer, got {value!r}")
        if (not isinstance(self.look_behind_words, int)
                or isinstance(self.look_behind_words, bool)
                or self.look_behind_words < 0):
            raise ValueError(
                f"look_behind_words must be a non-negative integer, got {self.look_behind_words!r}")

    def with_look_ahead(self, look_ahead_words: int) -> 'MatchingProfile':
        """Copy of this profile with a different look-ahead window."""
        return replace(self, look_ahead_words=look_ahead_words)

    def with_backward_match(self, allow: bool) -> 'MatchingProfile':
        """Copy of this profile with backward matching switched on or off."""
        return replace(self, allow_backward_match=allow)

    def max_advance(self, is_final: bool) -> int:
        """The advance cap for one event."""
        if is_final:
            return self.max_advance_per_final_event
        return self.max_advance_per_interim_event


DEFAULT_PROFILE: MatchingProfile = MatchingProfile()

CONSERVATIVE_PROFILE: MatchingProfile = MatchingProfile(
    look_ahead_words=20,
    look_behind_words=10,
    allow_backward_match=False,
    min_word_len_for_local_match=4,
    min_word_len_for_long_range_match=7,
    min_consecutive_for_confidence=3,
    max_advance_per_final_event=8,
    max_advance_per_interim_event=4,
    near_window_words=4,
    max_run_gap=3,
    pause_min_word_len=3,
    pause_window_words=2,
    name="conservative",
)

PROFILES: dict[str, MatchingProfile] = {
    "default": DEFAULT_PROFILE,
    "conservative": CONSERVATIVE_PROFILE,
}


def get_profile(name: str) -> MatchingProfile:
    """Look up a named profile preset."""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown matching profile '{name}' "
            f"(expected one of: {', '.join(PROFILES)})"
        ) from None


@dataclass
class RunMatch:
    """Result of a consecutive-run scan."""
    count: int  # Number of spoken words matched in order
    start_index: int  # Script index of the first match
    last_index: int  # Script index of the last match

    @property
    def next_position(self) -> int:
        """Cursor position just after the run."""
        return self.last_index + 1


def scan_single_word(
    word: SpokenWord,
    script: ReferenceScript,
    start: int,
    window: int
) -> int | None:
    """Find the first script index in [start, start + window) matching the word."""
    start = max(0, start)
    end = min(len(script), start + window)
    for index in range(start, end):
        if words_match(word, script[index]):
            return index
    return None


def scan_backward(
    word: SpokenWord,
    script: ReferenceScript,
    start: int,
    stop: int
) -> int | None:
    """Find the first match scanning down from start to stop (both inclusive)."""
    start = min(start, len(script) - 1)
    stop = max(0, stop)
    for index in range(start, stop - 1, -1):
        if words_match(word, script[index]):
            return index
    return None


def scan_consecutive_run(
    words: Sequence[SpokenWord],
    offset: int,
    script: ReferenceScript,
    start: int,
    max_gap: int
) -> RunMatch | None:
    """Greedily match spoken words in order starting at a trial position.

    The spoken word at `offset` must match the script word at `start`. Each
    following spoken word must then match within `max_gap` positions of the
    previous match; the first one that doesn't ends the run. Spoken words of a
    single character are skipped as they carry no signal.
    """
    if not 0 <= start < len(script) or not 0 <= offset < len(words):
        return None
    if not words_match(words[offset], script[start]):
        return None

    count = 1
    last = start
    for word in words[offset + 1:]:
        if len(word.text) <= 1:
            continue
        end = min(len(script), last + max_gap + 1)
        found = None
        for index in range(last + 1, end):
            if words_match(word, script[index]):
                found = index
                break
        if found is None:
            break
        count += 1
        last = found

    return RunMatch(count=count, start_index=start, last_index=last)


def find_best_run(
    words: Sequence[SpokenWord],
    script: ReferenceScript,
    lo: int,
    hi: int,
    max_gap: int,
    min_count: int
) -> RunMatch | None:
    """Score every start position in [lo, hi) and return the best run.

    Every spoken offset is tried at each start so that leading garbage words
    don't prevent a run from being found. Ties keep the earliest start.
    Returns None if the best run is shorter than min_count.
    """
    lo = max(0, lo)
    hi = min(len(script), hi)
    best: RunMatch | None = None
    for start in range(lo, hi):
        for offset in range(len(words)):
            if len(words[offset].text) <= 1:
                continue
            run = scan_consecutive_run(words, offset, script, start, max_gap)
            if run is not None and (best is None or run.count > best.count):
                best = run
    if best is None or best.count < min_count:
        return None
    return best
