# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for matching profiles and the candidate search primitives.
"""

import pytest

from cuetrack.matching import (
    CONSERVATIVE_PROFILE,
    DEFAULT_PROFILE,
    MatchingProfile,
    find_best_run,
    get_profile,
    scan_backward,
    scan_consecutive_run,
    scan_single_word,
)
from cuetrack.script_parser import SpokenWord, build_reference, spoken_words


class TestMatchingProfile:
    """Tests for MatchingProfile validation and presets."""

    def test_default_values(self) -> None:
        """The default preset searches wide and allows backward matches."""
        assert DEFAULT_PROFILE.look_ahead_words == 50
        assert DEFAULT_PROFILE.allow_backward_match is True
        assert DEFAULT_PROFILE.max_advance(is_final=True) == 12
        assert DEFAULT_PROFILE.max_advance(is_final=False) == 6

    def test_conservative_is_narrower(self) -> None:
        """The conservative preset is stricter in every direction."""
        assert CONSERVATIVE_PROFILE.allow_backward_match is False
        assert CONSERVATIVE_PROFILE.look_ahead_words < DEFAULT_PROFILE.look_ahead_words
        assert (CONSERVATIVE_PROFILE.min_consecutive_for_confidence
                > DEFAULT_PROFILE.min_consecutive_for_confidence)
        assert (CONSERVATIVE_PROFILE.max_advance_per_final_event
                < DEFAULT_PROFILE.max_advance_per_final_event)

    @pytest.mark.parametrize("field", [
        "look_ahead_words",
        "min_consecutive_for_confidence",
        "max_advance_per_final_event",
        "max_advance_per_interim_event",
    ])
    @pytest.mark.parametrize("value", [0, -3])
    def test_non_positive_values_rejected(self, field: str, value: int) -> None:
        """Windows, thresholds and caps must be positive."""
        with pytest.raises(ValueError):
            MatchingProfile(**{field: value})

    def test_non_integer_look_ahead_rejected(self) -> None:
        """Booleans and floats are not window sizes."""
        with pytest.raises(ValueError):
            MatchingProfile(look_ahead_words=True)
        with pytest.raises(ValueError):
            MatchingProfile(look_ahead_words=10.5)  # type: ignore[arg-type]

    def test_zero_look_behind_allowed(self) -> None:
        """A zero look-behind window simply disables backward search range."""
        assert MatchingProfile(look_behind_words=0).look_behind_words == 0
        with pytest.raises(ValueError):
            MatchingProfile(look_behind_words=-1)

    def test_with_look_ahead_returns_copy(self) -> None:
        """Profiles are immutable; overrides produce a new profile."""
        profile = DEFAULT_PROFILE.with_look_ahead(10)
        assert profile.look_ahead_words == 10
        assert DEFAULT_PROFILE.look_ahead_words == 50

    def test_with_look_ahead_validates(self) -> None:
        """Overrides are validated too."""
        with pytest.raises(ValueError):
            DEFAULT_PROFILE.with_look_ahead(0)

    def test_get_profile(self) -> None:
        """Presets are selectable by name."""
        assert get_profile("default") is DEFAULT_PROFILE
        assert get_profile("conservative") is CONSERVATIVE_PROFILE
        with pytest.raises(ValueError):
            get_profile("lenient")


class TestSingleWordScans:
    """Tests for scan_single_word() and scan_backward()."""

    def test_scan_finds_first_match_in_window(self) -> None:
        """The first equivalent word at or after start is returned."""
        script = build_reference("alpha bravo charlie bravo")
        bravo = SpokenWord.from_text("bravo")

        assert scan_single_word(bravo, script, 0, 5) == 1
        assert scan_single_word(bravo, script, 2, 5) == 3

    def test_scan_respects_window(self) -> None:
        """Matches outside [start, start + window) are ignored."""
        script = build_reference("alpha bravo charlie delta")
        delta = SpokenWord.from_text("delta")

        assert scan_single_word(delta, script, 0, 3) is None
        assert scan_single_word(delta, script, 0, 4) == 3

    def test_scan_past_end_is_safe(self) -> None:
        """Scanning from beyond the script finds nothing."""
        script = build_reference("alpha bravo")
        assert scan_single_word(SpokenWord.from_text("alpha"), script, 5, 10) is None

    def test_scan_backward_finds_nearest_match_below_start(self) -> None:
        """Backward scans walk down from start, inclusive of both ends."""
        script = build_reference("alpha bravo alpha bravo")
        alpha = SpokenWord.from_text("alpha")

        assert scan_backward(alpha, script, 3, 0) == 2
        assert scan_backward(alpha, script, 1, 0) == 0
        assert scan_backward(alpha, script, 1, 1) is None

    def test_scan_backward_negative_start(self) -> None:
        """A start below zero yields no candidates."""
        script = build_reference("alpha bravo")
        assert scan_backward(SpokenWord.from_text("alpha"), script, -2, 0) is None


class TestConsecutiveRuns:
    """Tests for scan_consecutive_run() and find_best_run()."""

    def test_run_matches_in_order(self) -> None:
        """Consecutive spoken words matched in order count towards the run."""
        script = build_reference("the quick brown fox")
        words = spoken_words("quick brown fox")

        run = scan_consecutive_run(words, 0, script, 1, max_gap=2)

        assert run is not None
        assert run.count == 3
        assert run.start_index == 1
        assert run.next_position == 4

    def test_run_tolerates_small_gap(self) -> None:
        """A skipped script word doesn't break the run."""
        script = build_reference("alpha bravo charlie delta epsilon")
        words = spoken_words("alpha charlie")

        run = scan_consecutive_run(words, 0, script, 0, max_gap=2)

        assert run is not None
        assert run.count == 2
        assert run.last_index == 2

    def test_run_stops_at_large_gap(self) -> None:
        """Matches further than max_gap away end the run."""
        script = build_reference("alpha bravo charlie delta epsilon")
        words = spoken_words("alpha delta")

        run = scan_consecutive_run(words, 0, script, 0, max_gap=2)

        assert run is not None
        assert run.count == 1

    def test_run_requires_first_word_at_start(self) -> None:
        """The trial start position must match the first spoken word."""
        script = build_reference("alpha bravo charlie")
        assert scan_consecutive_run(spoken_words("bravo charlie"), 0, script, 0, 2) is None

    def test_best_run_prefers_earliest_on_tie(self) -> None:
        """Equal-length runs resolve to the earliest start."""
        script = build_reference("red green red green")
        run = find_best_run(spoken_words("red green"), script, 0, 4, 2, 2)

        assert run is not None
        assert run.start_index == 0
        assert run.next_position == 2

    def test_best_run_below_threshold(self) -> None:
        """Runs shorter than min_count are not candidates."""
        script = build_reference("red green red green")
        assert find_best_run(spoken_words("red green"), script, 0, 4, 2, 3) is None

    def test_best_run_skips_leading_garbage(self) -> None:
        """Unmatched words before the run don't prevent it being found."""
        script = build_reference("alpha bravo charlie delta")
        run = find_best_run(spoken_words("zzz bravo charlie delta"), script, 0, 4, 2, 2)

        assert run is not None
        assert run.count == 3
        assert run.start_index == 1

    def test_best_run_respects_range(self) -> None:
        """Start positions outside [lo, hi) are not tried."""
        script = build_reference("alpha bravo charlie delta")
        assert find_best_run(spoken_words("alpha bravo"), script, 1, 4, 2, 2) is None
