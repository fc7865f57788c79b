# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""Tests for the debug_transcript module."""

import io
import tempfile
from pathlib import Path

from cuetrack.debug_transcript import (
    ReplayEvent,
    build_events,
    classify,
    load_script,
    load_transcript,
    replay_events,
)
from cuetrack.tracker import TranscriptEvent


class TestLoadTranscript:
    """Tests for loading transcript files."""

    def test_load_transcript_filters_metadata(self) -> None:
        """Verify metadata lines starting with === are filtered out."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            f.write("=== Transcript started at 2025-12-21T00:00:00 ===\n")
            f.write("\n")
            f.write("hello world\n")
            f.write("this is a test\n")
            f.write("\n")
            f.write("=== Transcript ended at 2025-12-21T00:05:00 ===\n")
            f.flush()
            path: Path = Path(f.name)

        lines: list[str] = load_transcript(path)
        assert lines == ["hello world", "this is a test"]


class TestLoadScript:
    """Tests for loading script files."""

    def test_load_script_returns_content(self) -> None:
        """Verify script content is returned correctly."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            f.write("This is the script content.\n")
            f.flush()
            path: Path = Path(f.name)

        assert "This is the script content." in load_script(path)


class TestBuildEvents:
    """Tests for turning transcript lines into events."""

    def test_plain_lines_are_finals(self) -> None:
        """Each plain line is one final event, in increasing time order."""
        events: list[TranscriptEvent] = build_events(["hello world", "this is a test"])

        assert [e.text for e in events] == ["hello world", "this is a test"]
        assert all(e.is_final for e in events)
        assert events[0].timestamp < events[1].timestamp

    def test_word_by_word(self) -> None:
        """Word-by-word mode grows interim hypotheses before the final."""
        events = build_events(["one two three"], word_by_word=True)

        assert [e.text for e in events] == ["one", "one two", "one two three"]
        assert [e.is_final for e in events] == [False, False, True]

    def test_json_lines(self) -> None:
        """JSON lines keep their own flags and timestamps."""
        events = build_events([
            '{"text": "the quick", "is_final": false, "timestamp": 1.5}',
            '{"text": "the quick brown", "is_final": true, "timestamp": 2.0}',
        ])

        assert events[0].timestamp == 1.5
        assert not events[0].is_final
        assert events[1].is_final

    def test_json_lines_with_bad_timestamps(self) -> None:
        """Null or garbled timestamps fall back to the simulated clock."""
        events = build_events([
            '{"text": "one", "is_final": true, "timestamp": 2.0}',
            '{"text": "two", "is_final": true, "timestamp": null}',
            '{"text": "three", "is_final": true, "timestamp": "soon"}',
            '{"text": "four", "is_final": true}',
        ])

        assert [e.text for e in events] == ["one", "two", "three", "four"]
        timestamps = [e.timestamp for e in events]
        assert timestamps == sorted(timestamps)
        assert timestamps[1] > 2.0

    def test_gap_between_lines_is_not_a_pause(self) -> None:
        """Default line spacing stays under the pause threshold."""
        events = build_events(["one", "two"])
        assert (events[1].timestamp - events[0].timestamp) * 1000 < 1000


class TestReplay:
    """Tests for replay_events()."""

    def test_classify(self) -> None:
        """Cursor changes are labelled by direction and size."""
        assert classify(5, 3) == "BACKTRACK"
        assert classify(0, 9) == "FORWARD_JUMP"
        assert classify(0, 2) == "advance"
        assert classify(2, 2) == "no_change"

    def test_replay_produces_events(self) -> None:
        """Verify replay produces one replay event per transcript event."""
        script_text: str = "the quick brown fox jumps over the lazy dog"
        events = build_events(["the quick brown fox", "jumps over the lazy dog"])

        output: io.StringIO = io.StringIO()
        results: list[ReplayEvent] = replay_events(events, script_text, output)

        assert len(results) == 2
        assert results[0].cursor_after == 4
        assert results[-1].cursor_after == 9
        assert not any(r.event_type == "BACKTRACK" for r in results)

    def test_replay_writes_summary(self) -> None:
        """The log has the script words and a summary."""
        output: io.StringIO = io.StringIO()
        replay_events(build_events(["one two"]), "one two three", output, verbose=True)

        log = output.getvalue()
        assert "SCRIPT WORDS:" in log
        assert "SUMMARY:" in log
        assert "Final position: 2 / 3" in log

    def test_replay_reports_backtracks(self) -> None:
        """Backtracks are called out in the log."""
        script = ("alpha bravo charlie delta echo foxtrot golf hotel india juliet "
                  "kilo lima mike november oscar papa")
        lines = [
            "alpha bravo charlie delta echo foxtrot golf hotel",
            "india juliet kilo lima",
            "charlie delta echo foxtrot",
        ]
        output: io.StringIO = io.StringIO()

        results = replay_events(build_events(lines), script, output)

        assert results[-1].event_type == "BACKTRACK"
        assert "BACKTRACK DETECTED" in output.getvalue()
