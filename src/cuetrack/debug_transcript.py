# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a transcript through the tracker.

This CLI tool takes a transcript file and a script file, feeds the transcript
to the engine as recognizer events, and outputs detailed tracking information
to help debug tracking issues.

Transcript lines are either plain text (one final utterance per line) or JSON
objects with "text", "is_final" and "timestamp" keys. Lines starting with
'===' are metadata and skipped.
"""

import argparse
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .matching import DEFAULT_PROFILE, MatchingProfile, get_profile
from .tracker import AlignmentEngine, TranscriptEvent

EventType = Literal["BACKTRACK", "FORWARD_JUMP", "advance", "no_change"]

# Advances larger than this are reported as jumps
FORWARD_JUMP_WORDS: int = 5


@dataclass
class ReplayEvent:
    """A single tracking event during transcript replay."""
    event_number: int
    transcript: str
    is_final: bool
    cursor_before: int
    cursor_after: int
    script_word: str
    event_type: EventType


def load_transcript(path: Path) -> list[str]:
    """Load transcript file and extract transcript lines.

    Filters out metadata lines (starting with '===').
    Returns list of transcript text lines.
    """
    lines: list[str] = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            stripped_line: str = line.strip()
            # Skip metadata lines and empty lines
            if stripped_line.startswith('===') or not stripped_line:
                continue
            lines.append(stripped_line)
    return lines


def load_script(path: Path) -> str:
    """Load script file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def build_events(
    transcript_lines: list[str],
    word_by_word: bool = False,
    word_interval: float = 0.3,
    line_gap: float = 0.5
) -> list[TranscriptEvent]:
    """Turn transcript lines into recognizer events with simulated timing.

    JSON lines are used as-is (a missing timestamp continues the simulated
    clock). Plain lines become one final event each, or, in word-by-word mode,
    a growing series of interim events followed by the final.
    """
    events: list[TranscriptEvent] = []
    clock: float = 0.0

    for line in transcript_lines:
        if line.startswith("{"):
            try:
                data = json.loads(line)
            except ValueError:
                data = None
            if isinstance(data, dict) and isinstance(data.get("text"), str):
                try:
                    clock = float(data["timestamp"])
                except (KeyError, TypeError, ValueError):
                    # Missing, null or garbled: continue the simulated clock
                    clock += word_interval
                events.append(TranscriptEvent(
                    text=data["text"],
                    is_final=bool(data.get("is_final", data.get("isFinal", False))),
                    timestamp=clock
                ))
                continue

        words: list[str] = line.split()
        if word_by_word:
            for count in range(1, len(words)):
                clock += word_interval
                events.append(TranscriptEvent(
                    text=" ".join(words[:count]), is_final=False, timestamp=clock))
        clock += word_interval
        events.append(TranscriptEvent(text=line, is_final=True, timestamp=clock))
        clock += line_gap

    return events


def classify(before: int, after: int) -> EventType:
    """Classify a cursor change."""
    if after < before:
        return "BACKTRACK"
    if after > before + FORWARD_JUMP_WORDS:
        return "FORWARD_JUMP"
    if after > before:
        return "advance"
    return "no_change"


def replay_events(
    events: list[TranscriptEvent],
    script_text: str,
    output: TextIO,
    profile: MatchingProfile = DEFAULT_PROFILE,
    verbose: bool = False
) -> list[ReplayEvent]:
    """Replay events through the engine and log what happened.

    Args:
        events: Transcript events in order
        script_text: The script content
        output: File handle to write log output
        profile: Matching profile to replay with
        verbose: If True, log every event. If False, only log jumps/backtracks.

    Returns:
        List of all replay events
    """
    engine: AlignmentEngine = AlignmentEngine(script_text, profile=profile)
    results: list[ReplayEvent] = []

    # Write header
    output.write("=" * 80 + "\n")
    output.write("TRANSCRIPT DEBUG LOG\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Profile: {profile.name}\n")
    output.write(f"Script words: {engine.total_words}\n")
    output.write(f"Transcript events: {len(events)}\n")
    output.write("=" * 80 + "\n\n")

    # Write script words reference
    output.write("SCRIPT WORDS:\n")
    output.write("-" * 40 + "\n")
    for i, word in enumerate(engine.words):
        output.write(f"  [{i:4d}] {word}\n")
    output.write("\n" + "=" * 80 + "\n\n")

    output.write("TRACKING LOG:\n")
    output.write("-" * 40 + "\n")

    for number, event in enumerate(events, start=1):
        before: int = engine.cursor
        position = engine.handle_event(event)
        after: int = position.cursor
        event_type: EventType = classify(before, after)

        script_word: str = (
            engine.words[after] if after < engine.total_words else "<END>"
        )

        if event_type in ("BACKTRACK", "FORWARD_JUMP"):
            label = "BACKTRACK" if event_type == "BACKTRACK" else "FORWARD JUMP"
            output.write(f"  *** {label} DETECTED ***\n")
            output.write(f"      Event {number}: \"{event.text[-60:]}\"\n")
            output.write(f"      Position: {before} -> {after}\n")
            output.write(f"      Script word at new position: \"{script_word}\"\n")
        elif verbose:
            kind = "final" if event.is_final else "interim"
            pause = " (after pause)" if position.paused else ""
            output.write(
                f"  [{after:4d}] \"{script_word}\" ({event_type}, {kind}){pause}"
                f" <- \"{event.text[-40:]}\"\n")

        results.append(ReplayEvent(
            event_number=number,
            transcript=event.text,
            is_final=event.is_final,
            cursor_before=before,
            cursor_after=after,
            script_word=script_word,
            event_type=event_type
        ))

    # Write summary
    backtracks = [e for e in results if e.event_type == "BACKTRACK"]
    forward_jumps = [e for e in results if e.event_type == "FORWARD_JUMP"]
    advances = [e for e in results if e.event_type == "advance"]

    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")
    output.write(f"Total events processed: {len(events)}\n")
    output.write(f"Final position: {engine.cursor} / {engine.total_words}\n")
    output.write(f"Advances: {len(advances)}\n")
    output.write(f"Backtracks: {len(backtracks)}\n")
    output.write(f"Forward jumps: {len(forward_jumps)}\n")

    for title, group in (("Backtrack", backtracks), ("Forward jump", forward_jumps)):
        if group:
            output.write(f"\n{title} events:\n")
            for e in group:
                output.write(
                    f"  Event {e.event_number}: {e.cursor_before} -> {e.cursor_after} "
                    f"\"{e.script_word}\"\n"
                )

    return results


def main() -> None:
    """Main entry point for the replay tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Replay a transcript through the tracker for debugging"
    )
    parser.add_argument("transcript", type=Path, help="Transcript file")
    parser.add_argument("script", type=Path, help="Script file")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Write the log to this file instead of stdout"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every event, not just jumps and backtracks"
    )
    parser.add_argument(
        "-w", "--word-by-word",
        action="store_true",
        help="Feed plain lines word-by-word (simulates interim results)"
    )
    parser.add_argument(
        "--profile",
        default="default",
        help="Matching profile to replay with (default, conservative)"
    )

    args: argparse.Namespace = parser.parse_args()

    try:
        profile = get_profile(args.profile)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Validate inputs
    if not args.transcript.exists():
        print(
            f"Error: Transcript file not found: {args.transcript}", file=sys.stderr)
        sys.exit(1)

    if not args.script.exists():
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        sys.exit(1)

    # Load files
    try:
        transcript_lines: list[str] = load_transcript(args.transcript)
        script_text: str = load_script(args.script)
    except OSError as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not transcript_lines:
        print("Error: No transcript lines found", file=sys.stderr)
        sys.exit(1)

    events = build_events(transcript_lines, word_by_word=args.word_by_word)

    # Run replay
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_events(events, script_text, f, profile, args.verbose)
        print(f"Debug log written to: {args.output}")
    else:
        replay_events(events, script_text, sys.stdout, profile, args.verbose)


if __name__ == "__main__":
    main()
