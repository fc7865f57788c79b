"""
Debug logging for tracking decisions.

Writes a plain-text trail of what the tracker saw and did to
logs/tracker_words.log:
- Each transcript and the words extracted from it as new
- Every cursor change with the words it passed over
- Manual jumps

Logging is disabled by default. Call enable() to turn it on.
"""

from datetime import datetime
from pathlib import Path
from typing import List

# Log files location (in project root)
LOG_DIR: Path = Path(__file__).parent.parent.parent / "logs"
TRACKER_LOG: Path = LOG_DIR / "tracker_words.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    LOG_DIR.mkdir(exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _append(line: str) -> None:
    _ensure_log_dir()
    with open(TRACKER_LOG, 'a', encoding='utf-8') as f:
        f.write(line)


def clear_logs() -> None:
    """Clear the log file for a fresh session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(TRACKER_LOG, 'w', encoding='utf-8') as f:
        f.write(
            f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_jump(cursor: int, word: str) -> None:
    """
    Log a manual jump (the user picked a word on the display).

    Args:
        cursor: The cursor after the jump
        word: The script word the cursor now points at
    """
    if not _ENABLED:
        return
    _append(f"[{_timestamp()}] JUMP: cursor={cursor} next=\"{word}\"\n")


def log_position_update(
    old_pos: int,
    new_pos: int,
    words_in_range: List[str],
    reason: str
) -> None:
    """
    Log a cursor change.

    Args:
        old_pos: Previous cursor
        new_pos: New cursor
        words_in_range: The script words between old and new positions
        reason: Why the position changed (forward, pause, backtrack)
    """
    if not _ENABLED:
        return
    _append(
        f"[{_timestamp()}] POSITION CHANGE: {old_pos} -> {new_pos} ({reason})\n"
        f"                 words: {words_in_range}\n"
    )


def log_transcript(transcript: str, new_words: List[str], is_final: bool = False) -> None:
    """Log a recognizer hypothesis and the words taken from it as new.

    Only the tail of long hypotheses is written.
    """
    if not _ENABLED:
        return
    kind = "final" if is_final else "interim"
    _append(
        f"[{_timestamp()}] {kind:7} transcript: \"{transcript[-60:]}\" "
        f"new_words={new_words}\n"
    )
