"""
cuetrack - Live transcript-to-script alignment for voice-following teleprompters.

Follows a speaker through a known script using the recognizer's live (and
frequently revised) transcript, and keeps a cursor on the next word to be read.
"""

__version__ = "0.1.0"

from .matching import CONSERVATIVE_PROFILE, DEFAULT_PROFILE, MatchingProfile
from .script_parser import ReferenceScript, ReferenceWord, build_reference
from .threaded_tracker import ThreadedTracker
from .tracker import AlignmentEngine, AlignmentState, ScriptPosition, TranscriptEvent

__all__ = [
    "AlignmentEngine",
    "AlignmentState",
    "ScriptPosition",
    "TranscriptEvent",
    "MatchingProfile",
    "DEFAULT_PROFILE",
    "CONSERVATIVE_PROFILE",
    "ReferenceScript",
    "ReferenceWord",
    "build_reference",
    "ThreadedTracker",
]
