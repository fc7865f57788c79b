# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Word equivalence: decides whether a spoken word and a script word are "the same".

Exact matches always count. Longer words may also match on sound, which covers
homophones and spelling variants the recognizer picks ("Sarah" for "Sara",
"colour" for "color"). Short words only ever match exactly - "the", "to", "and"
and friends would otherwise match almost anything.
"""

from typing import Protocol

# Both words must be at least this long to be compared phonetically
MIN_PHONETIC_MATCH_LENGTH: int = 4


class PhoneticWord(Protocol):
    """Anything carrying normalized text plus its two phonetic codes."""
    text: str
    primary: str
    secondary: str


def phonetic_match(spoken: PhoneticWord, reference: PhoneticWord) -> bool:
    """Check whether any pairing of the two words' phonetic codes agrees."""
    for spoken_code in (spoken.primary, spoken.secondary):
        if not spoken_code:
            continue
        for reference_code in (reference.primary, reference.secondary):
            if reference_code and spoken_code == reference_code:
                return True
    return False


def words_match(spoken: PhoneticWord, reference: PhoneticWord) -> bool:
    """Check if a spoken word should be treated as the given script word."""
    if not spoken.text or not reference.text:
        return False

    if spoken.text == reference.text:
        return True

    if (len(spoken.text) < MIN_PHONETIC_MATCH_LENGTH
            or len(reference.text) < MIN_PHONETIC_MATCH_LENGTH):
        return False

    return phonetic_match(spoken, reference)
