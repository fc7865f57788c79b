# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Script parsing module that builds the reference model the tracker aligns against.

Each script word is normalized (lowercased, non-alphanumeric characters removed)
and fingerprinted with Double Metaphone so that spoken words which sound the same
as a script word ("Sarah" for "Sara") can still be matched.

Spoken words from the transcript go through exactly the same normalization, so
both sides of a comparison are always in the same form.
"""

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from functools import lru_cache

from metaphone import doublemetaphone

# Words shorter than this have no meaningful phonetic code
MIN_PHONETIC_LENGTH: int = 2

_NON_ALNUM = re.compile(r'[\W_]+')


def normalize_word(word: str) -> str:
    """Normalize a word for matching (lowercase, strip non-alphanumerics).

    Examples:
        "Hello," -> "hello"
        "don't" -> "dont"
        "--" -> ""
    """
    return _NON_ALNUM.sub('', word.lower())


def tokenize(text: str) -> list[str]:
    """Split text into normalized words, dropping punctuation-only tokens."""
    words: list[str] = []
    for token in text.split():
        norm = normalize_word(token)
        if norm:
            words.append(norm)
    return words


@lru_cache(maxsize=4096)
def phonetic_codes(word: str) -> tuple[str, str]:
    """Get the (primary, secondary) Double Metaphone codes for a normalized word.

    Both codes are empty for words too short to be phonetically meaningful.
    The metaphone library returns an empty secondary code when there is no
    alternate pronunciation.
    """
    if len(word) < MIN_PHONETIC_LENGTH:
        return "", ""
    primary, secondary = doublemetaphone(word)
    return primary or "", secondary or ""


@dataclass(frozen=True)
class SpokenWord:
    """A normalized word from the transcript."""
    text: str
    primary: str
    secondary: str

    @classmethod
    def from_text(cls, word: str) -> 'SpokenWord':
        """Build a spoken word from an already normalized string."""
        primary, secondary = phonetic_codes(word)
        return cls(text=word, primary=primary, secondary=secondary)


@dataclass(frozen=True)
class ReferenceWord:
    """A word of the script at a fixed position."""
    index: int  # Position in the script (0-based, dense)
    text: str  # Normalized form
    primary: str  # Primary phonetic code
    secondary: str  # Alternate phonetic code

    def __repr__(self) -> str:
        return f"ReferenceWord({self.index}: '{self.text}')"


class ReferenceScript(Sequence[ReferenceWord]):
    """Immutable, indexed sequence of script words.

    Built once per script text. Any change to the text means building a new
    ReferenceScript, since positions into the old one are no longer meaningful.
    """

    __slots__ = ("_words", "_source")

    def __init__(self, words: Sequence[ReferenceWord], source: str = "") -> None:
        self._words: tuple[ReferenceWord, ...] = tuple(words)
        self._source: str = source

    def __len__(self) -> int:
        return len(self._words)

    def __getitem__(self, index):  # type: ignore[override]
        return self._words[index]

    def __iter__(self) -> Iterator[ReferenceWord]:
        return iter(self._words)

    def __repr__(self) -> str:
        return f"ReferenceScript({len(self._words)} words)"

    @property
    def source(self) -> str:
        """The raw text this script was built from."""
        return self._source

    @property
    def texts(self) -> list[str]:
        """Normalized word texts, in order."""
        return [w.text for w in self._words]

    def words_between(self, start: int, end: int) -> list[str]:
        """Normalized words in [start, end), clipped to the script."""
        start = max(0, start)
        end = min(len(self._words), end)
        return [w.text for w in self._words[start:end]]


def build_reference(text: str) -> ReferenceScript:
    """Build the reference model for a script.

    Empty or punctuation-only text gives an empty script rather than an error.
    """
    words: list[ReferenceWord] = []
    for index, norm in enumerate(tokenize(text)):
        primary, secondary = phonetic_codes(norm)
        words.append(ReferenceWord(
            index=index,
            text=norm,
            primary=primary,
            secondary=secondary
        ))
    return ReferenceScript(words, source=text)


def spoken_words(text: str) -> list[SpokenWord]:
    """Normalize a transcript hypothesis into spoken words."""
    return [SpokenWord.from_text(w) for w in tokenize(text)]
