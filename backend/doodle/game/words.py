from __future__ import annotations

import random

from ..config import Config


DEFAULT_WORDS_EN: list[str] = [
    "apple", "banana", "bicycle", "bridge", "butterfly", "camera", "candle",
    "castle", "cat", "chair", "cloud", "clock", "computer", "crown", "dog",
    "dragon", "drum", "elephant", "fish", "flower", "giraffe", "guitar",
    "hamburger", "hat", "helicopter", "house", "ice cream", "island", "kite",
    "ladder", "lamp", "lighthouse", "moon", "mountain", "octopus", "owl",
    "penguin", "piano", "pizza", "rabbit", "rainbow", "robot", "rocket",
    "sandwich", "scissors", "snake", "snowman", "spider", "sun", "sword",
    "table", "telescope", "tent", "train", "tree", "turtle", "umbrella",
    "volcano", "whale", "windmill",
]

DEFAULT_WORDS_SV: list[str] = [
    "äpple", "banan", "cykel", "bro", "fjäril", "kamera", "ljus", "slott",
    "katt", "stol", "moln", "klocka", "dator", "krona", "hund", "drake",
    "trumma", "elefant", "fisk", "blomma", "giraff", "gitarr", "hatt",
    "helikopter", "hus", "glass", "ö", "stjärna", "stege", "lampa", "fyr",
    "måne", "berg", "bläckfisk", "uggla", "pingvin", "piano", "pizza",
    "kanin", "regnbåge", "robot", "raket", "smörgås", "sax", "orm",
    "snögubbe", "spindel", "sol", "svärd", "bord", "tält", "tåg", "träd",
    "sköldpadda", "paraply", "vulkan", "val", "väderkvarn",
]


class WordBank:
    """Fixed, ordered word lists keyed by language tag."""

    def __init__(self, word_lists: dict[str, list[str]], default_language: str | None = None):
        self._lists: dict[str, list[str]] = {}
        for tag, words in word_lists.items():
            # Keep order, drop blanks and duplicates.
            seen: list[str] = []
            for w in words:
                w = (w or "").strip()
                if w and w not in seen:
                    seen.append(w)
            if seen:
                self._lists[tag] = seen

        if not self._lists:
            raise ValueError("WordBank needs at least one non-empty word list")

        default_language = default_language or Config.DEFAULT_LANGUAGE
        if default_language not in self._lists:
            default_language = next(iter(self._lists))
        self.default_language = default_language

    def languages(self) -> list[str]:
        return list(self._lists.keys())

    def has_language(self, language: str | None) -> bool:
        return bool(language) and language in self._lists

    def words_for(self, language: str | None) -> list[str]:
        if language and language in self._lists:
            return list(self._lists[language])
        return list(self._lists[self.default_language])

    def pick_word(self, language: str | None, excluded: list[str]) -> str:
        """Pick a word for *language* that is not in *excluded*.

        When every word has been used, *excluded* is cleared in place and the
        full list is used again. The caller records the returned word.
        """
        words = self.words_for(language)
        used = set(excluded)
        candidates = [w for w in words if w not in used]
        if not candidates:
            excluded.clear()
            candidates = words
        return random.choice(candidates)


_default_bank: WordBank | None = None


def default_word_bank() -> WordBank:
    global _default_bank
    if _default_bank is None:
        _default_bank = WordBank({"en": DEFAULT_WORDS_EN, "sv": DEFAULT_WORDS_SV})
    return _default_bank
