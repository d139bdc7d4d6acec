"""One-key typos based on QWERTY neighbours."""

from __future__ import annotations

import random as _random

KEYBOARD_ROWS: tuple[str, ...] = ("qwertyuiop", "asdfghjkl", "zxcvbnm")


def adjacent_keys(rows: tuple[str, ...] = KEYBOARD_ROWS) -> dict[str, list[str]]:
    """Map each key to its left/right neighbours and the keys above/below it."""
    keys: dict[str, list[str]] = {}
    for r, row in enumerate(rows):
        for i, char in enumerate(row):
            adjacent = []
            if i > 0:
                adjacent.append(row[i - 1])
            if i < len(row) - 1:
                adjacent.append(row[i + 1])
            if r > 0 and i < len(rows[r - 1]):
                adjacent.append(rows[r - 1][i])
            if r < len(rows) - 1 and i < len(rows[r + 1]):
                adjacent.append(rows[r + 1][i])
            keys[char] = adjacent
    return keys


ADJACENT_KEYS = adjacent_keys()


def add_typo(text: str, rng: _random.Random | None = None) -> str:
    """Insert one neighbouring key before a random character.

    Returns the text unchanged when it is empty or the picked character
    is not a letter on the keyboard map.
    """
    if not text:
        return text
    rng = rng or _random
    index = rng.randrange(len(text))
    neighbours = ADJACENT_KEYS.get(text[index].lower())
    if not neighbours:
        return text
    return text[:index] + rng.choice(neighbours) + text[index:]
