"""Conversion between spreadsheet column letters and 1-based indices."""

from __future__ import annotations

_ALPHABET_SIZE = 26


def column_letter_to_number(letter: str) -> int:
    """Convert a column letter ("A", "Z", "AA") to its 1-based index.

    Letters are read as a base-26 numeral with digits A=1 .. Z=26 and no
    zero digit, so "A" is 1, "Z" is 26 and "AA" is 27.

    Raises:
        ValueError: If ``letter`` is empty or contains anything but A-Z.
    """
    if not letter or not letter.isascii() or not letter.isalpha():
        raise ValueError(f"Invalid column letter: {letter!r}")

    result = 0
    for char in letter.upper():
        result = result * _ALPHABET_SIZE + (ord(char) - ord("A") + 1)
    return result


def column_number_to_letter(number: int) -> str:
    """Convert a 1-based column index to its letter form (27 -> "AA").

    Raises:
        ValueError: If ``number`` is smaller than 1.
    """
    if number < 1:
        raise ValueError(f"Column number must be at least 1, got {number}")

    letters: list[str] = []
    while number > 0:
        number, remainder = divmod(number - 1, _ALPHABET_SIZE)
        letters.append(chr(ord("A") + remainder))
    return "".join(reversed(letters))
