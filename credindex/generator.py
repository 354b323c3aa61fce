"""Random secret generation."""

from __future__ import annotations

import secrets
import string

LOWER = string.ascii_lowercase
UPPER = string.ascii_uppercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()-_=+[]{};:,.?"
ALPHABET = LOWER + UPPER + DIGITS + SYMBOLS


def generate_password(length: int) -> str:
    """Return a random password of *length* characters.

    Passwords of four characters or more contain at least one lowercase
    letter, uppercase letter, digit and symbol.
    """

    if length <= 0:
        raise ValueError("password length must be greater than 0")
    chars = [secrets.choice(ALPHABET) for _ in range(length)]
    if length >= 4:
        required = [secrets.choice(group) for group in (LOWER, UPPER, DIGITS, SYMBOLS)]
        positions = list(range(length))
        for char in required:
            slot = positions.pop(secrets.randbelow(len(positions)))
            chars[slot] = char
    return "".join(chars)


__all__ = ["ALPHABET", "generate_password"]
