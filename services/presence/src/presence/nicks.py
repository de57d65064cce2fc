"""Nickname collision resolution."""

from __future__ import annotations

import re
from typing import Container

_TRAILING_DIGITS_RE = re.compile(r"(.*?)([0-9]*)", re.DOTALL)


def find_new_nick(nick: str) -> str:
    """Return the next candidate after ``nick``.

    Only the trailing ASCII digit run counts as a suffix. It is incremented
    and zero-filled to its original width, so ``foo01`` becomes ``foo02``
    and ``foo09`` becomes ``foo10``. A nick without trailing digits gets
    ``1`` appended.
    """
    stem, digits = _TRAILING_DIGITS_RE.fullmatch(nick).groups()
    if not digits:
        return f"{stem}1"
    return stem + str(int(digits) + 1).zfill(len(digits))


def resolve_nick(requested: str, existing: Container[str]) -> str:
    """Return ``requested`` or the first free successor of it."""
    candidate = requested
    while candidate in existing:
        candidate = find_new_nick(candidate)
    return candidate
