"""Whitespace token stream used by every command parser.

A command line is split once into tokens and then consumed front to back by
whichever handler recognises the leading keyword.  Keyword comparisons are
case-insensitive; values are returned as written.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Iterable, Optional, TypeVar

N = TypeVar("N", int, float)


class TokenError(ValueError):
    """Raised when a recognised keyword carries a missing or malformed value."""


class CommandTokens(deque):
    def __init__(self, source: "str | Iterable[str]" = "") -> None:
        if isinstance(source, str):
            super().__init__(source.split())
        else:
            super().__init__(source)

    def __str__(self) -> str:
        return " ".join(self)

    def first_is(self, name: str) -> bool:
        return bool(self) and self[0].lower() == name.lower()

    def pop_param(self, name: str) -> bool:
        """Consume ``name`` if it is the next token."""
        if self.first_is(name):
            self.popleft()
            return True
        return False

    def pop_string(self) -> str:
        return self.popleft() if self else ""

    def pop_string_value(self, name: str, until: Optional[str] = None) -> Optional[str]:
        """Consume ``name`` followed by one or more words.

        Words are collected up to (not including) the ``until`` keyword, or to
        the end of the line when ``until`` is not given.  Returns None when
        ``name`` is not the next token.
        """
        if not self.first_is(name):
            return None
        self.popleft()
        words = []
        while self and not (until and self.first_is(until)):
            words.append(self.popleft())
        if not words:
            raise TokenError(f"Missing value for '{name}'")
        return " ".join(words)

    def pop_number(self, name: str, cast: Callable[[str], N] = int) -> Optional[N]:
        """Consume ``name <number>``; None when ``name`` is not the next token."""
        if not self.first_is(name):
            return None
        if len(self) < 2:
            raise TokenError(f"Missing value for '{name}'")
        try:
            value = cast(self[1])
        except ValueError:
            raise TokenError(f"Invalid value for '{name}': {self[1]}") from None
        self.popleft()
        self.popleft()
        return value

    def pop_leading_number(self, cast: Callable[[str], N] = int) -> Optional[N]:
        if not self:
            return None
        try:
            value = cast(self[0].strip(" ;"))
        except ValueError:
            return None
        self.popleft()
        return value
