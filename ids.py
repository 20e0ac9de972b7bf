from __future__ import annotations

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, Set

_ALPHABET = string.digits + string.ascii_uppercase

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def add_days(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)


class IdGenerator:
    """Hands out record identifiers such as ``B_4K2ZQ9A``.

    Subclasses only decide how the suffix is produced; the base class keeps
    track of every id it returned so nothing is repeated within a session.
    """

    def __init__(self) -> None:
        self._issued: Set[str] = set()

    def __call__(self, prefix: str = "X") -> str:
        while True:
            candidate = self._make(prefix)
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate

    def reserve(self, existing) -> None:
        """Mark ids already present in loaded data as taken."""
        self._issued.update(existing)

    def _make(self, prefix: str) -> str:
        raise NotImplementedError


class RandomIdGenerator(IdGenerator):
    def __init__(self, length: int = 7, rng: random.Random | None = None) -> None:
        super().__init__()
        self.length = length
        self._rng = rng or random.SystemRandom()

    def _make(self, prefix: str) -> str:
        suffix = "".join(self._rng.choice(_ALPHABET) for _ in range(self.length))
        return f"{prefix}_{suffix}"


class SequentialIdGenerator(IdGenerator):
    """Deterministic ids (``B1``, ``B2``, ``M1``...), one counter per prefix."""

    def __init__(self) -> None:
        super().__init__()
        self._counters: dict[str, int] = {}

    def _make(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}{self._counters[prefix]}"
