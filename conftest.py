from datetime import datetime, timedelta, timezone

import pytest

from ids import SequentialIdGenerator
from library import Library


class FakeClock:
    """Deterministic clock; call advance() to move time forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def db_file(tmp_path, request):
    # One database file per test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def lib(db_file, clock):
    """Empty library with sequential ids (B1, M1, T1...)."""
    return Library(db_file=db_file, id_generator=SequentialIdGenerator(), clock=clock, seed=False)


@pytest.fixture
def seeded_lib(db_file, clock):
    return Library(db_file=db_file, id_generator=SequentialIdGenerator(), clock=clock)
