import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contactgraph.identity.repository.memory import InMemoryContactStore  # noqa: E402
from contactgraph.identity.services.engine import IdentityResolutionEngine  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TickingClock:
    """Fake clock starting a day after seeded rows; each call advances one second."""

    def __init__(self, start: datetime = BASE_TIME + timedelta(days=1)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


def at(seconds: int) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


@pytest.fixture
def store():
    return InMemoryContactStore(clock=TickingClock())


@pytest.fixture
def engine(store):
    return IdentityResolutionEngine(store, max_retries=2, retry_backoff=0.0, sleep=lambda _: None)
