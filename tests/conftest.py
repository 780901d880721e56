from __future__ import annotations

from datetime import datetime, timezone

import pytest

from roadcast.quota import MemoryQuotaStore, QuotaTracker
from tests.fakes import FrozenClock


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def quota(clock) -> QuotaTracker:
    return QuotaTracker(MemoryQuotaStore(), clock=clock)
