from __future__ import annotations

import os
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone

import pytest
from django.core.cache.backends.locmem import LocMemCache

from backend.core.models import SqlQuotaStore, configure_engine, create_connection
from backend.core.quota import CacheQuotaStore
from roadcast.quota import MemoryQuotaStore, QuotaTracker
from tests.fakes import FrozenClock


def test_fresh_provider_has_full_budget(quota) -> None:
    status = quota.check_availability("tomorrow", 500)

    assert status.used == 0
    assert status.remaining == 500
    assert status.exceeded is False


def test_consume_counts_per_endpoint_and_totals_per_provider(quota) -> None:
    quota.consume("openweather", "weather")
    quota.consume("openweather", "forecast")
    record = quota.consume("openweather", "weather")

    assert record.endpoint == "weather"
    assert record.call_count == 2
    assert record.date == date(2024, 6, 1)
    assert quota.check_availability("openweather", 1000).used == 3
    assert quota.check_availability("tomorrow", 500).used == 0


def test_limit_reached_marks_exceeded(quota) -> None:
    for _ in range(3):
        quota.consume("tomorrow", "timelines")

    status = quota.check_availability("tomorrow", 3)
    assert status.exceeded is True
    assert status.remaining == 0


def test_remaining_never_goes_negative(quota) -> None:
    for _ in range(5):
        quota.consume("tomorrow", "timelines")

    assert quota.check_availability("tomorrow", 3).remaining == 0


def test_new_utc_day_starts_from_zero(quota, clock) -> None:
    quota.consume("tomorrow", "timelines")
    clock.now = clock.now + timedelta(days=1)

    assert quota.check_availability("tomorrow", 500).used == 0


def test_today_uses_utc_date() -> None:
    moscow = timezone(timedelta(hours=3))
    tracker = QuotaTracker(MemoryQuotaStore(), clock=FrozenClock(datetime(2024, 6, 2, 1, 30, tzinfo=moscow)))

    assert tracker.today() == date(2024, 6, 1)


def test_concurrent_consumers_do_not_lose_updates(quota) -> None:
    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(lambda _: quota.consume("tomorrow", "timelines"), range(200)))

    assert quota.check_availability("tomorrow", 500).used == 200


def test_cache_store_counts_in_django_cache() -> None:
    cache = LocMemCache("quota-test", {})
    tracker = QuotaTracker(CacheQuotaStore(cache), clock=FrozenClock(datetime(2024, 6, 1, tzinfo=timezone.utc)))

    tracker.consume("openweather", "weather")
    record = tracker.consume("openweather", "forecast")

    assert record.call_count == 1
    assert tracker.check_availability("openweather", 1000).used == 2
    assert cache.get("quota:2024-06-01:openweather:weather") == 1


def test_sql_store_upserts_rows(tmp_path) -> None:
    factory = configure_engine(f"sqlite:///{tmp_path / 'usage.db'}")
    store = SqlQuotaStore(factory)
    day = date(2024, 6, 1)

    store.increment(day, "tomorrow", "timelines")
    record = store.increment(day, "tomorrow", "timelines")
    store.increment(day, "tomorrow", "events")
    store.increment(day + timedelta(days=1), "tomorrow", "timelines")

    assert record.call_count == 2
    assert store.used(day, "tomorrow") == 3
    assert store.used(day, "openweather") == 0


def test_stores_reject_non_positive_amounts() -> None:
    with pytest.raises(ValueError):
        MemoryQuotaStore().increment(date(2024, 6, 1), "tomorrow", "timelines", amount=0)


def test_relative_sqlite_url_lands_in_working_directory(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WEATHER_QUOTA_DATABASE_URL", raising=False)

    factory = configure_engine(None)
    SqlQuotaStore(factory).increment(date(2024, 6, 1), "tomorrow", "timelines")

    assert factory.url == "sqlite:///./roadcast.db"
    assert (tmp_path / "roadcast.db").exists()


def test_create_connection_resolves_sqlite_paths(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    opened = []
    real_connect = sqlite3.connect

    def spy(path, *args, **kwargs):
        opened.append(path)
        return real_connect(path, *args, **kwargs)

    monkeypatch.setattr(sqlite3, "connect", spy)

    create_connection("sqlite:///quota.db", "sqlite").close()
    create_connection(f"sqlite:///{tmp_path / 'abs.db'}", "sqlite").close()
    create_connection("sqlite:///:memory:", "sqlite").close()

    assert opened == [os.path.join(os.getcwd(), "quota.db"), str(tmp_path / "abs.db"), ":memory:"]
