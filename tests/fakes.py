# tests/fakes.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from focusboard.lifecycle import SessionLifecycle
from focusboard.repository import SqlAlchemyRepository, SqlTaskResolver
from focusboard.settings_store import SettingsStore
from focusboard.stats import DailyStatsAggregator

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def build_engine(account_id: int, clock: FakeClock) -> SimpleNamespace:
    """Engine components for one account, wired the way the API wires them."""
    repository = SqlAlchemyRepository()
    settings = SettingsStore(account_id, repository, clock=clock)
    stats = DailyStatsAggregator(account_id, repository, settings)
    lifecycle = SessionLifecycle(
        account_id, repository, settings, stats, tasks=SqlTaskResolver(), clock=clock
    )
    return SimpleNamespace(repository=repository, settings=settings, stats=stats, lifecycle=lifecycle)
