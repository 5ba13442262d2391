from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .records import PomodoroDailyStats, SessionTotals
from .repository import PomodoroRepository
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


def goal_progress(work_sessions_completed: int, daily_goal: int) -> float:
    """Percent of the daily goal reached; not capped so over-achievement shows."""
    if daily_goal <= 0:
        return 0.0
    return work_sessions_completed / daily_goal * 100


class DailyStatsAggregator:
    """Rolls completed work sessions into one row per account per calendar day.

    The goal percentage always uses the daily goal from the current settings,
    so changing the goal re-labels earlier days as well.
    """

    def __init__(
        self,
        account_id: int,
        repository: PomodoroRepository,
        settings_store: SettingsStore,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.account_id = account_id
        self._repository = repository
        self._settings = settings_store
        self.tz = tz

    def day_of(self, moment: datetime) -> date:
        return moment.astimezone(self.tz).date()

    def record_completion(self, day: date, focus_time_us: int) -> PomodoroDailyStats:
        current = self._repository.get_daily_stats(self.account_id, day)
        if current is None:
            current = PomodoroDailyStats(account_id=self.account_id, date=day)
        daily_goal = self._settings.get().daily_goal
        completed = current.work_sessions_completed + 1
        updated = replace(
            current,
            work_sessions_completed=completed,
            total_focus_time_us=current.total_focus_time_us + max(0, focus_time_us),
            goal_progress_percent=goal_progress(completed, daily_goal),
            daily_goal=daily_goal,
        )
        self._repository.save_daily_stats(updated)
        logger.info(
            'Account %s completed work session %d on %s (%.1f%% of goal)',
            self.account_id,
            completed,
            day.isoformat(),
            updated.goal_progress_percent,
        )
        return updated

    def get(self, day: date) -> PomodoroDailyStats:
        daily_goal = self._settings.get().daily_goal
        stats = self._repository.get_daily_stats(self.account_id, day)
        if stats is None:
            return PomodoroDailyStats(account_id=self.account_id, date=day, daily_goal=daily_goal)
        return replace(
            stats,
            goal_progress_percent=goal_progress(stats.work_sessions_completed, daily_goal),
            daily_goal=daily_goal,
        )

    def totals(self, day: date) -> SessionTotals:
        """Interrupted work time and completed breaks for ``day``, computed on read."""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        return self._repository.session_totals(self.account_id, start, start + timedelta(days=1))
