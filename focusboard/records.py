"""Plain records the engine passes around.

These are detached from the database rows in ``models.py`` so the timing,
sequencing and lifecycle code can run without an app context.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

from .errors import ValidationError

US_PER_SECOND = 1_000_000
US_PER_MINUTE = 60 * US_PER_SECOND


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionType(str, Enum):
    WORK = 'work'
    SHORT_BREAK = 'short_break'
    LONG_BREAK = 'long_break'

    @property
    def is_break(self) -> bool:
        return self is not SessionType.WORK

    @classmethod
    def parse(cls, raw) -> SessionType:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            raise ValidationError(
                'Invalid session_type. Must be work, short_break, or long_break',
                field='session_type',
            ) from None


class TimerState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    PAUSED = 'paused'
    COMPLETED = 'completed'
    STOPPED = 'stopped'

    @property
    def is_active(self) -> bool:
        return self in (TimerState.RUNNING, TimerState.PAUSED)


@dataclass(frozen=True)
class PomodoroSettings:
    account_id: int
    work_duration_us: int = 25 * US_PER_MINUTE
    short_break_duration_us: int = 5 * US_PER_MINUTE
    long_break_duration_us: int = 15 * US_PER_MINUTE
    sessions_until_long_break: int = 4
    daily_goal: int = 8
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    notifications_enabled: bool = True
    updated_at: datetime | None = None

    def duration_for(self, session_type: SessionType) -> int:
        if session_type is SessionType.SHORT_BREAK:
            return self.short_break_duration_us
        if session_type is SessionType.LONG_BREAK:
            return self.long_break_duration_us
        return self.work_duration_us


@dataclass(frozen=True)
class PomodoroSession:
    account_id: int
    session_type: SessionType
    timer_state: TimerState
    duration_us: int
    elapsed_us: int
    created_at: datetime
    id: int | None = None
    task_id: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.timer_state.is_active


@dataclass(frozen=True)
class PomodoroDailyStats:
    account_id: int
    date: date
    work_sessions_completed: int = 0
    total_focus_time_us: int = 0
    goal_progress_percent: float = 0.0
    daily_goal: int | None = None


@dataclass(frozen=True)
class SessionTotals:
    """Per-day counts read straight from session history, never stored."""

    work_time_total_us: int = 0
    break_sessions_completed: int = 0
    short_break_count: int = 0
    long_break_count: int = 0
    break_time_us: int = 0
