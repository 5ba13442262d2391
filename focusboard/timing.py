"""Elapsed/remaining time arithmetic for a session record.

Pure functions of ``(session, now)``: nothing here reads a clock or touches
storage, so any number of readers derive the same countdown from one record.
All durations are integer microseconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .records import PomodoroSession, TimerState

_ONE_US = timedelta(microseconds=1)


@dataclass(frozen=True)
class TimerSnapshot:
    elapsed_us: int
    remaining_us: int
    progress_percent: float
    expired: bool


def interval_us(start: datetime, end: datetime) -> int:
    """Whole microseconds from ``start`` to ``end``; never negative."""
    return max(0, (end - start) // _ONE_US)


def effective_elapsed_us(session: PomodoroSession, now: datetime) -> int:
    elapsed = session.elapsed_us
    if session.timer_state is TimerState.RUNNING and session.started_at is not None:
        elapsed += interval_us(session.started_at, now)
    return elapsed


def remaining_us(session: PomodoroSession, now: datetime) -> int:
    return max(0, session.duration_us - effective_elapsed_us(session, now))


def progress_percent(session: PomodoroSession, now: datetime) -> float:
    if session.duration_us <= 0:
        return 0.0
    percent = 100 * effective_elapsed_us(session, now) / session.duration_us
    return max(0.0, min(100.0, percent))


def has_expired(session: PomodoroSession, now: datetime) -> bool:
    return session.timer_state is TimerState.RUNNING and remaining_us(session, now) <= 0


def snapshot(session: PomodoroSession, now: datetime) -> TimerSnapshot:
    return TimerSnapshot(
        elapsed_us=effective_elapsed_us(session, now),
        remaining_us=remaining_us(session, now),
        progress_percent=progress_percent(session, now),
        expired=has_expired(session, now),
    )
