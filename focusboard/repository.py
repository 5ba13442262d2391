"""Persistence for the pomodoro engine.

The engine only talks to the ``PomodoroRepository`` protocol; the
Flask-SQLAlchemy implementation below maps rows to the plain records in
``records.py``.
"""

from __future__ import annotations

import logging
import threading
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterator, Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from . import db
from .errors import ConflictError
from .models import ACTIVE_STATES_SQL, Account, DailyStatsRow, SessionRow, SettingsRow, Task
from .records import (
    PomodoroDailyStats,
    PomodoroSession,
    PomodoroSettings,
    SessionTotals,
    SessionType,
    TimerState,
)

logger = logging.getLogger(__name__)


class PomodoroRepository(Protocol):
    def account_guard(self, account_id: int) -> AbstractContextManager[None]: ...

    def get_active_session(self, account_id: int) -> PomodoroSession | None: ...

    def get_session(self, account_id: int, session_id: int) -> PomodoroSession | None: ...

    def save_session(self, session: PomodoroSession) -> PomodoroSession: ...

    def list_sessions(
        self,
        account_id: int,
        task_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
    ) -> list[PomodoroSession]: ...

    def session_totals(self, account_id: int, start: datetime, end: datetime) -> SessionTotals: ...

    def get_daily_stats(self, account_id: int, day: date) -> PomodoroDailyStats | None: ...

    def save_daily_stats(self, stats: PomodoroDailyStats) -> PomodoroDailyStats: ...

    def get_settings(self, account_id: int) -> PomodoroSettings | None: ...

    def save_settings(self, settings: PomodoroSettings) -> PomodoroSettings: ...

    def get_cycle_count(self, account_id: int) -> int: ...

    def save_cycle_count(self, account_id: int, count: int) -> None: ...


class TaskResolver(Protocol):
    def exists(self, account_id: int, task_id: int) -> bool: ...

    def title(self, account_id: int, task_id: int) -> str | None: ...


def _to_utc(dt):
    """Ensure we always work with timezone-aware UTC datetimes.

    SQLite hands back naive datetimes; stored values are UTC, so we attach it.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _to_db(dt):
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


# SQLite names the indexed column, PostgreSQL names the index
_ACTIVE_SESSION_VIOLATIONS = ('uq_pomodoro_session_active', 'pomodoro_session.account_id')


def _is_active_session_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in _ACTIVE_SESSION_VIOLATIONS)


_account_locks: dict[int, threading.Lock] = {}
_account_locks_guard = threading.Lock()


def _lock_for(account_id: int) -> threading.Lock:
    with _account_locks_guard:
        lock = _account_locks.get(account_id)
        if lock is None:
            lock = _account_locks[account_id] = threading.Lock()
        return lock


class SqlAlchemyRepository:
    """Repository over the Flask-SQLAlchemy session of the current app context."""

    @contextmanager
    def account_guard(self, account_id: int) -> Iterator[None]:
        """One unit of work per account: serialized, committed once, or rolled back."""
        with _lock_for(account_id):
            try:
                # Row lock on backends that support it; the process lock covers SQLite.
                db.session.execute(
                    db.select(Account.id).where(Account.id == account_id).with_for_update()
                )
                yield
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                if not _is_active_session_violation(exc):
                    raise
                logger.info('Rejected second active session for account %s: %s', account_id, exc.orig)
                raise ConflictError('A session is already running') from exc
            except Exception:
                db.session.rollback()
                raise

    # Sessions

    def get_active_session(self, account_id: int) -> PomodoroSession | None:
        row = (
            SessionRow.query.filter_by(account_id=account_id)
            .filter(db.text(ACTIVE_STATES_SQL))
            .order_by(SessionRow.created_at.desc())
            .first()
        )
        return self._session_from_row(row) if row else None

    def get_session(self, account_id: int, session_id: int) -> PomodoroSession | None:
        row = db.session.get(SessionRow, session_id)
        if not row or row.account_id != account_id:
            return None
        return self._session_from_row(row)

    def save_session(self, session: PomodoroSession) -> PomodoroSession:
        if session.id is None:
            row = SessionRow(account_id=session.account_id)
            db.session.add(row)
        else:
            row = db.session.get(SessionRow, session.id)
        row.task_id = session.task_id
        row.session_type = session.session_type.value
        row.timer_state = session.timer_state.value
        row.duration_us = session.duration_us
        row.elapsed_us = session.elapsed_us
        row.started_at = _to_db(session.started_at)
        row.created_at = _to_db(session.created_at)
        row.completed_at = _to_db(session.completed_at)
        row.updated_at = _to_db(session.updated_at)
        # Flush so a later insert in the same unit of work sees this state.
        db.session.flush()
        return replace(session, id=row.id)

    def list_sessions(self, account_id, task_id=None, start=None, end=None, limit=50):
        query = SessionRow.query.filter_by(account_id=account_id)
        if task_id is not None:
            query = query.filter(SessionRow.task_id == task_id)
        if start is not None:
            query = query.filter(SessionRow.created_at >= _to_db(start))
        if end is not None:
            query = query.filter(SessionRow.created_at < _to_db(end))
        rows = query.order_by(SessionRow.created_at.desc(), SessionRow.id.desc()).limit(limit).all()
        return [self._session_from_row(row) for row in rows]

    def session_totals(self, account_id: int, start: datetime, end: datetime) -> SessionTotals:
        """Work time of every work session and completed-break counts for ``[start, end)``."""
        rows = (
            db.session.query(
                SessionRow.session_type,
                SessionRow.timer_state,
                func.count(SessionRow.id),
                func.coalesce(func.sum(SessionRow.elapsed_us), 0),
            )
            .filter(
                SessionRow.account_id == account_id,
                SessionRow.created_at >= _to_db(start),
                SessionRow.created_at < _to_db(end),
            )
            .group_by(SessionRow.session_type, SessionRow.timer_state)
            .all()
        )
        work_us = short_breaks = long_breaks = break_us = 0
        for session_type, timer_state, count, elapsed_us in rows:
            if session_type == SessionType.WORK.value:
                work_us += elapsed_us
                continue
            if timer_state != TimerState.COMPLETED.value:
                continue
            if session_type == SessionType.SHORT_BREAK.value:
                short_breaks += count
            else:
                long_breaks += count
            break_us += elapsed_us
        return SessionTotals(
            work_time_total_us=work_us,
            break_sessions_completed=short_breaks + long_breaks,
            short_break_count=short_breaks,
            long_break_count=long_breaks,
            break_time_us=break_us,
        )

    @staticmethod
    def _session_from_row(row: SessionRow) -> PomodoroSession:
        return PomodoroSession(
            id=row.id,
            account_id=row.account_id,
            task_id=row.task_id,
            session_type=SessionType(row.session_type),
            timer_state=TimerState(row.timer_state),
            duration_us=row.duration_us,
            elapsed_us=row.elapsed_us or 0,
            started_at=_to_utc(row.started_at),
            created_at=_to_utc(row.created_at),
            completed_at=_to_utc(row.completed_at),
            updated_at=_to_utc(row.updated_at),
        )

    # Daily stats

    def get_daily_stats(self, account_id: int, day: date) -> PomodoroDailyStats | None:
        row = DailyStatsRow.query.filter_by(account_id=account_id, date=day).first()
        if not row:
            return None
        return PomodoroDailyStats(
            account_id=row.account_id,
            date=row.date,
            work_sessions_completed=row.work_sessions_completed,
            total_focus_time_us=row.total_focus_time_us,
            goal_progress_percent=row.goal_progress_percent,
        )

    def save_daily_stats(self, stats: PomodoroDailyStats) -> PomodoroDailyStats:
        row = DailyStatsRow.query.filter_by(account_id=stats.account_id, date=stats.date).first()
        if not row:
            row = DailyStatsRow(account_id=stats.account_id, date=stats.date)
            db.session.add(row)
        row.work_sessions_completed = stats.work_sessions_completed
        row.total_focus_time_us = stats.total_focus_time_us
        row.goal_progress_percent = stats.goal_progress_percent
        db.session.flush()
        return stats

    # Settings

    def get_settings(self, account_id: int) -> PomodoroSettings | None:
        row = db.session.get(SettingsRow, account_id)
        if not row:
            return None
        return PomodoroSettings(
            account_id=row.account_id,
            work_duration_us=row.work_duration_us,
            short_break_duration_us=row.short_break_duration_us,
            long_break_duration_us=row.long_break_duration_us,
            sessions_until_long_break=row.sessions_until_long_break,
            daily_goal=row.daily_goal,
            auto_start_breaks=bool(row.auto_start_breaks),
            auto_start_work=bool(row.auto_start_work),
            notifications_enabled=bool(row.notifications_enabled),
            updated_at=_to_utc(row.updated_at),
        )

    def save_settings(self, settings: PomodoroSettings) -> PomodoroSettings:
        row = db.session.get(SettingsRow, settings.account_id)
        if not row:
            row = SettingsRow(account_id=settings.account_id)
            db.session.add(row)
        row.work_duration_us = settings.work_duration_us
        row.short_break_duration_us = settings.short_break_duration_us
        row.long_break_duration_us = settings.long_break_duration_us
        row.sessions_until_long_break = settings.sessions_until_long_break
        row.daily_goal = settings.daily_goal
        row.auto_start_breaks = settings.auto_start_breaks
        row.auto_start_work = settings.auto_start_work
        row.notifications_enabled = settings.notifications_enabled
        row.updated_at = _to_db(settings.updated_at)
        db.session.flush()
        return settings

    # Long-break counter

    def get_cycle_count(self, account_id: int) -> int:
        account = db.session.get(Account, account_id)
        if not account:
            return 0
        return account.work_sessions_since_long_break or 0

    def save_cycle_count(self, account_id: int, count: int) -> None:
        account = db.session.get(Account, account_id)
        if account:
            account.work_sessions_since_long_break = count
            db.session.flush()


class SqlTaskResolver:
    """Validates and labels task references; tasks themselves live elsewhere."""

    def exists(self, account_id: int, task_id: int) -> bool:
        return self.title(account_id, task_id) is not None

    def title(self, account_id: int, task_id: int) -> str | None:
        task = db.session.get(Task, task_id)
        if not task or task.account_id != account_id:
            return None
        return task.title
