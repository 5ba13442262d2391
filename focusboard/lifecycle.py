"""State machine for the single active pomodoro session of an account.

Every operation runs as one unit of work under the repository's account
guard: read the active session, compute the complete next record, write it.
Natural expiry is detected lazily from the record and the supplied clock;
nothing runs in the background.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from .errors import ConflictError, InvalidStateError, NotFoundError, SessionExpiredError, ValidationError
from .records import (
    PomodoroDailyStats,
    PomodoroSession,
    PomodoroSettings,
    SessionType,
    TimerState,
    utc_now,
)
from .repository import PomodoroRepository, TaskResolver
from .sequencer import SessionSequencer
from .settings_store import SettingsStore
from .stats import DailyStatsAggregator
from .timing import effective_elapsed_us, has_expired

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    session: PomodoroSession
    suggested_next_type: SessionType
    auto_start_next: bool
    daily_stats: PomodoroDailyStats | None = None


class SessionLifecycle:
    def __init__(
        self,
        account_id: int,
        repository: PomodoroRepository,
        settings_store: SettingsStore,
        stats: DailyStatsAggregator,
        tasks: TaskResolver | None = None,
        clock: Callable = utc_now,
    ) -> None:
        self.account_id = account_id
        self._repository = repository
        self._settings = settings_store
        self._stats = stats
        self._tasks = tasks
        self._clock = clock

    def current(self) -> PomodoroSession | None:
        return self._repository.get_active_session(self.account_id)

    def is_expired(self) -> bool:
        session = self.current()
        return session is not None and has_expired(session, self._clock())

    def start(self, task_id: int | None = None, session_type=SessionType.WORK) -> PomodoroSession:
        session_type = SessionType.parse(session_type or SessionType.WORK)
        if task_id is not None and self._tasks is not None:
            if not self._tasks.exists(self.account_id, task_id):
                raise ValidationError('Task not found', field='task_id')

        with self._repository.account_guard(self.account_id):
            if self._repository.get_active_session(self.account_id) is not None:
                logger.info('Account %s tried to start while a session is active', self.account_id)
                raise ConflictError('A session is already running. Stop or complete it first.')
            session = self._new_session(self._settings.get(), session_type, task_id, self._clock())
            saved = self._repository.save_session(session)

        logger.info('Started %s session %s for account %s', session_type.value, saved.id, self.account_id)
        return saved

    def pause(self) -> PomodoroSession:
        with self._repository.account_guard(self.account_id):
            session = self._require_active('pause')
            if session.timer_state is not TimerState.RUNNING:
                raise InvalidStateError('Session is not running')
            now = self._clock()
            if has_expired(session, now):
                raise SessionExpiredError('Session time is up; complete it instead of pausing')
            paused = replace(
                session,
                timer_state=TimerState.PAUSED,
                elapsed_us=effective_elapsed_us(session, now),
                started_at=None,
                updated_at=now,
            )
            saved = self._repository.save_session(paused)

        logger.info('Paused session %s at %d us', saved.id, saved.elapsed_us)
        return saved

    def resume(self) -> PomodoroSession:
        with self._repository.account_guard(self.account_id):
            session = self._require_active('resume')
            if session.timer_state is not TimerState.PAUSED:
                raise InvalidStateError('Session is not paused')
            now = self._clock()
            resumed = replace(session, timer_state=TimerState.RUNNING, started_at=now, updated_at=now)
            saved = self._repository.save_session(resumed)

        logger.info('Resumed session %s', saved.id)
        return saved

    def stop(self) -> PomodoroSession:
        """Discard the active session; stopped sessions never count toward stats."""
        with self._repository.account_guard(self.account_id):
            session = self._require_active('stop')
            saved = self._repository.save_session(self._finish(session, TimerState.STOPPED, self._clock()))

        logger.info('Stopped %s session %s', saved.session_type.value, saved.id)
        return saved

    def complete(self) -> CompletionResult:
        """Complete the active session and suggest the next type.

        The next session is never started here; ``auto_start_next`` only
        tells the caller what the settings ask for.
        """
        with self._repository.account_guard(self.account_id):
            session = self._require_active('complete')
            now = self._clock()
            done = self._repository.save_session(self._finish(session, TimerState.COMPLETED, now))

            settings = self._settings.get()
            count = self._repository.get_cycle_count(self.account_id)
            sequencer = SessionSequencer(settings, count)
            daily_stats = None
            if done.session_type is SessionType.WORK:
                daily_stats = self._stats.record_completion(self._stats.day_of(now), done.elapsed_us)
                next_type = sequencer.next_after_work()
                self._repository.save_cycle_count(self.account_id, count + 1)
            else:
                next_type = sequencer.next_after_break()
                if done.session_type is SessionType.LONG_BREAK:
                    self._repository.save_cycle_count(self.account_id, 0)

        logger.info(
            'Completed %s session %s (%d us); next suggested: %s',
            done.session_type.value,
            done.id,
            done.elapsed_us,
            next_type.value,
        )
        return CompletionResult(
            session=done,
            suggested_next_type=next_type,
            auto_start_next=_auto_start(settings, next_type),
            daily_stats=daily_stats,
        )

    def skip_break(self) -> PomodoroSession:
        """Stop the active break and start a work session in the same write.

        The long-break counter is left untouched.
        """
        with self._repository.account_guard(self.account_id):
            session = self._require_active('skip')
            if not session.session_type.is_break:
                raise InvalidStateError('Cannot skip work sessions. Use stop instead.')
            now = self._clock()
            skipped = self._repository.save_session(self._finish(session, TimerState.STOPPED, now))
            work = self._new_session(self._settings.get(), SessionType.WORK, session.task_id, now)
            saved = self._repository.save_session(work)

        logger.info('Skipped %s session %s; started work session %s', skipped.session_type.value, skipped.id, saved.id)
        return saved

    def _require_active(self, action: str) -> PomodoroSession:
        session = self._repository.get_active_session(self.account_id)
        if session is None:
            raise NotFoundError(f'No active session to {action}')
        return session

    def _new_session(
        self,
        settings: PomodoroSettings,
        session_type: SessionType,
        task_id: int | None,
        now,
    ) -> PomodoroSession:
        return PomodoroSession(
            account_id=self.account_id,
            task_id=task_id,
            session_type=session_type,
            timer_state=TimerState.RUNNING,
            duration_us=settings.duration_for(session_type),
            elapsed_us=0,
            started_at=now,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _finish(session: PomodoroSession, state: TimerState, now) -> PomodoroSession:
        # Overruns are not recorded as bonus time.
        elapsed = min(effective_elapsed_us(session, now), session.duration_us)
        return replace(
            session,
            timer_state=state,
            elapsed_us=elapsed,
            started_at=None,
            completed_at=now,
            updated_at=now,
        )


def _auto_start(settings: PomodoroSettings, next_type: SessionType) -> bool:
    if next_type.is_break:
        return settings.auto_start_breaks
    return settings.auto_start_work
