from __future__ import annotations

from .records import PomodoroSettings, SessionType


class SessionSequencer:
    """Decides which session type follows the one that just ended.

    ``completed_since_long_break`` counts work sessions completed since the
    last long break, not including the one being decided on.
    """

    def __init__(self, settings: PomodoroSettings, completed_since_long_break: int) -> None:
        self.settings = settings
        self.completed_since_long_break = completed_since_long_break

    def next_after_work(self) -> SessionType:
        # The Nth completion itself triggers the long break.
        count = self.completed_since_long_break + 1
        if count % self.settings.sessions_until_long_break == 0:
            return SessionType.LONG_BREAK
        return SessionType.SHORT_BREAK

    def next_after_break(self) -> SessionType:
        return SessionType.WORK

    def next_after(self, session_type: SessionType) -> SessionType:
        if session_type is SessionType.WORK:
            return self.next_after_work()
        return self.next_after_break()
