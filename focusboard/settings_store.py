from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping

from .errors import ValidationError
from .records import PomodoroSettings, utc_now
from .repository import PomodoroRepository

logger = logging.getLogger(__name__)

DURATION_FIELDS = ('work_duration_us', 'short_break_duration_us', 'long_break_duration_us')
COUNT_FIELDS = ('sessions_until_long_break', 'daily_goal')
FLAG_FIELDS = ('auto_start_breaks', 'auto_start_work', 'notifications_enabled')
EDITABLE_FIELDS = DURATION_FIELDS + COUNT_FIELDS + FLAG_FIELDS

# Largest values the BigInteger / Integer columns can hold
MAX_DURATION_US = 2**63 - 1
MAX_COUNT = 2**31 - 1


def validate_settings_patch(partial: Mapping[str, Any]) -> dict[str, Any]:
    """Check a partial settings update field by field and return the clean values."""
    if not isinstance(partial, Mapping) or not partial:
        raise ValidationError('No fields provided to update')

    clean: dict[str, Any] = {}
    for field, value in partial.items():
        if field not in EDITABLE_FIELDS:
            raise ValidationError(f'Unknown settings field: {field}', field=field)
        if field in FLAG_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f'{field} must be true or false', field=field)
        # bool is an int subclass; reject it for numeric fields
        elif not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f'{field} must be an integer', field=field)
        elif value <= 0:
            if field in DURATION_FIELDS:
                raise ValidationError(f'{field} must be a positive duration', field=field)
            raise ValidationError(f'{field} must be at least 1', field=field)
        elif value > (MAX_DURATION_US if field in DURATION_FIELDS else MAX_COUNT):
            raise ValidationError(f'{field} is too large', field=field)
        clean[field] = value
    return clean


class SettingsStore:
    """Per-account pomodoro configuration.

    ``get`` falls back to defaults without writing them; only ``update``
    persists. Sessions already in flight keep the duration they were
    created with.
    """

    def __init__(
        self,
        account_id: int,
        repository: PomodoroRepository,
        clock: Callable = utc_now,
    ) -> None:
        self.account_id = account_id
        self._repository = repository
        self._clock = clock

    def get(self) -> PomodoroSettings:
        settings = self._repository.get_settings(self.account_id)
        if settings is None:
            return PomodoroSettings(account_id=self.account_id)
        return settings

    def update(self, partial: Mapping[str, Any]) -> PomodoroSettings:
        changes = validate_settings_patch(partial)
        with self._repository.account_guard(self.account_id):
            updated = replace(self.get(), updated_at=self._clock(), **changes)
            saved = self._repository.save_settings(updated)
        logger.info('Updated pomodoro settings for account %s: %s', self.account_id, sorted(changes))
        return saved
