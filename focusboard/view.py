from flask import Blueprint, current_app, request, jsonify
from flask_login import login_required, current_user
from zoneinfo import ZoneInfo
import json
import logging
from dataclasses import asdict
from datetime import datetime, time, timedelta

from .errors import PomodoroError, ValidationError
from .lifecycle import SessionLifecycle
from .records import utc_now
from .repository import SqlAlchemyRepository, SqlTaskResolver
from .settings_store import SettingsStore
from .stats import DailyStatsAggregator
from .timing import snapshot

DEFAULT_HISTORY_LIMIT = 50

logger = logging.getLogger(__name__)

pomodoro = Blueprint('pomodoro', __name__)


@pomodoro.errorhandler(PomodoroError)
def handle_pomodoro_error(error):
    logger.info('%s %s rejected: %s %s', request.method, request.path, error.code, error.message)
    return jsonify({'ok': False, 'error': error.to_dict()}), error.status


class _Engine:
    """The engine components wired for the current account."""

    def __init__(self, account_id):
        tz = _timezone()
        self.repository = SqlAlchemyRepository()
        self.tasks = SqlTaskResolver()
        self.settings = SettingsStore(account_id, self.repository)
        self.stats = DailyStatsAggregator(account_id, self.repository, self.settings, tz=tz)
        self.lifecycle = SessionLifecycle(
            account_id, self.repository, self.settings, self.stats, tasks=self.tasks
        )


def _engine():
    return _Engine(current_user.id)


def _timezone():
    return ZoneInfo(current_app.config['POMODORO_TIMEZONE'])


def _payload():
    if not request.data:
        return {}
    try:
        payload = json.loads(request.data)
    except ValueError:
        raise ValidationError('Request body must be JSON') from None
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _iso(dt):
    return dt.isoformat() if dt else None


def _session_json(session, now=None, task_title=None):
    if session is None:
        return None
    timer = snapshot(session, now or utc_now())
    data = {
        'id': session.id,
        'task_id': session.task_id,
        'session_type': session.session_type.value,
        'timer_state': session.timer_state.value,
        'duration_us': session.duration_us,
        'elapsed_us': session.elapsed_us,
        'started_at': _iso(session.started_at),
        'created_at': _iso(session.created_at),
        'completed_at': _iso(session.completed_at),
        'updated_at': _iso(session.updated_at),
        'current_elapsed_us': timer.elapsed_us,
        'remaining_us': timer.remaining_us,
        'progress_percent': timer.progress_percent,
        'expired': timer.expired,
    }
    if task_title is not None:
        data['task_title'] = task_title
    return data


def _settings_json(settings):
    return {
        'work_duration_us': settings.work_duration_us,
        'short_break_duration_us': settings.short_break_duration_us,
        'long_break_duration_us': settings.long_break_duration_us,
        'sessions_until_long_break': settings.sessions_until_long_break,
        'daily_goal': settings.daily_goal,
        'auto_start_breaks': settings.auto_start_breaks,
        'auto_start_work': settings.auto_start_work,
        'notifications_enabled': settings.notifications_enabled,
        'updated_at': _iso(settings.updated_at),
    }


def _stats_json(stats):
    if stats is None:
        return None
    return {
        'date': stats.date.isoformat(),
        'work_sessions_completed': stats.work_sessions_completed,
        'total_focus_time_us': stats.total_focus_time_us,
        'goal_progress_percent': stats.goal_progress_percent,
        'daily_goal': stats.daily_goal,
    }


def _parse_day(raw):
    try:
        return datetime.strptime(raw, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError('date must be YYYY-MM-DD', field='date') from None


def _int_arg(name, default=None):
    raw = request.args.get(name, type=str)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer', field=name) from None


@pomodoro.route('/settings', methods=['GET'])
@login_required
def get_settings():
    return jsonify({'ok': True, 'data': _settings_json(_engine().settings.get())})


@pomodoro.route('/settings', methods=['PUT', 'PATCH'])
@login_required
def update_settings():
    settings = _engine().settings.update(_payload())
    return jsonify({'ok': True, 'data': _settings_json(settings)})


@pomodoro.route('/current', methods=['GET'])
@login_required
def current_session():
    session = _engine().lifecycle.current()
    return jsonify({'ok': True, 'data': _session_json(session)})


@pomodoro.route('/start', methods=['POST'])
@login_required
def start_session():
    payload = _payload()
    task_id = payload.get('task_id')
    if task_id is not None and (not isinstance(task_id, int) or isinstance(task_id, bool)):
        raise ValidationError('task_id must be an integer', field='task_id')
    session = _engine().lifecycle.start(task_id=task_id, session_type=payload.get('session_type'))
    return jsonify({'ok': True, 'data': _session_json(session)})


@pomodoro.route('/pause', methods=['POST'])
@login_required
def pause_session():
    return jsonify({'ok': True, 'data': _session_json(_engine().lifecycle.pause())})


@pomodoro.route('/resume', methods=['POST'])
@login_required
def resume_session():
    return jsonify({'ok': True, 'data': _session_json(_engine().lifecycle.resume())})


@pomodoro.route('/stop', methods=['POST'])
@login_required
def stop_session():
    return jsonify({'ok': True, 'data': _session_json(_engine().lifecycle.stop())})


@pomodoro.route('/complete', methods=['POST'])
@login_required
def complete_session():
    result = _engine().lifecycle.complete()
    return jsonify({
        'ok': True,
        'data': _session_json(result.session),
        'suggested_next_type': result.suggested_next_type.value,
        'auto_start_next': result.auto_start_next,
        'daily_stats': _stats_json(result.daily_stats),
    })


@pomodoro.route('/skip', methods=['POST'])
@login_required
def skip_break():
    return jsonify({'ok': True, 'data': _session_json(_engine().lifecycle.skip_break())})


@pomodoro.route('/sessions', methods=['GET'])
@login_required
def sessions_history():
    engine = _engine()
    task_id = _int_arg('task_id')
    limit = _int_arg('limit', DEFAULT_HISTORY_LIMIT)
    max_limit = current_app.config['HISTORY_MAX_LIMIT']
    if limit < 1 or limit > max_limit:
        raise ValidationError(f'limit must be between 1 and {max_limit}', field='limit')

    # Date range covers one calendar day in the configured timezone
    start = end = None
    day_str = request.args.get('date', type=str)
    if day_str:
        start = datetime.combine(_parse_day(day_str), time.min, tzinfo=_timezone())
        end = start + timedelta(days=1)

    sessions = engine.repository.list_sessions(
        current_user.id, task_id=task_id, start=start, end=end, limit=limit
    )
    now = utc_now()
    titles = {}
    resp = []
    for s in sessions:
        if s.task_id is not None and s.task_id not in titles:
            titles[s.task_id] = engine.tasks.title(current_user.id, s.task_id)
        resp.append(_session_json(s, now, titles.get(s.task_id)))
    return jsonify({'ok': True, 'data': resp})


@pomodoro.route('/stats', methods=['GET'])
@login_required
def daily_stats():
    engine = _engine()
    day_str = request.args.get('date', type=str)
    day = _parse_day(day_str) if day_str else engine.stats.day_of(utc_now())
    data = _stats_json(engine.stats.get(day))
    data.update(asdict(engine.stats.totals(day)))
    return jsonify({'ok': True, 'data': data})
