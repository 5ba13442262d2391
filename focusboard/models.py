from . import db
from flask_login import UserMixin
from sqlalchemy import text


ACTIVE_STATES_SQL = "timer_state IN ('running', 'paused')"


class Account(db.Model, UserMixin):
    __tablename__ = 'account'

    id = db.Column(db.Integer, primary_key=True)
    # Work sessions completed since the last long break; owned by SessionLifecycle.
    work_sessions_since_long_break = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    tasks = db.relationship('Task')


class Task(db.Model):
    __tablename__ = 'task'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False)


class SettingsRow(db.Model):
    __tablename__ = 'pomodoro_settings'

    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), primary_key=True)
    work_duration_us = db.Column(db.BigInteger, nullable=False)
    short_break_duration_us = db.Column(db.BigInteger, nullable=False)
    long_break_duration_us = db.Column(db.BigInteger, nullable=False)
    sessions_until_long_break = db.Column(db.Integer, nullable=False)
    daily_goal = db.Column(db.Integer, nullable=False)
    auto_start_breaks = db.Column(db.Boolean, nullable=False, default=False)
    auto_start_work = db.Column(db.Boolean, nullable=False, default=False)
    notifications_enabled = db.Column(db.Boolean, nullable=False, default=True, server_default='1')
    updated_at = db.Column(db.DateTime)


class SessionRow(db.Model):
    __tablename__ = 'pomodoro_session'
    __table_args__ = (
        # At most one running/paused session per account.
        db.Index(
            'uq_pomodoro_session_active',
            'account_id',
            unique=True,
            sqlite_where=text(ACTIVE_STATES_SQL),
            postgresql_where=text(ACTIVE_STATES_SQL),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'))
    session_type = db.Column(db.String(20), nullable=False)  # work | short_break | long_break
    timer_state = db.Column(db.String(20), nullable=False)  # idle | running | paused | completed | stopped
    duration_us = db.Column(db.BigInteger, nullable=False)
    elapsed_us = db.Column(db.BigInteger, nullable=False, default=0)
    # Timestamps are naive UTC
    started_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, index=True)
    completed_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime)


class DailyStatsRow(db.Model):
    __tablename__ = 'pomodoro_daily_stats'
    __table_args__ = (
        db.UniqueConstraint('account_id', 'date', name='uq_pomodoro_daily_stats_day'),
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    work_sessions_completed = db.Column(db.Integer, nullable=False, default=0)
    total_focus_time_us = db.Column(db.BigInteger, nullable=False, default=0)
    goal_progress_percent = db.Column(db.Float, nullable=False, default=0.0)
