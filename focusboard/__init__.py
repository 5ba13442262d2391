import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from sqlalchemy import inspect, text

from .logging_setup import setup_logging

db = SQLAlchemy()
DB_NAME = 'database.db'

logger = logging.getLogger(__name__)

# Columns added after the first release: (table, column, DDL type/default)
LATE_COLUMNS = [
    ('account', 'work_sessions_since_long_break', 'INTEGER NOT NULL DEFAULT 0'),
    ('pomodoro_settings', 'notifications_enabled', 'BOOLEAN NOT NULL DEFAULT 1'),
    ('pomodoro_session', 'updated_at', 'DATETIME'),
]


def create_app(test_config=None):
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY='dev',
        SQLALCHEMY_DATABASE_URI=f'sqlite:///{DB_NAME}',
        POMODORO_TIMEZONE='UTC',
        DEFAULT_ACCOUNT_ID=1,
        AUTO_CREATE_ACCOUNTS=True,
        HISTORY_MAX_LIMIT=500,
        LOG_LEVEL='INFO',
    )
    # FOCUSBOARD_SECRET_KEY, FOCUSBOARD_POMODORO_TIMEZONE, ...
    app.config.from_prefixed_env('FOCUSBOARD')
    if test_config:
        app.config.update(test_config)

    setup_logging(app.config['LOG_LEVEL'])
    db.init_app(app)

    from .view import pomodoro
    app.register_blueprint(pomodoro, url_prefix='/api/pomodoro')

    from .models import Account

    with app.app_context():
        db.create_all()
        _add_missing_columns()

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(id):
        return db.session.get(Account, int(id))

    @login_manager.request_loader
    def load_account_from_request(request):
        # No credentials: the account is named by header or configured default.
        raw = request.headers.get('X-Account-Id') or app.config.get('DEFAULT_ACCOUNT_ID')
        try:
            account_id = int(raw)
        except (TypeError, ValueError):
            return None
        account = db.session.get(Account, account_id)
        if account is None and app.config.get('AUTO_CREATE_ACCOUNTS'):
            account = Account(id=account_id)
            db.session.add(account)
            db.session.commit()
            logger.info('Created account %s', account_id)
        return account

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'ok': False, 'error': {'code': 'UNAUTHORIZED', 'message': 'Unknown account'}}), 401

    return app


def _add_missing_columns():
    """Simple migration: add late columns to tables created by older versions."""
    inspector = inspect(db.engine)
    with db.engine.begin() as conn:
        for table, column, ddl in LATE_COLUMNS:
            cols = {c['name'] for c in inspector.get_columns(table)}
            if column not in cols:
                conn.execute(text(f'ALTER TABLE {table} ADD COLUMN {column} {ddl}'))
                logger.warning('Added missing column %s.%s', table, column)
