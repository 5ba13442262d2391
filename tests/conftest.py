# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from focusboard import create_app, db
from focusboard.models import Account, Task

from .fakes import FakeClock, build_engine


@pytest.fixture()
def app(tmp_path):
    """
    App on a throwaway SQLite file.

    No app context is left pushed here: Flask-Login caches the current
    account on ``g``, so API tests need a fresh context per request.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'app.db'}",
        'DEFAULT_ACCOUNT_ID': 1,
        'AUTO_CREATE_ACCOUNTS': True,
    })
    yield app
    with app.app_context():
        db.engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def account_id(ctx) -> int:
    db.session.add(Account(id=1))
    db.session.commit()
    return 1


@pytest.fixture()
def task_id(account_id) -> int:
    task = Task(title='Write quarterly report', account_id=account_id)
    db.session.add(task)
    db.session.commit()
    return task.id


@pytest.fixture()
def engine(account_id, clock) -> SimpleNamespace:
    return build_engine(account_id, clock)
