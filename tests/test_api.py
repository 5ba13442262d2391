from focusboard import create_app, db
from focusboard.models import Task
from focusboard.records import US_PER_MINUTE

ALICE = {'X-Account-Id': '7'}
BOB = {'X-Account-Id': '8'}


def test_settings_roundtrip(client) -> None:
    resp = client.get('/api/pomodoro/settings', headers=ALICE)
    assert resp.status_code == 200
    assert resp.get_json()['data']['work_duration_us'] == 25 * US_PER_MINUTE

    resp = client.put('/api/pomodoro/settings', json={'daily_goal': 4}, headers=ALICE)
    assert resp.status_code == 200
    assert resp.get_json()['data']['daily_goal'] == 4

    assert client.get('/api/pomodoro/settings', headers=BOB).get_json()['data']['daily_goal'] == 8


def test_settings_validation_error_names_field(client) -> None:
    resp = client.put('/api/pomodoro/settings', json={'short_break_duration_us': 0}, headers=ALICE)

    body = resp.get_json()
    assert resp.status_code == 400
    assert body['ok'] is False
    assert body['error']['code'] == 'VALIDATION_ERROR'
    assert body['error']['field'] == 'short_break_duration_us'

    resp = client.put('/api/pomodoro/settings', json={'work_duration_us': 10**20}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == 'work_duration_us'


def test_session_flow_over_http(client) -> None:
    assert client.get('/api/pomodoro/current', headers=ALICE).get_json()['data'] is None

    resp = client.post('/api/pomodoro/start', json={}, headers=ALICE)
    assert resp.status_code == 200
    started = resp.get_json()['data']
    assert started['timer_state'] == 'running'
    assert started['session_type'] == 'work'
    assert started['expired'] is False

    resp = client.post('/api/pomodoro/start', headers=ALICE)
    assert resp.status_code == 409
    assert resp.get_json()['error']['code'] == 'CONFLICT_ERROR'

    resp = client.post('/api/pomodoro/resume', headers=ALICE)
    assert resp.status_code == 409
    assert resp.get_json()['error']['code'] == 'INVALID_STATE'

    paused = client.post('/api/pomodoro/pause', headers=ALICE).get_json()['data']
    assert paused['timer_state'] == 'paused'
    assert paused['started_at'] is None

    current = client.get('/api/pomodoro/current', headers=ALICE).get_json()['data']
    assert current['id'] == started['id']
    assert current['remaining_us'] == current['duration_us'] - current['elapsed_us']

    client.post('/api/pomodoro/resume', headers=ALICE)
    body = client.post('/api/pomodoro/complete', headers=ALICE).get_json()
    assert body['data']['timer_state'] == 'completed'
    assert body['suggested_next_type'] == 'short_break'
    assert body['auto_start_next'] is False
    assert body['daily_stats']['work_sessions_completed'] == 1

    stats = client.get('/api/pomodoro/stats', headers=ALICE).get_json()['data']
    assert stats['work_sessions_completed'] == 1
    assert stats['goal_progress_percent'] == 12.5
    assert stats['daily_goal'] == 8
    assert stats['work_time_total_us'] == body['data']['elapsed_us']
    assert stats['break_sessions_completed'] == 0


def test_missing_session_is_not_found(client) -> None:
    for action in ('pause', 'resume', 'stop', 'complete', 'skip'):
        resp = client.post(f'/api/pomodoro/{action}', headers=BOB)
        assert resp.status_code == 404
        assert resp.get_json()['error']['code'] == 'NOT_FOUND'


def test_skip_break_over_http(client) -> None:
    resp = client.post('/api/pomodoro/skip', headers=ALICE)
    assert resp.status_code == 404

    client.post('/api/pomodoro/start', json={'session_type': 'work'}, headers=ALICE)
    resp = client.post('/api/pomodoro/skip', headers=ALICE)
    assert resp.status_code == 409
    client.post('/api/pomodoro/stop', headers=ALICE)

    client.post('/api/pomodoro/start', json={'session_type': 'long_break'}, headers=ALICE)
    work = client.post('/api/pomodoro/skip', headers=ALICE).get_json()['data']
    assert work['session_type'] == 'work'
    assert work['timer_state'] == 'running'

    stats = client.get('/api/pomodoro/stats', headers=ALICE).get_json()['data']
    assert stats['work_sessions_completed'] == 0


def test_history_filters_and_task_titles(app, client) -> None:
    client.get('/api/pomodoro/current', headers=ALICE)
    with app.app_context():
        task = Task(title='Review pull requests', account_id=7)
        db.session.add(task)
        db.session.commit()
        task_id = task.id

    client.post('/api/pomodoro/start', json={'task_id': task_id}, headers=ALICE)
    client.post('/api/pomodoro/stop', headers=ALICE)
    client.post('/api/pomodoro/start', json={'session_type': 'short_break'}, headers=ALICE)
    client.post('/api/pomodoro/complete', headers=ALICE)

    everything = client.get('/api/pomodoro/sessions', headers=ALICE).get_json()['data']
    assert [s['session_type'] for s in everything] == ['short_break', 'work']

    for_task = client.get(f'/api/pomodoro/sessions?task_id={task_id}', headers=ALICE).get_json()['data']
    assert len(for_task) == 1
    assert for_task[0]['task_title'] == 'Review pull requests'
    assert for_task[0]['timer_state'] == 'stopped'

    limited = client.get('/api/pomodoro/sessions?limit=1', headers=ALICE).get_json()['data']
    assert len(limited) == 1

    old_day = client.get('/api/pomodoro/sessions?date=2001-01-01', headers=ALICE).get_json()['data']
    assert old_day == []

    assert client.get('/api/pomodoro/sessions', headers=BOB).get_json()['data'] == []


def test_bad_query_and_body_values(client) -> None:
    assert client.get('/api/pomodoro/sessions?limit=0', headers=ALICE).status_code == 400
    assert client.get('/api/pomodoro/sessions?limit=abc', headers=ALICE).status_code == 400
    resp = client.get('/api/pomodoro/sessions?task_id=abc', headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == 'task_id'
    assert client.get('/api/pomodoro/sessions?date=yesterday', headers=ALICE).status_code == 400
    assert client.get('/api/pomodoro/stats?date=2026-13-01', headers=ALICE).status_code == 400

    resp = client.post('/api/pomodoro/start', json={'session_type': 'nap'}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == 'session_type'

    resp = client.post('/api/pomodoro/start', json={'task_id': 12345}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == 'task_id'

    resp = client.post(
        '/api/pomodoro/start', data='not json', headers=ALICE, content_type='application/json'
    )
    assert resp.status_code == 400


def test_stats_for_past_day_defaults_to_zero(client) -> None:
    data = client.get('/api/pomodoro/stats?date=2025-12-31', headers=ALICE).get_json()['data']

    assert data == {
        'date': '2025-12-31',
        'work_sessions_completed': 0,
        'total_focus_time_us': 0,
        'goal_progress_percent': 0.0,
        'daily_goal': 8,
        'work_time_total_us': 0,
        'break_sessions_completed': 0,
        'short_break_count': 0,
        'long_break_count': 0,
        'break_time_us': 0,
    }


def test_unknown_account_is_unauthorized(tmp_path) -> None:
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'closed.db'}",
        'DEFAULT_ACCOUNT_ID': None,
        'AUTO_CREATE_ACCOUNTS': False,
    })
    client = app.test_client()

    resp = client.get('/api/pomodoro/current')
    assert resp.status_code == 401
    assert resp.get_json()['error']['code'] == 'UNAUTHORIZED'

    assert client.get('/api/pomodoro/current', headers={'X-Account-Id': '3'}).status_code == 401
