"""End-to-end flows over HTTP, from registration to the admin dashboard."""

import pytest

from quizproctor.core import config


def _register(client, email: str, admin: bool = False) -> dict:
    body = {'email': email, 'password': 'pw123456'}
    if admin:
        body['adminSecretKey'] = config.ADMIN_SECRET_KEY
    response = client.post('/auth/register', json=body)
    assert response.status_code == 201
    return response.json()


def _headers(session: dict) -> dict:
    return {'Authorization': f"Bearer {session['token']}"}


@pytest.fixture
def admin_session(client):
    return _register(client, 'admin@x.com', admin=True)


def test_register_then_login(client) -> None:
    _register(client, 'a@x.com')

    ok = client.post('/auth/login', json={'email': 'a@x.com', 'password': 'pw123456'})
    bad = client.post('/auth/login', json={'email': 'a@x.com', 'password': 'pw1234567'})

    assert ok.status_code == 200
    assert ok.json()['token']
    assert bad.status_code == 401


def test_duplicate_registration_is_rejected(client, admin_session) -> None:
    _register(client, 'a@x.com')

    duplicate = client.post('/auth/register', json={'email': 'a@x.com', 'password': 'pw123456'})
    users = client.get('/admin/users', headers=_headers(admin_session)).json()

    assert duplicate.status_code == 400
    assert [entry['email'] for entry in users['users']].count('a@x.com') == 1


def test_submitted_score_shows_as_percentage(client, admin_session) -> None:
    session = _register(client, 'a@x.com')
    client.post(
        '/quiz/submit',
        json={'quizType': 'plugin', 'difficulty': 'beginner', 'score': 8, 'totalQuestions': 10,
              'correctAnswers': 8, 'wrongAnswers': 2, 'timeTakenSeconds': 120, 'detailedAnswers': []},
        headers=_headers(session),
    )

    history = client.get('/quiz/history', headers=_headers(session)).json()['results']
    users = client.get('/admin/users', headers=_headers(admin_session)).json()['users']

    assert len(history) == 1
    assert next(entry for entry in users if entry['email'] == 'a@x.com')['score'] == 80


def test_three_violations_block_and_lock_out(client) -> None:
    session = _register(client, 'a@x.com')
    user_id = session['user']['id']

    outcomes = [
        client.post(
            f'/admin/users/{user_id}/violations',
            json={'violationType': violation},
            headers=_headers(session),
        ).json()
        for violation in ('tab_switch', 'window_blur', 'devtools_attempt')
    ]
    login = client.post('/auth/login', json={'email': 'a@x.com', 'password': 'pw123456'})

    assert [outcome['outcome'] for outcome in outcomes] == ['warned', 'warned', 'blocked']
    assert (outcomes[-1]['warningCount'], outcomes[-1]['restartCount']) == (3, 0)
    assert login.status_code == 403
    assert 'devtools_attempt' in login.json()['blockedReason']


def test_unblock_restores_access(client, admin_session) -> None:
    session = _register(client, 'a@x.com')
    user_id = session['user']['id']
    for _ in range(3):
        client.post(f'/admin/users/{user_id}/restarts', headers=_headers(session))

    client.post(f'/admin/users/{user_id}/unblock', headers=_headers(admin_session))
    login = client.post('/auth/login', json={'email': 'a@x.com', 'password': 'pw123456'})
    restarts = client.get(f'/admin/users/{user_id}/restarts', headers=_headers(admin_session)).json()

    assert login.status_code == 200
    assert restarts == {'restartCount': 0, 'isBlocked': False}


def test_status_update_applies_to_every_result(client, admin_session) -> None:
    session = _register(client, 'a@x.com')
    user_id = session['user']['id']
    for quiz_type in ('plugin', 'theme'):
        client.post(
            '/quiz/submit',
            json={'quizType': quiz_type, 'difficulty': 'advanced', 'score': 6, 'totalQuestions': 10},
            headers=_headers(session),
        )

    updated = client.patch(f'/admin/users/{user_id}/status', json={'status': 'selected'},
                           headers=_headers(admin_session))
    users = client.get('/admin/users', headers=_headers(admin_session)).json()['users']
    results = client.get('/admin/results', headers=_headers(admin_session)).json()['results']

    entry = next(entry for entry in users if entry['id'] == user_id)
    assert updated.status_code == 200
    assert entry['status'] == 'selected'
    assert entry['quizType'] == 'both'
    assert {result['status'] for result in results} == {'selected'}


def test_user_cannot_touch_another_users_counters(client) -> None:
    owner = _register(client, 'owner@x.com')
    intruder = _register(client, 'intruder@x.com')

    response = client.patch(
        f"/admin/users/{owner['user']['id']}/warnings",
        json={'warningCount': 0},
        headers=_headers(intruder),
    )

    assert response.status_code == 403
    assert response.json() == {'error': 'Access denied'}


def test_stats_without_results(client, admin_session) -> None:
    stats = client.get('/admin/stats', headers=_headers(admin_session)).json()

    assert stats == {
        'totalAttempts': 0,
        'uniqueUsers': 0,
        'averageScore': 0,
        'averageTime': 0,
        'totalCorrect': 0,
        'totalWrong': 0,
        'pluginAttempts': 0,
        'themeAttempts': 0,
    }
