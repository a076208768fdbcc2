import base64
from datetime import timedelta

from facepoints import db
from facepoints.models import SINGLE_WINNER, UNLIMITED_REPEATABLE, EmployeeCode
from fakes import JPEG_SIGNATURE, photo_b64


def register(client, name, **extra):
    body = {'name': name, 'photo': photo_b64(name)}
    body.update(extra)
    return client.post('/api/participants/register', json=body)


def create_quiz(operator_client, start):
    res = operator_client.post('/api/trivia', json={
        'name': 'Quiz',
        'window_start': start.isoformat() + 'Z',
        'window_end': (start + timedelta(minutes=10)).isoformat() + 'Z',
        'points_max': 300,
        'points_min': 50,
        'questions': [{
            'prompt': 'Which planet is known as the red planet?',
            'options': {'A': 'Venus', 'B': 'Mars', 'C': 'Jupiter', 'D': 'Mercury'},
            'correct_label': 'B',
        }],
    })
    assert res.status_code == 201
    return res.get_json()


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'ok'
    assert data['recognition'] == 'available'
    assert data['time'].endswith('Z')


def test_register_returns_identity_and_session(client):
    res = register(client, 'alice', email='Alice@Example.com')
    assert res.status_code == 201
    data = res.get_json()
    assert data['identity']['display_name'] == 'alice'
    assert data['identity']['email'] == 'alice@example.com'
    assert data['identity']['point_balance'] == 0
    assert data['session']['token']

    me = client.get('/api/participants/me', headers={'X-Session-Token': data['session']['token']})
    assert me.status_code == 200
    assert me.get_json()['identity']['id'] == data['identity']['id']


def test_register_two_faces(client, oracle):
    res = client.post('/api/participants/register', json={'name': 'alice', 'photo': photo_b64('alice', 'bob')})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'multiple_faces_detected'
    assert oracle.collection == {}


def test_register_rejects_bad_images(client, oracle, flask_app):
    res = client.post('/api/participants/register', json={'name': 'alice', 'photo': '%%%not-base64%%%'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'invalid_image_format'

    gif = base64.b64encode(b'GIF89a' + b'x' * 10).decode()
    res = client.post('/api/participants/register', json={'name': 'alice', 'photo': gif})
    assert res.get_json()['error'] == 'invalid_image_format'

    huge = base64.b64encode(JPEG_SIGNATURE + b'x' * flask_app.config['MAX_IMAGE_BYTES']).decode()
    res = client.post('/api/participants/register', json={'name': 'alice', 'photo': huge})
    assert res.status_code == 413
    assert res.get_json()['error'] == 'image_too_large'

    res = client.post('/api/participants/register', json={'name': 'alice'})
    assert res.status_code == 400
    assert oracle.collection == {}


def test_register_duplicate_email(client):
    register(client, 'alice', email='shared@example.com')
    res = register(client, 'bob', email='shared@example.com')
    assert res.status_code == 409
    assert res.get_json()['error'] == 'email_already_registered'


def test_employee_code_lookup(client, flask_app):
    db.session.add(EmployeeCode(code='EMP0001'))
    db.session.commit()

    assert client.get('/api/participants/employee-codes/emp0001').get_json()['eligible'] is True
    register(client, 'alice', employee_code='EMP0001')
    data = client.get('/api/participants/employee-codes/EMP0001').get_json()
    assert data['registered'] is True
    assert data['identity']['display_name'] == 'alice'


def test_profile_by_photo(client):
    register(client, 'alice')
    res = client.post('/api/participants/profile', json={'photo': photo_b64('alice')})
    assert res.status_code == 200
    data = res.get_json()
    assert data['identity']['display_name'] == 'alice'
    assert data['similarity'] >= 90
    assert data['session']['token']

    res = client.post('/api/participants/profile', json={'photo': photo_b64('stranger')})
    assert res.status_code == 404
    assert res.get_json()['status'] == 'not_registered'


def test_oracle_outage_is_503_not_unregistered(client, oracle):
    register(client, 'alice')
    oracle.unavailable = True
    res = client.post('/api/participants/profile', json={'photo': photo_b64('alice')})
    assert res.status_code == 503
    assert res.get_json()['error'] == 'oracle_unavailable'


def test_expired_session_is_rejected_and_discarded(client, clock):
    token = register(client, 'alice').get_json()['session']['token']
    clock.advance(hours=25)

    res = client.get('/api/participants/me', headers={'X-Session-Token': token})
    assert res.status_code == 401
    assert res.get_json()['error'] == 'session_expired'

    res = client.get('/api/participants/me', headers={'X-Session-Token': token})
    assert res.get_json()['error'] == 'session_invalid'


def test_companion_endpoints(client):
    registered = register(client, 'alice').get_json()
    alice = registered['identity']
    headers = {'X-Session-Token': registered['session']['token']}
    res = client.post(
        f"/api/participants/{alice['id']}/companion",
        json={'name': 'buddy', 'photo': photo_b64('buddy')},
        headers=headers,
    )
    assert res.status_code == 201
    buddy = res.get_json()['companion']
    assert buddy['is_companion'] is True

    res = client.post(
        f"/api/participants/{alice['id']}/companion",
        json={'name': 'pal', 'photo': photo_b64('pal')},
        headers=headers,
    )
    assert res.status_code == 409
    assert res.get_json()['error'] == 'already_has_companion'

    data = client.get(f"/api/participants/{alice['id']}/companion").get_json()
    assert data['has_companion'] is True
    assert data['companion']['id'] == buddy['id']
    data = client.get(f"/api/participants/{buddy['id']}/companion").get_json()
    assert data['principal']['id'] == alice['id']


def test_adding_companion_needs_the_principals_session(client, oracle):
    alice = register(client, 'alice').get_json()['identity']
    bob_token = register(client, 'bob').get_json()['session']['token']
    url = f"/api/participants/{alice['id']}/companion"
    body = {'name': 'buddy', 'photo': photo_b64('buddy')}

    res = client.post(url, json=body)
    assert res.status_code == 401
    assert res.get_json()['error'] == 'session_invalid'

    res = client.post(url, json=body, headers={'X-Session-Token': bob_token})
    assert res.status_code == 403
    assert res.get_json()['error'] == 'session_forbidden'

    assert client.get(url).get_json()['has_companion'] is False
    assert oracle.face_id_for('buddy') is None


def test_contest_creation_requires_operator(client, operator_client):
    res = client.post('/api/contests', json={'name': 'Booth', 'points_awarded': 100})
    assert res.status_code == 401

    res = operator_client.post('/api/contests', json={'name': 'Booth', 'points_awarded': 100, 'code': 'booth1'})
    assert res.status_code == 201
    assert res.get_json()['code'] == 'BOOTH1'
    assert res.get_json()['mode'] == 'one_per_user'

    res = operator_client.post('/api/contests', json={'name': 'Bad', 'points_awarded': 'lots'})
    assert res.status_code == 400


def test_operator_login_rejects_bad_password(client, operator_client):
    res = client.post('/operators/login', json={'username': 'admin', 'password': 'wrong'})
    assert res.status_code == 401
    assert res.get_json()['error'] == 'invalid_credentials'


def test_participate_flow(client, operator_client):
    register(client, 'alice')
    code = operator_client.post('/api/contests', json={'name': 'Booth', 'points_awarded': 100}).get_json()['code']

    res = client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('alice')})
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'success'
    assert data['new_balance'] == 100
    assert data['session']['token']

    res = client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('alice')})
    assert res.get_json()['status'] == 'already_participated'
    assert 'session' not in res.get_json()

    res = client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('stranger')})
    assert res.status_code == 404
    assert res.get_json()['status'] == 'not_registered'

    res = client.post('/api/contests/NOPE00/participate', json={'photo': photo_b64('alice')})
    assert res.status_code == 404
    assert res.get_json()['status'] == 'contest_not_found'

    contest = client.get(f'/api/contests/{code}').get_json()
    participants = client.get(f"/api/contests/{contest['id']}/participants").get_json()
    assert participants['total'] == 1


def test_participate_renews_callers_session(client, operator_client, clock):
    token = register(client, 'alice').get_json()['session']['token']
    code = operator_client.post(
        '/api/contests', json={'name': 'Snacks', 'points_awarded': 5, 'mode': UNLIMITED_REPEATABLE}
    ).get_json()['code']

    clock.advance(hours=23)
    res = client.post(
        f'/api/contests/{code}/participate',
        json={'photo': photo_b64('alice')},
        headers={'X-Session-Token': token},
    )
    assert res.get_json()['session']['token'] == token
    clock.advance(hours=23)
    assert client.get('/api/participants/me', headers={'X-Session-Token': token}).status_code == 200


def test_trivia_answer_renews_callers_session(client, operator_client, clock):
    token = register(client, 'alice').get_json()['session']['token']
    clock.advance(hours=20)
    created = create_quiz(operator_client, clock.now())
    question_id = created['questions'][0]['id']

    res = client.post(
        f"/api/trivia/{created['id']}/answer",
        json={'question_id': question_id, 'answer': 'B'},
        headers={'X-Session-Token': token},
    )
    assert res.status_code == 200
    assert res.get_json()['session']['token'] == token
    clock.advance(hours=5)
    assert client.get('/api/participants/me', headers={'X-Session-Token': token}).status_code == 200


def test_trivia_creation_requires_operator(client, operator_client, clock):
    res = client.post('/api/trivia', json={'name': 'Quiz'})
    assert res.status_code == 401
    assert create_quiz(operator_client, clock.now())['name'] == 'Quiz'


def test_non_string_fields_are_rejected(client, operator_client, clock):
    token = register(client, 'alice').get_json()['session']['token']
    created = create_quiz(operator_client, clock.now())
    question_id = created['questions'][0]['id']

    res = client.post(
        f"/api/trivia/{created['id']}/answer",
        json={'question_id': question_id, 'answer': 2},
        headers={'X-Session-Token': token},
    )
    assert res.status_code == 400
    assert res.get_json()['error'] == 'invalid_request'

    for body in (
        {'name': 5, 'points_awarded': 10},
        {'name': 'Booth', 'points_awarded': 10, 'code': 12},
        {'name': 'Booth', 'points_awarded': 10, 'mode': ['single_winner']},
        {'name': 'Booth', 'points_awarded': True},
    ):
        res = operator_client.post('/api/contests', json=body)
        assert res.status_code == 400, body

    start = clock.now()
    res = operator_client.post('/api/trivia', json={
        'name': 'Quiz',
        'window_start': start.isoformat() + 'Z',
        'window_end': (start + timedelta(minutes=10)).isoformat() + 'Z',
        'points_max': 300,
        'points_min': 50,
        'questions': ['Which planet is red?'],
    })
    assert res.status_code == 400


def test_single_winner_over_http(client, operator_client):
    register(client, 'alice')
    register(client, 'bob')
    code = operator_client.post(
        '/api/contests', json={'name': 'Stage', 'points_awarded': 500, 'mode': SINGLE_WINNER}
    ).get_json()['code']

    assert client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('alice')}).get_json()['status'] == 'success'
    data = client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('bob')}).get_json()
    assert data['status'] == 'contest_exhausted'
    assert data['winner_name'] == 'alice'


def test_trivia_flow(client, operator_client, clock):
    token = register(client, 'alice').get_json()['session']['token']
    start = clock.now()
    res = operator_client.post('/api/trivia', json={
        'name': 'Quiz',
        'window_start': start.isoformat() + 'Z',
        'window_end': (start + timedelta(minutes=10)).isoformat() + 'Z',
        'points_max': 300,
        'points_min': 50,
        'questions': [{
            'prompt': 'Which planet is known as the red planet?',
            'options': {'A': 'Venus', 'B': 'Mars', 'C': 'Jupiter', 'D': 'Mercury'},
            'correct_label': 'B',
        }],
    })
    assert res.status_code == 201
    created = res.get_json()
    assert created['questions'][0]['correct_label'] == 'B'

    clock.advance(seconds=300)
    active = client.get('/api/trivia/active', headers={'X-Session-Token': token}).get_json()
    assert active['trivia_id'] == created['id']
    assert active['current_score'] == 175
    assert active['already_answered'] is False
    question_id = active['questions'][0]['id']

    answer_url = f"/api/trivia/{created['id']}/answer"
    res = client.post(answer_url, json={'question_id': question_id, 'answer': 'B'})
    assert res.status_code == 401

    res = client.post(answer_url, json={'question_id': question_id, 'answer': 'B'}, headers={'X-Session-Token': token})
    assert res.status_code == 200
    assert res.get_json()['points_awarded'] == 175

    res = client.post(answer_url, json={'question_id': question_id, 'answer': 'B'}, headers={'X-Session-Token': token})
    assert res.status_code == 409
    assert res.get_json()['status'] == 'already_answered'

    ranking = client.get('/api/ranking').get_json()
    assert ranking['ranking'][0]['point_balance'] == 175
    assert ranking['stats']['total_points'] == 175

    clock.advance(minutes=10)
    res = client.get('/api/trivia/active')
    assert res.status_code == 404
    assert res.get_json()['status'] == 'none'


def test_ranking_limit_and_audit(client, operator_client):
    alice = register(client, 'alice').get_json()['identity']
    register(client, 'bob')
    code = operator_client.post('/api/contests', json={'name': 'Booth', 'points_awarded': 10}).get_json()['code']
    client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('alice')})
    client.post(f'/api/contests/{code}/participate', json={'photo': photo_b64('bob')})

    assert len(client.get('/api/ranking?limit=1').get_json()['ranking']) == 1
    assert client.get('/api/ranking?limit=abc').status_code == 400

    audit = client.get('/api/audit/identities').get_json()
    assert len(audit) == 2
    assert all(row['contest_count'] == 1 for row in audit)

    history = client.get(f"/api/audit/identities/{alice['id']}/history").get_json()
    assert history['summary']['contest_points'] == 10
    assert client.get('/api/audit/identities/999/history').status_code == 404
