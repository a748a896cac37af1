from fastapi.testclient import TestClient

from practice_api.main import app

client = TestClient(app)


def test_register_login_and_access_practices():
    r = client.post('/auth/register', json={'username': 'testuser', 'password': 'pass123'})
    assert r.status_code == 200
    # registering again returns the same user
    again = client.post('/auth/register', json={'username': 'testuser', 'password': 'pass123'})
    assert again.json()['id'] == r.json()['id']
    r2 = client.post('/auth/login', json={'username': 'testuser', 'password': 'pass123'})
    assert r2.status_code == 200
    token = r2.json()['access_token']
    # protected endpoint rejects missing token
    r3 = client.post('/practices/quiz', json={'total_questions': 2})
    assert r3.status_code in (401, 403)
    r4 = client.post('/practices/quiz', json={'total_questions': 2}, headers={'Authorization': f'Bearer {token}'})
    assert r4.status_code == 201
    assert r4.json()['user_id'] == r.json()['id']


def test_wrong_password_rejected():
    client.post('/auth/register', json={'username': 'pwuser', 'password': 'right'})
    r = client.post('/auth/login', json={'username': 'pwuser', 'password': 'wrong'})
    assert r.status_code == 401


def test_invalid_token_rejected():
    headers = {'Authorization': 'Bearer invalid.token.here'}
    r = client.get('/practices/quiz/categories', headers=headers)
    assert r.status_code in (401, 403)


def test_request_id_header_exists():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert 'X-Request-ID' in r.headers


def test_request_id_is_echoed():
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.headers['X-Request-ID'] == 'abc123'
