"""
Integration tests for the FastAPI app using an in-memory catalog store.
"""

import time
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

import api
from cinecritic.config import Settings
from cinecritic.filters import EMPTY_CATALOG_MESSAGE, NO_MATCH_MESSAGE
from cinecritic.identity import LOGIN_ROUTE, LocalIdentityProvider, create_token
from cinecritic.models import Principal
from cinecritic.store import InMemoryCatalogStore

from conftest import BASE_TIME, StepClock

PASSWORD = 's3cret'


@pytest.fixture(scope='module')
def password_hash():
	return LocalIdentityProvider.hash_password(PASSWORD, rounds=4)


@pytest.fixture
def settings(monkeypatch, password_hash):
	monkeypatch.setenv('CINECRITIC_ADMIN_EMAIL', 'admin@example.com')
	monkeypatch.setenv('CINECRITIC_ADMIN_PASSWORD_HASH', password_hash)
	monkeypatch.setenv('CINECRITIC_JWT_SECRET', 'test-secret')
	return Settings()


def open_client(settings, entries=()):
	store = InMemoryCatalogStore(entries=entries, clock=StepClock(BASE_TIME + timedelta(hours=1)))
	api.configure(store, settings)
	return TestClient(api.app)


@pytest.fixture
def client(settings, catalog):
	with open_client(settings, catalog) as client:
		yield client


@pytest.fixture
def auth_headers():
	token = create_token(Principal('admin@example.com'), 'test-secret')
	return {'Authorization': f'Bearer {token}'}


def titles(payload):
	return [m['title'] for m in payload['results']]


def new_movie(**overrides):
	body = {
		'title': 'Paper Moons',
		'genres': ['Drama'],
		'languages': ['French'],
		'censor_rating': 'U',
		'rating': 3.5,
		'poster_image': 'https://img.example.com/paper-moons.jpg',
		'review_text': 'Gentle and well acted.',
	}
	body.update(overrides)
	return body


def test_health(client):
	data = client.get('/health').json()
	assert data['status'] == 'ok'
	assert data['catalog'] == 'ready'
	assert data['movies'] == 5


def test_listing_is_newest_first(client):
	data = client.get('/movies').json()
	assert data['status'] == 'ready'
	assert data['total'] == data['count'] == 5
	assert titles(data) == ['Kaadu', 'The Long Laugh', 'Monsoon Heist', 'Nova', 'Bloodline']


@pytest.mark.parametrize("params,expected", [
	({'genres': 'Thriller'}, ['Kaadu', 'Monsoon Heist']),
	({'genres': ['Comedy', 'Horror']}, ['The Long Laugh', 'Bloodline']),
	({'languages': 'Tamil'}, ['Kaadu']),
	({'min_rating': 4.5}, ['Kaadu', 'Nova']),
	({'max_rating': 1.0}, ['Bloodline']),
	({'censor': 'U/A'}, ['Kaadu', 'Monsoon Heist']),
	({'q': 'NOVA'}, ['Nova']),
	({'q': 'heist', 'languages': 'Hindi', 'censor': 'U/A'}, ['Monsoon Heist']),
])
def test_listing_filters(client, params, expected):
	data = client.get('/movies', params=params).json()
	assert titles(data) == expected
	assert data['total'] == 5


def test_listing_without_matches_explains_why(client):
	data = client.get('/movies', params={'q': 'zzz'}).json()
	assert data['results'] == []
	assert data['message'] == NO_MATCH_MESSAGE


def test_empty_catalog_message(settings):
	with open_client(settings) as client:
		data = client.get('/movies').json()
	assert data['status'] == 'ready'
	assert data['message'] == EMPTY_CATALOG_MESSAGE


def test_movie_detail_and_not_found(client):
	movie = client.get('/movies/nova').json()
	assert movie['title'] == 'Nova'
	assert movie['genres'] == ['Drama', 'Sci-Fi']
	response = client.get('/movies/missing')
	assert response.status_code == 404


def test_admin_routes_require_session(client):
	response = client.get('/admin/movies')
	assert response.status_code == 401
	assert response.json()['redirect'] == LOGIN_ROUTE
	assert client.post('/admin/movies', json=new_movie()).status_code == 401
	assert client.delete('/admin/movies/nova?confirm=true').status_code == 401
	assert client.get('/movies/nova').status_code == 200


def test_bad_token_is_rejected(client):
	response = client.get('/admin/movies', headers={'Authorization': 'Bearer nonsense'})
	assert response.status_code == 401


def test_login_failures_share_one_message(client):
	wrong_password = client.post('/auth/login', json={'email': 'admin@example.com', 'password': 'nope'})
	unknown = client.post('/auth/login', json={'email': 'who@example.com', 'password': PASSWORD})
	assert wrong_password.status_code == unknown.status_code == 401
	assert wrong_password.json()['detail'] == unknown.json()['detail']


def test_login_session_and_logout(client):
	assert client.get('/auth/session').json()['authenticated'] is False

	response = client.post('/auth/login', json={'email': 'Admin@Example.com', 'password': PASSWORD})
	assert response.status_code == 200
	assert response.json()['email'] == 'admin@example.com'
	token = response.json()['token']

	session = client.get('/auth/session', headers={'Authorization': f'Bearer {token}'}).json()
	assert session == {'authenticated': True, 'email': 'admin@example.com', 'token': None, 'redirect': None}

	client.post('/auth/logout')
	client.cookies.clear()
	assert client.get('/auth/session').json()['redirect'] == LOGIN_ROUTE


def test_create_and_update(client, auth_headers):
	response = client.post('/admin/movies', json=new_movie(), headers=auth_headers)
	assert response.status_code == 201
	created = response.json()
	assert titles(client.get('/movies').json())[0] == 'Paper Moons'

	response = client.put(
		f"/admin/movies/{created['id']}",
		json=new_movie(title='Paper Moons (Director\'s Cut)', rating=5),
		headers=auth_headers,
	)
	assert response.status_code == 200
	assert response.json()['rating'] == 5.0
	assert client.get(f"/movies/{created['id']}").json()['title'] == "Paper Moons (Director's Cut)"


def test_invalid_submission_returns_field_errors(client, auth_headers):
	response = client.post('/admin/movies', json=new_movie(rating=0, genres=[], poster_image=''), headers=auth_headers)
	assert response.status_code == 422
	errors = response.json()['errors']
	assert set(errors) == {'rating', 'genres', 'poster_image'}
	assert client.get('/movies').json()['total'] == 5


def test_update_missing_movie(client, auth_headers):
	response = client.put('/admin/movies/missing', json=new_movie(), headers=auth_headers)
	assert response.status_code == 404


def test_delete_requires_confirmation(client, auth_headers):
	response = client.delete('/admin/movies/nova', headers=auth_headers)
	assert response.status_code == 422
	assert 'confirm' in response.json()['errors']
	assert client.get('/movies/nova').status_code == 200

	response = client.delete('/admin/movies/nova', params={'confirm': 'true'}, headers=auth_headers)
	assert response.status_code == 200
	assert client.get('/movies/nova').status_code == 404
	assert 'Nova' not in titles(client.get('/movies').json())


def test_admin_dashboard_lists_everything(client, auth_headers):
	data = client.get('/admin/movies', headers=auth_headers).json()
	assert data['count'] == 5


def test_websocket_streams_filtered_listing(client, auth_headers):
	with client.websocket_connect('/ws/movies?genres=Thriller') as ws:
		first = ws.receive_json()
		assert first['status'] == 'ready'
		assert titles(first) == ['Kaadu', 'Monsoon Heist']

		ws.send_json({'q': 'kaa'})
		assert titles(ws.receive_json()) == ['Kaadu']

		ws.send_text('not json')
		assert ws.receive_json()['status'] == 'error'

		client.delete('/admin/movies/kaadu', params={'confirm': 'true'}, headers=auth_headers)
		pushed = ws.receive_json()
		assert pushed['results'] == []
		assert pushed['message'] == NO_MATCH_MESSAGE
		assert pushed['total'] == 4
	assert wait_for_subscribers(api.STORE, 1)  # only the app's listing subscription is left


def wait_for_subscribers(store, expected):
	for _ in range(200):
		if store.subscriber_count() == expected:
			return True
		time.sleep(0.01)
	return False


@pytest.mark.parametrize("message", [
	{'q': 5},
	{'q': ['x']},
	{'genres': [1, 2]},
	{'languages': {'English': True}},
	{'min_rating': 'high'},
	['q', 'nova'],
])
def test_websocket_rejects_malformed_filters_and_stays_open(client, message):
	with client.websocket_connect('/ws/movies') as ws:
		assert len(ws.receive_json()['results']) == 5
		ws.send_json(message)
		reply = ws.receive_json()
		assert reply['status'] == 'error'
		ws.send_json({'q': 'nova'})
		assert titles(ws.receive_json()) == ['Nova']


def test_websocket_rejects_bad_query_parameters(client):
	with client.websocket_connect('/ws/movies?min_rating=high') as ws:
		assert ws.receive_json()['status'] == 'error'
	assert wait_for_subscribers(api.STORE, 1)


def test_stale_session_cookie_reads_as_signed_out(client):
	session = client.get('/auth/session', headers={'Cookie': 'session=garbage'})
	assert session.status_code == 200
	assert session.json()['authenticated'] is False
	assert session.json()['redirect'] == LOGIN_ROUTE


def test_wrongly_typed_rating_is_a_field_error(client, auth_headers):
	response = client.post('/admin/movies', json=new_movie(rating='abc'), headers=auth_headers)
	assert response.status_code == 422
	assert response.json()['errors'] == {'rating': "Rating must be between 1 and 5"}
