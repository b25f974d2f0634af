from sqlalchemy import select

from sessionbook.extensions import db
from sessionbook.models import AuditLog, User, UserRole

from .conftest import create_user, login


class TestAuthentication:
    """Test authentication flows."""

    def test_login_success(self, app, client, admin_user):
        response = login(client, 'Admin@Clubhouse.org')
        assert response.status_code == 200
        assert response.get_json()['user']['role'] == 'admin'

        with app.app_context():
            user = db.session.get(User, admin_user)
            assert user.last_login_at is not None
            assert db.session.scalars(select(AuditLog).filter_by(action='login_success')).first() is not None

    def test_login_wrong_password(self, app, client, admin_user):
        response = login(client, 'admin@clubhouse.org', password='WrongPassword')
        assert response.status_code == 401
        assert response.get_json()['code'] == 'UNAUTHORIZED'

        with app.app_context():
            failed = db.session.scalars(select(AuditLog).filter_by(action='login_failed')).one()
            assert failed.meta['reason'] == 'invalid_credentials'

    def test_login_nonexistent_user(self, client):
        assert login(client, 'nobody@clubhouse.org').status_code == 401

    def test_login_inactive_user(self, app, client):
        create_user(app, 'former@clubhouse.org', UserRole.COACH, active=False)
        response = login(client, 'former@clubhouse.org')
        assert response.status_code == 403

    def test_login_rejects_malformed_payload(self, client):
        response = client.post('/auth/login', json={'email': 'not-an-email', 'password': 'x'})
        assert response.status_code == 400
        assert 'email' in response.get_json()['fields']

    def test_me_and_logout(self, client, guardian_user):
        assert client.get('/auth/me').status_code == 401

        login(client, 'parent@clubhouse.org')
        response = client.get('/auth/me')
        assert response.status_code == 200
        assert response.get_json()['user']['id'] == guardian_user

        assert client.post('/auth/logout').status_code == 200
        assert client.get('/auth/me').status_code == 401

    def test_csrf_token_endpoint(self, client):
        response = client.get('/auth/csrf-token')
        assert response.status_code == 200
        assert response.get_json()['csrf_token']


def test_security_headers(client):
    response = client.get('/api/v1/templates')
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'DENY'
    assert response.headers['Cache-Control'] == 'no-store'


def test_unknown_route_is_json(client):
    response = client.get('/api/v1/nothing-here')
    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'
