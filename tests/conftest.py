"""Shared fixtures: a fresh file-backed SQLite app per test plus seeded accounts."""

from datetime import date

import pytest

from sessionbook import create_app
from sessionbook.config import Config
from sessionbook.extensions import db
from sessionbook.models import User, UserRole
from sessionbook.services.crud import PeriodService, TemplateService

PASSWORD = 'TestPass123!'


@pytest.fixture
def app(tmp_path):
    """Create and configure a test application instance."""

    class TestConfig(Config):
        TESTING = True
        WTF_CSRF_ENABLED = False
        RATELIMIT_ENABLED = False
        SECRET_KEY = 'test-secret-key'
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'sessionbook_test.db'}"
        AUTO_CREATE_TABLES = True
        FACILITY_TIMEZONE = 'UTC'

    app = create_app(TestConfig)

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


def create_user(app, email, role, name=None, active=True):
    with app.app_context():
        user = User(email=email, name=name or email.split('@')[0].title(), role=role, active=active)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, email, password=PASSWORD):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def admin_user(app):
    return create_user(app, 'admin@clubhouse.org', UserRole.ADMIN, name='Alex Admin')


@pytest.fixture
def coach_user(app):
    return create_user(app, 'coach@clubhouse.org', UserRole.COACH, name='Casey Coach')


@pytest.fixture
def guardian_user(app):
    return create_user(app, 'parent@clubhouse.org', UserRole.GUARDIAN, name='Pat Parent')


@pytest.fixture
def admin_client(client, admin_user):
    assert login(client, 'admin@clubhouse.org').status_code == 200
    return client


@pytest.fixture
def guardian_client(client, guardian_user):
    assert login(client, 'parent@clubhouse.org').status_code == 200
    return client


@pytest.fixture
def template_id(app):
    """A coed U10 soccer template."""
    with app.app_context():
        template, error = TemplateService().create({
            'name': 'Soccer Skills U10',
            'sport': 'soccer',
            'demo': 'coed',
            'age_range': '8-10',
            'roster_limit': 12,
            'price': 25,
        })
        assert error is None
        return template.id


@pytest.fixture
def period_id(app, template_id, coach_user):
    """June 2024 period for the soccer template."""
    with app.app_context():
        period, error = PeriodService().create({
            'template_id': template_id,
            'name': 'June 2024',
            'start_date': date(2024, 6, 1),
            'end_date': date(2024, 6, 30),
            'coach_ids': [coach_user],
        })
        assert error is None
        return period.id
