"""
Pytest fixtures for prodtrack backend tests.

Provides the in-memory app, a fresh database per test, operators in each
area and a recording notification sink.
"""

import pytest

from prodtrack import create_app
from prodtrack.extensions import db
from prodtrack.models import User
from prodtrack.services import notification_service, unit_service
from prodtrack.services.notification_service import NotificationSink, StoredNotificationSink


class RecordingSink(NotificationSink):
    """Keeps every delivered event in memory."""

    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def kinds(self):
        return [e.kind for e in self.events]


class FailingSink(NotificationSink):
    def emit(self, event):
        raise RuntimeError("push gateway unavailable")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PRIVILEGED_AREAS': ('admin', 'envios', 'operaciones'),
        'PAUSE_REASON_MIN_LENGTH': 10,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        notification_service.discard_pending()
        notification_service.set_sink(app, StoredNotificationSink())


@pytest.fixture(scope='function')
def sink(app, db_session):
    """Swap in a recording sink for the duration of a test."""
    recording = RecordingSink()
    notification_service.set_sink(app, recording)
    return recording


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: create an active operator in an area."""
    def _make(area: str, username: str | None = None, is_active: bool = True) -> User:
        username = username or f"{area}_{db_session.query(User).count() + 1}"
        user = User(username=username, name=username.title(), area=area, is_active=is_active)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def patronaje_user(make_user):
    return make_user('patronaje', 'pat')


@pytest.fixture(scope='function')
def corte_user(make_user):
    return make_user('corte', 'cor')


@pytest.fixture(scope='function')
def bordado_user(make_user):
    return make_user('bordado', 'bor')


@pytest.fixture(scope='function')
def ensamble_user(make_user):
    return make_user('ensamble', 'ens')


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user('admin', 'adm')


@pytest.fixture(scope='function')
def order(corte_user):
    """100-piece order with every piece in corte."""
    return unit_service.create_unit(
        kind='order', total_pieces=100, created_by=corte_user.id, initial_area='corte',
        title='Polo shirts', client_name='Acme Uniforms',
    )


@pytest.fixture(scope='function')
def reposition(corte_user):
    """20-piece reposition requested by corte, held in corte."""
    return unit_service.create_unit(
        kind='reposition', total_pieces=20, created_by=corte_user.id, initial_area='corte',
        reposition_type='defect', notes='Stained fabric',
    )


def actor_headers(user) -> dict:
    """Helper to create the upstream identity header for a user."""
    return {'X-User-Id': str(user.id)}
