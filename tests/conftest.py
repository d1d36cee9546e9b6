from datetime import date, timedelta

import pytest

from resort import create_app, db
from resort.auth import issue_token
from resort.config import TestingConfig
from resort.models import Role
from resort.rooms import RoomCatalog
from resort.users import CredentialStore


def day(offset):
    """ISO date ``offset`` days from today."""
    return (date.today() + timedelta(days=offset)).isoformat()


def bearer(token):
    return {'Authorization': 'Bearer {}'.format(token)}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username, role=Role.GUEST, password='pw123'):
        user = CredentialStore(db.session).register(username, password)
        if role is not Role.GUEST:
            user.role = role
            db.session.commit()
        return user, issue_token(user)
    return _make


@pytest.fixture
def make_room(app):
    counter = {'n': 0}

    def _make(**fields):
        counter['n'] += 1
        data = {
            'room_number': 'R{}'.format(counter['n']),
            'type': 'standard',
            'price_per_night': 100,
            'capacity': 2,
        }
        data.update(fields)
        return RoomCatalog(db.session).create(data)
    return _make


@pytest.fixture
def admin(make_user):
    return make_user('admin', Role.ADMIN)


@pytest.fixture
def guest(make_user):
    return make_user('alice')
