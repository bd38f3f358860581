import pytest
from datetime import datetime
from werkzeug.security import generate_password_hash
from spacebooking import create_app, db
from spacebooking.config import TestingConfig
from spacebooking.models import User, Space, Course, Role

ADMIN_ID = 1
STAFF_ID = 2
MEMBER_ID = 3
OTHER_MEMBER_ID = 4
GUEST_ID = 6
SPACE_ID = 5
OTHER_SPACE_ID = 7


def at(hour, minute=0, day=10):
    """Naive wall-clock time on 2024-01-<day>; the test timezone is UTC."""
    return datetime(2024, 1, day, hour, minute)


def seed_reference_data():
    password_hash = generate_password_hash('password', method='pbkdf2:sha256')
    users = [
        User(id=ADMIN_ID, username='admin', email='admin@test.com', role=Role.ADMIN, password_hash=password_hash),
        User(id=STAFF_ID, username='prof', email='prof@test.com', role=Role.STAFF, password_hash=password_hash),
        User(id=MEMBER_ID, username='alice', email='alice@test.com', role=Role.MEMBER, password_hash=password_hash),
        User(id=OTHER_MEMBER_ID, username='bob', email='bob@test.com', role=Role.MEMBER, password_hash=password_hash),
        User(id=GUEST_ID, username='guest', email='guest@test.com', role=Role.GUEST, password_hash=password_hash),
    ]
    spaces = [
        Space(id=SPACE_ID, name='Lab 101', space_type='lab', location='Building A'),
        Space(id=OTHER_SPACE_ID, name='Room 7', space_type='classroom', location='Building B'),
    ]
    db.session.add_all(users + spaces + [Course(id=1, code='CS101', name='Intro to Programming')])
    db.session.commit()


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def init_data(app):
    seed_reference_data()


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database, so threads get their own connections."""
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'spacebooking.db'}"
        SPACE_LOCK_TIMEOUT = 10.0

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        seed_reference_data()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()
