"""Shared fixtures for the campus access test suite."""
import pytest
from flask_jwt_extended import create_access_token
from redis.exceptions import ConnectionError as RedisConnectionError

from campus_access import create_app, db
from campus_access.models.student import School, Student
from campus_access.models.user import User, UserRole


class FakeRedis:
    """In-memory stand-in for the few Redis commands the pass cache uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis unavailable")

    def get(self, key):
        self._check()
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def fake_redis(app):
    """Swap the disabled cache backend for an in-memory one."""
    client = FakeRedis()
    app.extensions['campus_access'].cache.client = client
    return client


@pytest.fixture
def services(app, fake_redis):
    return app.extensions['campus_access']


@pytest.fixture
def school(app):
    return School(name='North Campus', code='NC').save()


@pytest.fixture
def other_school(app):
    return School(name='South Campus', code='SC').save()


@pytest.fixture
def student(school):
    return Student(
        school_id=school.id,
        student_number='NC0001',
        full_name='Ada Student'
    ).save()


@pytest.fixture
def second_student(school):
    return Student(
        school_id=school.id,
        student_number='NC0002',
        full_name='Grace Student'
    ).save()


def make_user(email, role, school=None, student=None):
    user = User(
        email=email,
        name=email.split('@')[0].title(),
        role=role,
        school_id=school.id if school else None,
        student_id=student.id if student else None
    )
    user.set_password('password123')
    return user.save()


def auth_headers(user):
    token = create_access_token(identity=str(user.id))
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin(app):
    return make_user('admin@example.com', UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def security_user(school):
    return make_user('guard@example.com', UserRole.SECURITY, school=school)


@pytest.fixture
def security_headers(security_user):
    return auth_headers(security_user)


@pytest.fixture
def staff_headers(school):
    return auth_headers(make_user('staff@example.com', UserRole.STAFF, school=school))


@pytest.fixture
def issued_pass(services, student, admin):
    """An active pass issued just now."""
    record, error = services.pass_service.issue_pass(student.id, issued_by_id=admin.id)
    assert error is None
    return record


@pytest.fixture
def user_headers(app):
    """Create a user with the given role and return auth headers for it."""
    def factory(email, role, school=None, student=None):
        return auth_headers(make_user(email, role, school=school, student=student))
    return factory
