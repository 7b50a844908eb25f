"""Pytest configuration and shared fixtures."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from marketing_community.database import Base, get_db, make_engine
from marketing_community.models.audit import AuditLog
from marketing_community.models.domain import Activity, Notification, User
from marketing_community.models.permissions import Permission, Role, RolePermission, UserRole
from marketing_community.services.permissions import PermissionsService


@pytest.fixture
def engine():
    # In-memory SQLite shared across sessions for fast tests
    engine = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session(engine):
    """Create a fresh in-memory database for each test."""
    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def make_user(db_session):
    """Factory for community members."""
    counter = {"n": 0}

    def _make_user(points=0, is_admin=False, is_active=True, **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=fields.pop("email", f"member{n}@example.com"),
            name=fields.pop("name", f"회원{n}"),
            nickname=fields.pop("nickname", f"member{n}"),
            points=points,
            is_admin=is_admin,
            is_active=is_active,
            **fields
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def sample_user(make_user):
    """A regular member with 100 points."""
    return make_user(points=100)


@pytest.fixture
def admin_user(make_user):
    """A legacy admin (is_admin flag set, no role assignment)."""
    return make_user(is_admin=True, email="admin@example.com", name="관리자")


@pytest.fixture
def seeded_permissions(db_session):
    """Permission catalog, roles and role links seeded."""
    PermissionsService(db_session).initialize_permissions()
    return db_session


@pytest.fixture
def client(engine, db_session):
    """TestClient bound to the test database."""
    from marketing_community.main import app

    TestingSessionLocal = sessionmaker(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
