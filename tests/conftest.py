"""Shared fixtures for API tests.

- One in-memory SQLite database (StaticPool) bound to the app's session factory.
- Schema created and dropped around every test.
- One seeded user per role of interest, plus a small reporting tree:
  manager -> employee, developer; manager2 -> employee2.
- All HTTP calls go through FastAPI's TestClient.
"""
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app import database
from app.core.security import create_access_token, get_password_hash
from app.main import app
from app.models.models import User

TEST_PASSWORD = "secret123"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
database.SessionLocal.configure(bind=test_engine)

# name -> (role, manager name)
SEED_USERS = {
    "superadmin": ("Super Admin", None),
    "admin": ("Admin", None),
    "hr": ("HR", None),
    "manager": ("Manager", None),
    "manager2": ("Manager", None),
    "employee": ("Employee", "manager"),
    "developer": ("Backend Developer", "manager"),
    "employee2": ("Employee", "manager2"),
}


@pytest.fixture(scope="session")
def password_hash() -> str:
    # bcrypt is slow; hash once per session
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def schema():
    database.Base.metadata.create_all(bind=test_engine)
    try:
        yield
    finally:
        database.Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db, password_hash) -> Dict[str, User]:
    created: Dict[str, User] = {}
    for name, (role, _) in SEED_USERS.items():
        user = User(
            name=name.title(),
            email=f"{name}@example.com",
            password=password_hash,
            role=role,
            department="Engineering" if name in ("manager", "employee", "developer") else "Operations",
            is_active=True,
        )
        db.add(user)
        created[name] = user
    db.flush()
    for name, (_, manager_name) in SEED_USERS.items():
        if manager_name:
            created[name].manager_id = created[manager_name].id
    db.commit()
    for user in created.values():
        db.refresh(user)
    return created


@pytest.fixture
def headers(users) -> Callable[[str], Dict[str, str]]:
    def _headers(name: str) -> Dict[str, str]:
        user = users[name]
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)
