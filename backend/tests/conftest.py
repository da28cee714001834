from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from invoicegen.core.security import create_access_token, get_password_hash
from invoicegen.core.settings import Settings
from invoicegen.db.session import Database
from invoicegen.main import create_app
from invoicegen.models.user import User, default_user_settings


def make_settings(**overrides) -> Settings:
    values = {
        "db_connect_retries": 1,
        "db_connect_retry_delay": 0,
        "email_provider": "disabled",
        "require_verified_email": True,
        "auto_verify_email": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def database():
    database = Database("sqlite+pysqlite://")
    database.create_all()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture()
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def app_settings():
    return make_settings()


@pytest.fixture()
def app(app_settings, database):
    return create_app(settings=app_settings, database=database)


@pytest.fixture()
def client(app):
    with TestClient(app) as client_instance:
        yield client_instance


def add_user(db, *, email: str = "owner@example.com", password: str = "password123", verified: bool = True) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        email_verified=verified,
        settings=default_user_settings(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User, config: Settings | None = None) -> dict[str, str]:
    token = create_access_token({"sub": user.id}, config=config or make_settings())
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def user(db):
    return add_user(db)


@pytest.fixture()
def headers(user, app_settings):
    return auth_headers(user, app_settings)


@pytest.fixture()
def make_user(db):
    def _make(**kwargs) -> User:
        return add_user(db, **kwargs)

    return _make
