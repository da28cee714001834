from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient
from jose import jwt

from invoicegen.core.deps import get_google_verifier
from invoicegen.core.security import create_email_verification_token, create_password_reset_token
from invoicegen.main import create_app
from invoicegen.models.user import User
from invoicegen.services.google_auth import GoogleAuthError, GoogleIdentity

from conftest import auth_headers, make_settings


def _login(client, email, password):
    return client.post("/api/auth/login", data={"username": email, "password": password})


def test_register_creates_unverified_user(client, db):
    response = client.post("/api/auth/register", json={"email": "New@Example.com", "password": "password123"})
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["emailVerified"] is False
    assert data["settings"]["sender"]["name"] == ""
    assert "hashedPassword" not in data
    assert db.query(User).filter(User.email == "new@example.com").one()


def test_register_auto_verifies_when_configured(database):
    app = create_app(settings=make_settings(auto_verify_email=True), database=database)
    with TestClient(app) as client:
        response = client.post("/api/auth/register", json={"email": "auto@example.com", "password": "password123"})
    assert response.status_code == 201
    assert response.json()["emailVerified"] is True


def test_register_rejects_duplicates_and_bad_input(client, user):
    response = client.post("/api/auth/register", json={"email": user.email, "password": "password123"})
    assert response.status_code == 400

    assert client.post("/api/auth/register", json={"email": "nope", "password": "password123"}).status_code == 422
    assert client.post("/api/auth/register", json={"email": "a@b.co", "password": "short"}).status_code == 422


def test_login_returns_token_and_user(client, user):
    response = _login(client, user.email, "password123")
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == user.id

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert profile.status_code == 200
    assert profile.json()["email"] == user.email


def test_login_rejects_wrong_password(client, user):
    response = _login(client, user.email, "wrong-password")
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_verify_email(client, make_user, app_settings):
    pending = make_user(email="pending@example.com", verified=False)
    token = create_email_verification_token(pending.id, config=app_settings)

    response = client.get(f"/api/auth/verify-email/{token}")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Email verified successfully"}

    assert client.get(f"/api/auth/verify-email/{token}").status_code == 400


def test_verify_email_rejects_other_token_purposes(client, user, app_settings):
    reset_token = create_password_reset_token(user.id, config=app_settings)
    assert client.get(f"/api/auth/verify-email/{reset_token}").status_code == 400
    assert client.get("/api/auth/verify-email/not-a-token").status_code == 400


def test_purpose_tokens_are_not_access_tokens(client, user, app_settings):
    token = create_email_verification_token(user.id, config=app_settings)
    response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_forgot_and_reset_password(client, user):
    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200
    reset_link = response.json()["resetLink"]
    assert reset_link.startswith("http://localhost:3000/reset-password?token=")
    token = parse_qs(urlparse(reset_link).query)["token"][0]

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "new-password-1"})
    assert response.status_code == 200

    assert _login(client, user.email, "password123").status_code == 401
    assert _login(client, user.email, "new-password-1").status_code == 200


def test_forgot_password_does_not_reveal_unknown_accounts(client):
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    data = response.json()
    assert data["message"].startswith("If your email is registered")
    assert data["resetLink"] is None


def test_reset_password_rejects_access_token(client, user):
    token = auth_headers(user)["Authorization"].split()[1]
    response = client.post("/api/auth/reset-password", json={"token": token, "password": "new-password-1"})
    assert response.status_code == 400


def test_google_login_creates_verified_user(app, client, db):
    identity = GoogleIdentity(subject="g-123", email="gina@example.com", email_verified=True, name="Gina")
    app.dependency_overrides[get_google_verifier] = lambda: (lambda token: identity)

    response = client.post("/api/auth/google", json={"idToken": "google-token"})
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["user"]["emailVerified"] is True
    assert data["user"]["name"] == "Gina"

    again = client.post("/api/auth/google", json={"idToken": "google-token"})
    assert again.json()["user"]["id"] == data["user"]["id"]
    assert db.query(User).filter(User.email == "gina@example.com").count() == 1


def test_google_login_links_existing_account(app, client, user):
    identity = GoogleIdentity(subject="g-456", email=user.email, email_verified=True)
    app.dependency_overrides[get_google_verifier] = lambda: (lambda token: identity)

    response = client.post("/api/auth/google", json={"idToken": "google-token"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user.id


def test_google_login_rejects_invalid_token(app, client):
    def reject(token):
        raise GoogleAuthError("bad token")

    app.dependency_overrides[get_google_verifier] = lambda: reject
    response = client.post("/api/auth/google", json={"idToken": "forged"})
    assert response.status_code == 401


def test_google_login_rejects_unverified_google_email(app, client, user, db):
    identity = GoogleIdentity(subject="g-789", email=user.email, email_verified=False)
    app.dependency_overrides[get_google_verifier] = lambda: (lambda token: identity)

    response = client.post("/api/auth/google", json={"idToken": "google-token"})
    assert response.status_code == 401
    assert "access_token" not in response.json()
    db.refresh(user)
    assert user.google_id is None


def test_google_login_rejects_second_google_account_for_linked_email(app, client, db):
    first = GoogleIdentity(subject="g-1", email="linked@example.com", email_verified=True)
    second = GoogleIdentity(subject="g-2", email="linked@example.com", email_verified=True)

    app.dependency_overrides[get_google_verifier] = lambda: (lambda token: first)
    assert client.post("/api/auth/google", json={"idToken": "one"}).status_code == 200

    app.dependency_overrides[get_google_verifier] = lambda: (lambda token: second)
    assert client.post("/api/auth/google", json={"idToken": "two"}).status_code == 401


def test_tokens_use_the_app_settings_secret(database, make_user):
    app_settings = make_settings(jwt_secret="injected-secret")
    app = create_app(settings=app_settings, database=database)
    owner = make_user(email="signer@example.com")

    with TestClient(app) as client:
        response = _login(client, owner.email, "password123")
        assert response.status_code == 200
        token = response.json()["access_token"]
        assert jwt.decode(token, "injected-secret", algorithms=["HS256"])["sub"] == owner.id

        assert client.get("/api/auth/profile", headers=auth_headers(owner, app_settings)).status_code == 200
        assert client.get("/api/auth/profile", headers=auth_headers(owner, make_settings())).status_code == 401
