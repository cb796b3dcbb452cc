from datetime import timedelta

from conftest import PASSWORD, auth_header
from app.models.all_models import User, UserRole, local_now
from app.utils.auth import create_access_token, create_refresh_token, generate_reset_token


def register(client, **overrides):
    payload = {
        "first_name": "Ada",
        "last_name": "Okafor",
        "email": "ada@teleradiology.io",
        "password": PASSWORD,
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_register_returns_user_and_tokens(client, db):
    response = register(client, email="Ada@Teleradiology.io")
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "ada@teleradiology.io"
    assert body["data"]["user"]["role"] == "user"
    assert body["data"]["user"]["is_verified"] is False
    assert body["data"]["token"]
    assert body["data"]["refresh_token"]
    assert "password" not in body["data"]["user"]

    user = db.query(User).filter(User.email == "ada@teleradiology.io").one()
    assert user.password != PASSWORD
    assert user.verification_token


def test_register_duplicate_email(client):
    register(client)
    response = register(client)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "User with this email already exists"


def test_register_rejects_privileged_role_and_weak_password(client):
    response = register(client, role="admin", password="password")
    assert response.status_code == 400
    details = response.json()["error"]["details"]
    assert "role" in details
    assert "password" in details


def test_login_and_me(client, member):
    response = client.post("/api/auth/login", json={"email": member.email, "password": PASSWORD})
    assert response.status_code == 200
    token = response.json()["data"]["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["user"]["id"] == str(member.id)


def test_login_locks_account_after_five_failures(client, db, member):
    for _ in range(5):
        response = client.post("/api/auth/login", json={"email": member.email, "password": "Wrong0ne!"})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid login credentials"

    response = client.post("/api/auth/login", json={"email": member.email, "password": PASSWORD})
    assert response.status_code == 401
    assert "locked" in response.json()["error"]["message"]

    db.refresh(member)
    assert member.login_attempts == 5
    assert member.lock_until > local_now()


def test_login_resets_attempts_on_success(client, db, member):
    client.post("/api/auth/login", json={"email": member.email, "password": "Wrong0ne!"})
    response = client.post("/api/auth/login", json={"email": member.email, "password": PASSWORD})
    assert response.status_code == 200

    db.refresh(member)
    assert member.login_attempts == 0
    assert member.last_login is not None


def test_deactivated_account_cannot_login(client, make_user):
    user = make_user(is_active=False)
    response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Account is deactivated"


def test_missing_and_expired_tokens(client, member):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Access denied. No token provided."

    expired = create_access_token({"sub": str(member.id)}, expires_delta=timedelta(seconds=-10))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Token has expired."


def test_refresh_token_cannot_be_used_as_access_token(client, member):
    refresh = create_refresh_token({"sub": str(member.id)})
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh}"})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid token."


def test_refresh_issues_new_pair(client, member):
    refresh = create_refresh_token({"sub": str(member.id)})
    response = client.post("/api/auth/refresh", json={"refresh_token": refresh})
    assert response.status_code == 200
    assert set(response.json()["data"]) == {"token", "refresh_token"}

    response = client.post("/api/auth/refresh", json={"refresh_token": "garbage"})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid refresh token"

    response = client.post("/api/auth/refresh", json={})
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Refresh token is required"


def test_forgot_password_does_not_reveal_accounts(client, db, member):
    known = client.post("/api/auth/forgot-password", json={"email": member.email})
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@teleradiology.io"})
    assert known.status_code == unknown.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]

    db.refresh(member)
    assert member.reset_password_token
    assert member.reset_password_expires > local_now()


def test_reset_password_with_token(client, db, member):
    token, digest = generate_reset_token()
    member.reset_password_token = digest
    member.reset_password_expires = local_now() + timedelta(minutes=10)
    member.login_attempts = 3
    db.commit()

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "N3wPass!word"})
    assert response.status_code == 200

    response = client.post("/api/auth/login", json={"email": member.email, "password": "N3wPass!word"})
    assert response.status_code == 200

    response = client.post("/api/auth/reset-password", json={"token": token, "password": "N3wPass!word"})
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid or expired reset token"


def test_change_password_requires_current(client, member):
    headers = auth_header(member)
    response = client.post(
        "/api/auth/change-password",
        json={"current_password": "Wrong0ne!", "new_password": "N3wPass!word"},
        headers=headers,
    )
    assert response.status_code == 400

    response = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "N3wPass!word"},
        headers=headers,
    )
    assert response.status_code == 200


def test_verify_email(client, db, make_user):
    user = make_user(is_verified=False)
    token = user.generate_verification_token()
    db.commit()

    response = client.post("/api/auth/verify-email", json={"token": token})
    assert response.status_code == 200

    db.refresh(user)
    assert user.is_verified is True
    assert user.verification_token is None

    response = client.post("/api/auth/resend-verification", headers=auth_header(user))
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Email is already verified"


def test_resend_verification_requires_login(client, db, make_user):
    assert client.post("/api/auth/resend-verification").status_code == 401

    user = make_user(is_verified=False)
    response = client.post("/api/auth/resend-verification", headers=auth_header(user))
    assert response.status_code == 200
    assert response.json()["message"] == "Verification email sent"

    db.refresh(user)
    assert user.verification_token is not None


def test_logout(client, member):
    response = client.post("/api/auth/logout", headers=auth_header(member))
    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully"


def test_radiologist_can_self_register(client):
    response = register(client, email="rad@teleradiology.io", role=UserRole.RADIOLOGIST.value)
    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "radiologist"
