from conftest import auth_header
from app.models.all_models import DEFAULT_PREFERENCES, User


def test_list_users_is_admin_only(client, admin_headers, user_headers, make_user):
    make_user(first_name="Grace", institution="St. Mary Imaging")
    response = client.get("/api/users", headers=user_headers)
    assert response.status_code == 403

    response = client.get("/api/users?q=mary", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [u["first_name"] for u in data["users"]] == ["Grace"]
    assert data["pagination"]["total"] == 1


def test_list_users_filters_by_role(client, admin_headers, radiologist):
    response = client.get("/api/users?role=radiologist", headers=admin_headers)
    users = response.json()["data"]["users"]
    assert [u["id"] for u in users] == [str(radiologist.id)]


def test_profile_update(client, member):
    response = client.put(
        "/api/users/profile",
        json={"institution": "Lagos Diagnostics", "phone": "+2348000000000"},
        headers=auth_header(member),
    )
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["institution"] == "Lagos Diagnostics"
    assert user["role"] == "user"


def test_null_profile_fields_keep_required_values(client, admin_headers, member):
    response = client.put(
        "/api/users/profile",
        json={"first_name": None, "institution": None},
        headers=auth_header(member),
    )
    assert response.status_code == 200
    assert response.json()["data"]["user"]["first_name"] == member.first_name

    response = client.put(
        f"/api/users/{member.id}",
        json={"role": None, "is_active": None, "is_verified": None},
        headers=admin_headers,
    )
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["role"] == "user"
    assert user["is_active"] is True


def test_user_can_only_read_own_record(client, member, radiologist, admin_headers):
    assert client.get(f"/api/users/{member.id}", headers=auth_header(member)).status_code == 200

    response = client.get(f"/api/users/{radiologist.id}", headers=auth_header(member))
    assert response.status_code == 403

    assert client.get(f"/api/users/{radiologist.id}", headers=admin_headers).status_code == 200


def test_admin_update_rejects_taken_email(client, admin_headers, member, radiologist):
    response = client.put(
        f"/api/users/{member.id}",
        json={"email": radiologist.email.upper()},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Email already in use"

    response = client.put(f"/api/users/{member.id}", json={"role": "cms_editor"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["user"]["role"] == "cms_editor"


def test_admin_cannot_delete_or_deactivate_self(client, admin, admin_headers):
    response = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot delete your own account"

    response = client.post(f"/api/users/{admin.id}/deactivate", headers=admin_headers)
    assert response.status_code == 400


def test_deactivated_user_token_is_rejected(client, admin_headers, member):
    headers = auth_header(member)
    response = client.post(f"/api/users/{member.id}/deactivate", headers=admin_headers)
    assert response.json()["data"]["user"]["is_active"] is False

    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Account has been deactivated."


def test_verify_and_reset_login_attempts(client, db, admin_headers, make_user):
    user = make_user(is_verified=False, login_attempts=4)
    response = client.post(f"/api/users/{user.id}/verify", headers=admin_headers)
    assert response.json()["data"]["user"]["is_verified"] is True

    response = client.post(f"/api/users/{user.id}/reset-login-attempts", headers=admin_headers)
    assert response.json()["data"]["user"]["login_attempts"] == 0


def test_delete_user(client, admin_headers, member):
    response = client.delete(f"/api/users/{member.id}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/users/{member.id}", headers=admin_headers).status_code == 404


def test_user_stats(client, admin_headers, member, radiologist):
    response = client.get("/api/users/stats/overview", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["overview"]["total_users"] == 3
    roles = {row["role"]: row["count"] for row in data["users_by_role"]}
    assert roles == {"admin": 1, "user": 1, "radiologist": 1}


def test_default_preferences_are_not_shared():
    make_default = User.__table__.c.preferences.default.arg
    first, second = make_default(None), make_default(None)
    first["notifications"]["email"] = False

    assert second["notifications"]["email"] is True
    assert DEFAULT_PREFERENCES["notifications"]["email"] is True
