from fastapi.testclient import TestClient

from app.utils.pagination import pagination_meta
from main import app


def test_root_redirects_to_docs(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code in (302, 307)
    assert response.headers["location"] == "/api-docs"


def test_health_reports_database(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["database"] == "connected"
    assert "timestamp" in body


def test_api_info_lists_endpoints(client):
    response = client.get("/api")
    assert response.status_code == 200
    endpoints = response.json()["endpoints"]
    assert endpoints["sales_leads"] == "/api/sales-leads"
    assert endpoints["radiologist_applications"] == "/api/radiologist-applications"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": {"message": "Not Found - /api/nope"}}


def test_validation_errors_are_400_with_field_details(client):
    response = client.post("/api/auth/login", json={"email": "not-an-email"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["message"] == "Validation failed"
    assert "email" in error["details"]
    assert "password" in error["details"]


def test_pagination_meta():
    assert pagination_meta(25, 2, 10) == {
        "current": 2,
        "pages": 3,
        "total": 25,
        "limit": 10,
        "has_next": True,
        "has_prev": True,
    }
    assert pagination_meta(0, 1, 10)["pages"] == 0


def test_invalid_sort_field_is_rejected(client, admin_headers):
    response = client.get("/api/users?sort=-password", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid sort field: password"


def test_unhandled_errors_return_500_envelope(client, monkeypatch):
    import main

    def broken(db):
        raise RuntimeError("boom")

    monkeypatch.setattr(main, "check_db_connection", broken)
    response = TestClient(app, raise_server_exceptions=False).get("/health")
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["message"] == "Internal Server Error"
    assert "stack" in body["error"]
