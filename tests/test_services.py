import pytest

from conftest import auth_header
from app.models.all_models import UserRole


def service_payload(**overrides):
    payload = {
        "title": "Overnight CT Reads",
        "description": "Board-certified radiologists reading CT overnight.",
        "content": "<p>Full coverage from 6pm to 8am.</p>",
        "service_type": "teleradiology",
        "pricing": {"type": "per_study", "amount": 45, "currency": "USD"},
        "features": ["STAT reads under 30 minutes", "  "],
        "availability": {"hours": "24x7"},
        "turnaround_time": {"routine": 24, "stat": 1},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_service(client, editor_headers):
    def _create(**overrides):
        response = client.post("/api/services", json=service_payload(**overrides), headers=editor_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["service"]

    return _create


def test_create_service_stores_details(create_service):
    service = create_service()
    assert service["type"] == "service"
    assert service["status"] == "published"
    assert service["slug"] == "overnight-ct-reads"
    assert service["url"] == "/services/overnight-ct-reads"
    assert service["excerpt"] == "Board-certified radiologists reading CT overnight."

    details = service["service_details"]
    assert details["service_type"] == "teleradiology"
    assert details["pricing"] == {"type": "per_study", "amount": 45.0, "currency": "USD"}
    assert details["features"] == ["STAT reads under 30 minutes"]
    assert details["turnaround_time"]["urgent"] is None
    assert details["is_active"] is True


def test_create_service_requires_editor(client, user_headers):
    response = client.post("/api/services", json=service_payload(), headers=user_headers)
    assert response.status_code == 403


def test_create_service_validates_input(client, editor_headers):
    response = client.post(
        "/api/services",
        json=service_payload(service_type="xray_vision", pricing={"amount": -1}),
        headers=editor_headers,
    )
    assert response.status_code == 400
    details = response.json()["error"]["details"]
    assert "service_type" in details
    assert "pricing.amount" in details


def test_filter_by_price_range_type_and_search(client, create_service):
    create_service(title="Free Second Opinion", service_type="consultation", pricing={"amount": 0})
    create_service(title="PACS Bridge", service_type="pacs_integration", pricing={"amount": 350})
    create_service(title="Enterprise AI", service_type="ai_reporting", pricing={"amount": 5000},
                   features=["Critical finding triage"])

    def titles(query):
        response = client.get(f"/api/services?{query}")
        assert response.status_code == 200
        return [row["title"] for row in response.json()["data"]["services"]]

    assert titles("price_range=free") == ["Free Second Opinion"]
    assert titles("price_range=medium") == ["PACS Bridge"]
    assert titles("price_range=enterprise") == ["Enterprise AI"]
    assert titles("service_type=pacs_integration") == ["PACS Bridge"]
    assert titles("q=triage") == ["Enterprise AI"]
    assert titles("sort=-pricing.amount") == ["Enterprise AI", "PACS Bridge", "Free Second Opinion"]
    assert titles("sort=title") == ["Enterprise AI", "Free Second Opinion", "PACS Bridge"]


def test_invalid_service_sort(client):
    response = client.get("/api/services?sort=secret")
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid sort field: secret"


def test_get_service_with_related(client, create_service):
    main = create_service()
    for n in range(4):
        create_service(title=f"Related {n}")
    create_service(title="Other", service_type="consultation")

    response = client.get(f"/api/services/{main['id']}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["service"]["view_count"] == 1
    related = data["related_services"]
    assert len(related) == 3
    assert all(row["service_details"]["service_type"] == "teleradiology" for row in related)
    assert main["id"] not in {row["id"] for row in related}


def test_get_service_by_slug_and_missing(client, create_service):
    create_service()
    response = client.get("/api/services/slug/overnight-ct-reads")
    assert response.status_code == 200
    assert client.get("/api/services/slug/unknown").json()["error"]["message"] == "Service not found"


def test_types_and_featured(client, create_service):
    create_service(title="A", pricing={"amount": 40}, featured=True)
    create_service(title="B", pricing={"amount": 60})
    create_service(title="C", service_type="consultation", is_active=False, featured=True)

    types = client.get("/api/services/types").json()["data"]["types"]
    assert types == [{
        "service_type": "teleradiology",
        "count": 2,
        "min_price": 40.0,
        "max_price": 60.0,
        "avg_price": 50.0,
    }]

    featured = client.get("/api/services/featured").json()["data"]["services"]
    assert [row["title"] for row in featured] == ["A"]


def test_update_service_replaces_details(client, create_service, editor_headers):
    service = create_service()
    response = client.put(
        f"/api/services/{service['id']}",
        json=service_payload(title="Overnight CT and MR Reads", pricing={"amount": 55}),
        headers=editor_headers,
    )
    assert response.status_code == 200
    updated = response.json()["data"]["service"]
    assert updated["title"] == "Overnight CT and MR Reads"
    assert updated["slug"] == "overnight-ct-reads"
    assert updated["service_details"]["pricing"]["amount"] == 55.0


def test_toggle_active_by_author_or_admin(client, create_service, editor_headers, admin_headers, make_user):
    service = create_service()

    other_editor = make_user(UserRole.CMS_EDITOR)
    response = client.post(f"/api/services/{service['id']}/toggle-active", headers=auth_header(other_editor))
    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Not authorized to modify this service"

    response = client.post(f"/api/services/{service['id']}/toggle-active", headers=editor_headers)
    assert response.json()["message"] == "Service deactivated successfully"
    assert response.json()["data"]["service"]["is_active"] is False

    response = client.post(f"/api/services/{service['id']}/toggle-active", headers=admin_headers)
    assert response.json()["message"] == "Service activated successfully"

    assert client.get("/api/services?is_active=true").json()["data"]["pagination"]["total"] == 1


def test_service_stats_and_delete(client, create_service, editor_headers, admin_headers):
    service = create_service()
    stats = client.get("/api/services/stats/overview", headers=editor_headers).json()["data"]
    assert stats["overview"]["total_services"] == 1
    assert stats["services_by_type"][0]["avg_price"] == 45.0

    assert client.delete(f"/api/services/{service['id']}", headers=editor_headers).status_code == 403
    assert client.delete(f"/api/services/{service['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/services/{service['id']}").status_code == 404
