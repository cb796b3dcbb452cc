from datetime import timedelta

import pytest

from app.models.all_models import Content, ContentStatus, ContentType, local_now


@pytest.fixture
def create_content(client, editor_headers):
    def _create(**overrides):
        payload = {
            "title": "AI Triage for Stroke CT",
            "type": "blog_post",
            "content": "<p>" + " ".join(["scan"] * 450) + "</p>",
        }
        payload.update(overrides)
        response = client.post("/api/cms/content", json=payload, headers=editor_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["content"]

    return _create


def test_create_derives_slug_excerpt_and_seo(create_content, editor):
    content = create_content()
    assert content["slug"] == "ai-triage-for-stroke-ct"
    assert content["status"] == "draft"
    assert content["published_at"] is None
    assert content["excerpt"].endswith("...")
    assert content["seo"]["meta_title"] == "AI Triage for Stroke CT"
    assert len(content["seo"]["meta_description"]) == 160
    assert content["reading_time"] == 3
    assert content["url"] == "/blog/ai-triage-for-stroke-ct"
    assert content["author"]["id"] == str(editor.id)
    assert content["version"] == 1


def test_duplicate_slug_is_rejected(client, create_content, editor_headers):
    create_content(slug="stroke-ct")
    response = client.post(
        "/api/cms/content",
        json={"title": "Another", "slug": "stroke-ct", "type": "news"},
        headers=editor_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Content with this slug already exists"


def test_plain_user_cannot_create_content(client, user_headers):
    response = client.post("/api/cms/content", json={"title": "Nope", "type": "page"}, headers=user_headers)
    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Insufficient permissions."


def test_publish_keeps_original_published_at(client, db, create_content, editor_headers):
    content = create_content(status="published")
    first_published = content["published_at"]
    assert first_published is not None

    client.post(f"/api/cms/content/{content['id']}/unpublish", headers=editor_headers)
    response = client.post(f"/api/cms/content/{content['id']}/publish", headers=editor_headers)
    assert response.status_code == 200
    republished = response.json()["data"]["content"]
    assert republished["status"] == "published"
    assert republished["published_at"] == first_published


def test_unpublished_content_is_hidden_from_public(client, create_content, editor_headers, user_headers):
    content = create_content()
    assert client.get(f"/api/cms/content/{content['id']}").status_code == 403
    assert client.get(f"/api/cms/content/{content['id']}", headers=user_headers).status_code == 403

    response = client.get(f"/api/cms/content/{content['id']}", headers=editor_headers)
    assert response.status_code == 200
    assert response.json()["data"]["content"]["view_count"] == 1


def test_update_snapshots_previous_version(client, create_content, editor, editor_headers):
    content = create_content()
    response = client.put(
        f"/api/cms/content/{content['id']}",
        json={"title": "Stroke CT, revisited", "seo": {"keywords": ["stroke"]}},
        headers=editor_headers,
    )
    assert response.status_code == 200
    updated = response.json()["data"]["content"]
    assert updated["version"] == 2
    assert updated["title"] == "Stroke CT, revisited"
    assert updated["slug"] == content["slug"]
    assert updated["seo"]["keywords"] == ["stroke"]

    snapshot = updated["previous_versions"][0]
    assert snapshot["version"] == 1
    assert snapshot["title"] == "AI Triage for Stroke CT"
    assert snapshot["modified_by"] == str(editor.id)


def test_future_schedule_forces_draft(create_content):
    later = (local_now() + timedelta(days=2)).isoformat()
    content = create_content(status="published", scheduled_at=later)
    assert content["status"] == "draft"
    assert content["published_at"] is None


def test_past_schedule_publishes_on_save(db, editor):
    content = Content(
        title="Overnight coverage launch",
        type=ContentType.NEWS,
        scheduled_at=local_now() - timedelta(minutes=5),
        author_id=editor.id,
    )
    db.add(content)
    db.commit()

    assert content.slug == "overnight-coverage-launch"
    assert content.status == ContentStatus.PUBLISHED
    assert content.published_at is not None


def test_public_listing_filters_and_slug_lookup(client, create_content):
    create_content(title="MRI Protocols", status="published", tags=["MRI", "Neuro"], category="Guides")
    create_content(title="Chest X-ray Basics", status="published", tags=["xray"], category="Guides")
    create_content(title="Draft Only")

    response = client.get("/api/cms/content/published?tag=mri")
    titles = [row["title"] for row in response.json()["data"]["content"]]
    assert titles == ["MRI Protocols"]

    response = client.get("/api/cms/content/published?q=chest")
    assert [row["title"] for row in response.json()["data"]["content"]] == ["Chest X-ray Basics"]

    response = client.get("/api/cms/content/published")
    assert response.json()["data"]["pagination"]["total"] == 2

    response = client.get("/api/cms/content/slug/mri-protocols")
    assert response.status_code == 200
    assert response.json()["data"]["content"]["tags"] == ["mri", "neuro"]
    assert client.get("/api/cms/content/slug/draft-only").status_code == 404

    categories = client.get("/api/cms/categories").json()["data"]["categories"]
    assert categories == [{"name": "Guides", "count": 2}]

    tags = {tag["name"]: tag["count"] for tag in client.get("/api/cms/tags").json()["data"]["tags"]}
    assert tags == {"mri": 1, "neuro": 1, "xray": 1}


def test_featured_content(client, create_content):
    create_content(title="Featured", status="published", featured=True, priority=5)
    create_content(title="Plain", status="published")
    response = client.get("/api/cms/content/featured")
    assert [row["title"] for row in response.json()["data"]["content"]] == ["Featured"]


def test_editor_listing_and_analytics(client, create_content, editor_headers, user_headers):
    create_content(title="One", status="published", type="page")
    create_content(title="Two", type="faq")

    assert client.get("/api/cms/content", headers=user_headers).status_code == 403

    response = client.get("/api/cms/content?status=draft", headers=editor_headers)
    assert [row["title"] for row in response.json()["data"]["content"]] == ["Two"]

    response = client.get("/api/cms/analytics", headers=editor_headers)
    assert response.status_code == 200
    overview = response.json()["data"]["overview"]
    assert overview["total_content"] == 2
    assert overview["published"] == 1
    assert overview["drafts"] == 1


def test_delete_content_is_admin_only(client, create_content, editor_headers, admin_headers):
    content = create_content()
    assert client.delete(f"/api/cms/content/{content['id']}", headers=editor_headers).status_code == 403
    assert client.delete(f"/api/cms/content/{content['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/cms/content/{content['id']}", headers=admin_headers).status_code == 404
