from datetime import timedelta

import pytest

from conftest import auth_header
from app.models.all_models import Contact, local_now


def contact_payload(**overrides):
    payload = {
        "first_name": "Maya",
        "last_name": "Chen",
        "email": "Maya.Chen@RiversideImaging.org",
        "phone": "+14155550123",
        "company": "Riverside Imaging",
        "inquiry_type": "demo_request",
        "subject": "Demo of overnight coverage",
        "message": "We would like to see how your AI triage integrates with our PACS.",
        "services_of_interest": ["teleradiology", "pacs_integration"],
        "gdpr_consent": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def submit(client):
    def _submit(**overrides):
        response = client.post("/api/contact", json=contact_payload(**overrides))
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _submit


def test_submission_sets_priority_and_consent(client, db):
    response = client.post("/api/contact", json=contact_payload())
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Thank you for your inquiry. We will get back to you soon."
    assert body["data"]["status"] == "new"
    assert body["data"]["priority"] == "medium"

    contact = db.query(Contact).one()
    assert contact.email == "maya.chen@riversideimaging.org"
    assert contact.consent_given is True
    assert contact.consent_date is not None
    assert contact.data_retention_date > local_now() + timedelta(days=700)
    assert contact.services_of_interest == ["teleradiology", "pacs_integration"]
    assert contact.spam_score == 0


def test_submission_requires_gdpr_consent(client):
    response = client.post("/api/contact", json=contact_payload(gdpr_consent=False))
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "GDPR consent is required to process your request"


def test_submission_validates_fields(client):
    response = client.post("/api/contact", json=contact_payload(phone="call me", message="short"))
    assert response.status_code == 400
    details = response.json()["error"]["details"]
    assert set(details) >= {"phone", "message"}


def test_spam_keywords_flag_submission(client, db, submit):
    data = submit(message="You are a WINNER of our casino lottery, reply today")
    assert data["status"] == "spam"

    contact = db.query(Contact).one()
    assert contact.is_spam is True
    assert contact.spam_score == 60


def test_link_stuffing_is_spam(submit):
    links = " ".join(f"https://promo{n}.io" for n in range(4))
    assert submit(message=f"Check these offers {links}")["status"] == "spam"


def test_heuristic_flag_raises_spam_score(db, submit):
    data = submit(message="Please click here for an exclusive offer on reads.")
    assert data["status"] == "spam"

    contact = db.query(Contact).one()
    assert contact.is_spam is True
    assert contact.spam_score >= 50


def test_only_message_changes_rescore(client, db, submit):
    submit()
    contact = db.query(Contact).one()
    assert contact.spam_score == 0

    contact.subject = "Casino lottery winner"
    db.commit()
    db.refresh(contact)
    assert contact.spam_score == 0
    assert contact.is_spam is False

    contact.message = "Congratulations winner, claim your casino lottery prize"
    db.commit()
    db.refresh(contact)
    assert contact.spam_score == 80
    assert contact.is_spam is True


def test_technical_support_is_high_priority(submit):
    assert submit(inquiry_type="technical_support")["priority"] == "high"


def test_signed_in_submitter_is_linked(client, db, member):
    response = client.post("/api/contact", json=contact_payload(), headers=auth_header(member))
    assert response.status_code == 201
    assert db.query(Contact).one().user_id == member.id


def test_inbox_is_editor_only(client, submit, user_headers, editor_headers):
    submit()
    submit(first_name="Omar", email="omar@clinic.io", inquiry_type="pricing")

    assert client.get("/api/contact", headers=user_headers).status_code == 403

    response = client.get("/api/contact?q=omar", headers=editor_headers)
    contacts = response.json()["data"]["contacts"]
    assert [c["full_name"] for c in contacts] == ["Omar Chen"]

    response = client.get("/api/contact?priority=low", headers=editor_headers)
    assert response.json()["data"]["pagination"]["total"] == 1


def test_status_change_stamps_response_and_resolution(client, submit, editor, editor_headers):
    contact_id = submit()["id"]

    response = client.put(f"/api/contact/{contact_id}", json={"status": "in_progress"}, headers=editor_headers)
    contact = response.json()["data"]["contact"]
    assert contact["responded_at"] is not None
    first_response = contact["responded_at"]

    response = client.put(
        f"/api/contact/{contact_id}",
        json={"status": "resolved", "resolution": "Demo booked for Tuesday", "internal_note": "Warm lead"},
        headers=editor_headers,
    )
    contact = response.json()["data"]["contact"]
    assert contact["status"] == "resolved"
    assert contact["responded_at"] == first_response
    assert contact["resolved_at"] is not None
    assert contact["resolved_by"] == str(editor.id)
    assert contact["resolution"]["summary"] == "Demo booked for Tuesday"
    assert contact["internal_notes"][0]["note"] == "Warm lead"


def test_assignment_moves_new_contact_in_progress(client, submit, editor_headers, radiologist):
    contact_id = submit()["id"]
    response = client.put(
        f"/api/contact/{contact_id}",
        json={"assigned_to": str(radiologist.id)},
        headers=editor_headers,
    )
    contact = response.json()["data"]["contact"]
    assert contact["status"] == "in_progress"
    assert contact["assignee"]["id"] == str(radiologist.id)
    assert contact["assigned_at"] is not None

    response = client.put(
        f"/api/contact/{contact_id}",
        json={"assigned_to": "00000000-0000-0000-0000-000000000000"},
        headers=editor_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Assigned user not found"


def test_staff_can_clear_spam_flag(client, db, submit, editor_headers):
    contact_id = submit(message="Congratulations winner, the lottery casino awaits you")["id"]

    response = client.put(f"/api/contact/{contact_id}", json={"status": "in_progress"}, headers=editor_headers)
    contact = response.json()["data"]["contact"]
    assert contact["status"] == "in_progress"
    assert contact["is_spam"] is False


def test_follow_up_and_stats(client, submit, editor_headers):
    contact_id = submit()["id"]
    submit(message="Buy now, click here for free money!!")

    due = (local_now() - timedelta(hours=1)).isoformat()
    response = client.post(
        f"/api/contact/{contact_id}/follow-up",
        json={"type": "phone", "notes": "Left a voicemail", "scheduled_for": due},
        headers=editor_headers,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Follow-up added successfully"
    contact = response.json()["data"]["contact"]
    assert contact["follow_ups"][0]["type"] == "phone"
    assert contact["follow_up_notes"] == "Left a voicemail"

    response = client.get("/api/contact/stats/overview", headers=editor_headers)
    data = response.json()["data"]
    assert data["overview"]["total_contacts"] == 2
    assert data["overview"]["spam_contacts"] == 1
    assert data["overview"]["follow_ups_due"] == 1
    assert data["contacts_by_type"] == {"demo_request": 2}


def test_missing_contact_and_admin_delete(client, submit, editor_headers, admin_headers):
    missing = "00000000-0000-0000-0000-000000000000"
    response = client.get(f"/api/contact/{missing}", headers=editor_headers)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Contact submission not found"

    contact_id = submit()["id"]
    assert client.delete(f"/api/contact/{contact_id}", headers=editor_headers).status_code == 403
    assert client.delete(f"/api/contact/{contact_id}", headers=admin_headers).status_code == 200
