import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.all_models import (
    Contact, ContactStatus, ContactPriority, InquiryType, ContactSource, User,
    local_now, to_local_naive
)
from app.routes.contact.schemas import ContactCreate, ContactUpdate, FollowUpCreate, ContactResponse
from app.utils.auth import get_optional_user, require_admin, require_editor
from app.utils.email import send_contact_confirmation
from app.utils.pagination import PageParams, paginate, apply_sort, apply_search, apply_date_range
from app.utils.rate_limit import limiter, CONTACT_LIMIT
from app.utils.scoring import SPAM_THRESHOLD, detect_spam, priority_for_inquiry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["contact"])

CONTACT_SORT_FIELDS = {"created_at", "updated_at", "priority", "status"}
CLOSING_STATUSES = (ContactStatus.RESOLVED, ContactStatus.CLOSED)

def _get_contact_or_404(db: Session, contact_id: UUID) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contact submission not found"
        )
    return contact

def _contact_payload(contact: Contact, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": {"contact": ContactResponse.model_validate(contact)}}
    if message:
        body["message"] = message
    return body

# ================================
# PUBLIC SUBMISSION
# ================================

@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(CONTACT_LIMIT)
async def submit_contact(
    request: Request,
    contact_data: ContactCreate,
    background_tasks: BackgroundTasks,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Public contact form.
    Requires GDPR consent; heuristically flagged submissions are stored as spam.
    """
    if not contact_data.gdpr_consent:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="GDPR consent is required to process your request"
        )

    data = contact_data.model_dump(exclude={"gdpr_consent"}, mode="json")
    contact = Contact(
        **data,
        priority=priority_for_inquiry(contact_data.inquiry_type),
        consent_given=True,
        consent_date=local_now(),
        user_id=current_user.id if current_user else None,
        ip_address=request.client.host if request.client else None,
        user_agent=(request.headers.get("user-agent") or "")[:500] or None,
    )

    if detect_spam(contact_data.message, contact_data.subject):
        logger.info("Contact from %s matched spam heuristics", contact_data.email)
        contact.spam_score = max(contact.spam_score or 0, SPAM_THRESHOLD)
        contact.mark_as_spam()

    db.add(contact)
    db.commit()
    db.refresh(contact)

    if not contact.is_spam:
        background_tasks.add_task(send_contact_confirmation, contact.email, contact.first_name, contact.subject)

    return {
        "success": True,
        "message": "Thank you for your inquiry. We will get back to you soon.",
        "data": {"id": contact.id, "status": contact.status, "priority": contact.priority},
    }

# ================================
# INBOX MANAGEMENT
# ================================

@router.get("")
async def get_contacts(
    q: Optional[str] = Query(None, min_length=1, max_length=100),
    status_filter: Optional[ContactStatus] = Query(None, alias="status"),
    priority: Optional[ContactPriority] = Query(None),
    inquiry_type: Optional[InquiryType] = Query(None),
    assigned_to: Optional[UUID] = Query(None),
    source: Optional[ContactSource] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    params: PageParams = Depends(),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    query = db.query(Contact)
    query = apply_search(query, q, [
        Contact.first_name, Contact.last_name, Contact.email, Contact.company, Contact.subject, Contact.message
    ])

    if status_filter:
        query = query.filter(Contact.status == status_filter)
    if priority:
        query = query.filter(Contact.priority == priority)
    if inquiry_type:
        query = query.filter(Contact.inquiry_type == inquiry_type)
    if assigned_to:
        query = query.filter(Contact.assigned_to == assigned_to)
    if source:
        query = query.filter(Contact.source == source)
    query = apply_date_range(query, Contact.created_at, date_from, date_to)

    query = apply_sort(query, Contact, params.sort, CONTACT_SORT_FIELDS)
    contacts, pagination = paginate(query, params)

    return {
        "success": True,
        "data": {
            "contacts": [ContactResponse.model_validate(contact) for contact in contacts],
            "pagination": pagination,
        },
    }

@router.get("/stats/overview")
async def get_contact_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    end = to_local_naive(end_date) or local_now()
    start = to_local_naive(start_date) or end - timedelta(days=30)

    stats = Contact.get_stats(db, start, end)
    in_range = db.query(Contact).filter(Contact.created_at >= start, Contact.created_at <= end)

    responded = in_range.filter(Contact.responded_at.isnot(None)).all()
    avg_response_hours = 0
    if responded:
        avg_response_hours = round(
            sum((c.responded_at - c.created_at).total_seconds() for c in responded) / len(responded) / 3600, 2
        )

    overview = {
        "total_contacts": stats["total"],
        "new_contacts": stats["by_status"].get(ContactStatus.NEW.value, 0),
        "in_progress_contacts": stats["by_status"].get(ContactStatus.IN_PROGRESS.value, 0),
        "resolved_contacts": stats["by_status"].get(ContactStatus.RESOLVED.value, 0),
        "spam_contacts": in_range.filter(Contact.is_spam.is_(True)).count(),
        "avg_response_time": avg_response_hours,
        "overdue_contacts": len(Contact.find_overdue(db)),
        "follow_ups_due": len(Contact.find_for_follow_up(db)),
    }

    return {
        "success": True,
        "data": {
            "overview": overview,
            "contacts_by_type": stats["by_type"],
            "contacts_by_priority": stats["by_priority"],
            "contacts_by_status": stats["by_status"],
            "date_range": {"start": start, "end": end},
        },
    }

@router.get("/{contact_id}")
async def get_contact(
    contact_id: UUID,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    return _contact_payload(_get_contact_or_404(db, contact_id))

@router.put("/{contact_id}")
async def update_contact(
    contact_id: UUID,
    contact_update: ContactUpdate,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    contact = _get_contact_or_404(db, contact_id)
    updates = contact_update.model_dump(exclude_unset=True)
    now = local_now()

    if updates.get("assigned_to") and updates["assigned_to"] != contact.assigned_to:
        if not db.query(User).filter(User.id == updates["assigned_to"]).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Assigned user not found"
            )
        contact.assign(updates["assigned_to"])

    new_status = updates.get("status")
    if new_status and new_status != contact.status:
        if not contact.responded_at:
            contact.responded_at = now
            contact.responded_by = current_user.id
        if new_status in CLOSING_STATUSES:
            contact.resolved_at = now
            contact.resolved_by = current_user.id
        if new_status == ContactStatus.SPAM:
            contact.mark_as_spam()
        elif contact.is_spam:
            contact.is_spam = False
        contact.status = new_status

    if updates.get("priority"):
        contact.priority = updates["priority"]
    if updates.get("internal_note"):
        contact.add_note(updates["internal_note"], current_user.id)
    if updates.get("resolution"):
        contact.resolution = {
            "summary": updates["resolution"],
            "recorded_by": str(current_user.id),
            "recorded_at": now.isoformat(),
        }

    db.commit()
    db.refresh(contact)
    return _contact_payload(contact, "Contact submission updated successfully")

@router.post("/{contact_id}/follow-up")
async def add_follow_up(
    contact_id: UUID,
    follow_up: FollowUpCreate,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    contact = _get_contact_or_404(db, contact_id)

    entry = {
        "type": follow_up.type.value,
        "notes": follow_up.notes,
        "created_by": str(current_user.id),
        "created_at": local_now().isoformat(),
        "scheduled_for": follow_up.scheduled_for.isoformat() if follow_up.scheduled_for else None,
    }
    contact.follow_ups = [*(contact.follow_ups or []), entry]
    contact.last_follow_up = local_now()
    if follow_up.scheduled_for:
        contact.schedule_follow_up(follow_up.scheduled_for, follow_up.notes)

    db.commit()
    db.refresh(contact)
    return _contact_payload(contact, "Follow-up added successfully")

@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    contact = _get_contact_or_404(db, contact_id)
    db.delete(contact)
    db.commit()
    logger.info("Contact %s deleted by %s", contact_id, current_user.email)

    return {"success": True, "message": "Contact submission deleted successfully"}
