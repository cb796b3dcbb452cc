import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.database import apply_updates, get_db
from app.models.all_models import (
    SalesLead, LeadStatus, LeadSource, Industry, Priority, User, local_now, to_local_naive
)
from app.routes.sales_leads.schemas import (
    LeadCreate, LeadUpdate, LeadNote, LeadClose, LeadResponse, LeadSummary
)
from app.utils.auth import require_admin, require_editor
from app.utils.pagination import PageParams, paginate, apply_sort, apply_search, apply_date_range
from app.utils.rate_limit import limiter, LEAD_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sales-leads", tags=["sales-leads"])

LEAD_SORT_FIELDS = {"created_at", "updated_at", "lead_score", "estimated_value", "company_name", "status", "priority"}

def _get_lead_or_404(db: Session, lead_id: UUID) -> SalesLead:
    lead = db.query(SalesLead).filter(SalesLead.id == lead_id).first()
    if not lead:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lead not found"
        )
    return lead

def _lead_payload(lead: SalesLead, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": {"lead": LeadResponse.model_validate(lead)}}
    if message:
        body["message"] = message
    return body

@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(LEAD_LIMIT)
async def submit_lead(
    request: Request,
    lead_data: LeadCreate,
    db: Session = Depends(get_db)
):
    """Public enquiry form; the lead is scored on save."""
    data = lead_data.model_dump(mode="json", exclude={"expected_close_date"})
    lead = SalesLead(
        **data,
        expected_close_date=lead_data.expected_close_date,
        consent_date=local_now(),
        ip_address=request.client.host if request.client else None,
        user_agent=(request.headers.get("user-agent") or "")[:500] or None,
    )
    db.add(lead)
    db.commit()
    db.refresh(lead)

    logger.info("Lead from %s scored %s", lead.company_name, lead.lead_score)
    return {
        "success": True,
        "message": "Lead created successfully",
        "data": {
            "id": lead.id,
            "status": lead.status,
            "lead_score": lead.lead_score,
            "created_at": lead.created_at,
        },
    }

@router.get("")
async def get_leads(
    q: Optional[str] = Query(None, min_length=1, max_length=100),
    status_filter: Optional[LeadStatus] = Query(None, alias="status"),
    industry: Optional[Industry] = Query(None),
    priority: Optional[Priority] = Query(None),
    source: Optional[LeadSource] = Query(None),
    assigned_to: Optional[UUID] = Query(None),
    value_min: Optional[float] = Query(None, ge=0),
    value_max: Optional[float] = Query(None, ge=0),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    params: PageParams = Depends(),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    query = db.query(SalesLead)
    query = apply_search(query, q, [
        SalesLead.company_name, SalesLead.contact_name, SalesLead.email, SalesLead.location
    ])

    if status_filter:
        query = query.filter(SalesLead.status == status_filter)
    if industry:
        query = query.filter(SalesLead.industry == industry)
    if priority:
        query = query.filter(SalesLead.priority == priority)
    if source:
        query = query.filter(SalesLead.source == source)
    if assigned_to:
        query = query.filter(SalesLead.assigned_to == assigned_to)
    if value_min is not None:
        query = query.filter(SalesLead.estimated_value >= value_min)
    if value_max is not None:
        query = query.filter(SalesLead.estimated_value <= value_max)
    query = apply_date_range(query, SalesLead.created_at, date_from, date_to)

    query = apply_sort(query, SalesLead, params.sort, LEAD_SORT_FIELDS)
    leads, pagination = paginate(query, params)

    return {
        "success": True,
        "data": {
            "leads": [LeadResponse.model_validate(lead) for lead in leads],
            "pagination": pagination,
        },
    }

@router.get("/stats/overview")
async def get_lead_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    stats = SalesLead.get_stats(db, to_local_naive(start_date), to_local_naive(end_date))
    recent = db.query(SalesLead).order_by(SalesLead.created_at.desc()).limit(5).all()

    return {
        "success": True,
        "data": {
            "overview": stats,
            "hot_leads": [LeadSummary.model_validate(lead) for lead in SalesLead.find_hot_leads(db)[:10]],
            "needing_follow_up": [LeadSummary.model_validate(lead) for lead in SalesLead.find_needing_follow_up(db)[:10]],
            "recent_leads": [LeadSummary.model_validate(lead) for lead in recent],
        },
    }

@router.get("/{lead_id}")
async def get_lead(
    lead_id: UUID,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    return _lead_payload(_get_lead_or_404(db, lead_id))

@router.put("/{lead_id}")
async def update_lead(
    lead_id: UUID,
    lead_update: LeadUpdate,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    lead = _get_lead_or_404(db, lead_id)
    updates = lead_update.model_dump(exclude_unset=True)

    if updates.get("assigned_to") and updates["assigned_to"] != lead.assigned_to:
        if not db.query(User).filter(User.id == updates["assigned_to"]).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Assigned user not found"
            )
        lead.assigned_at = local_now()

    apply_updates(lead, updates)

    db.commit()
    db.refresh(lead)
    return _lead_payload(lead, "Lead updated successfully")

@router.post("/{lead_id}/contact")
async def record_lead_contact(
    lead_id: UUID,
    note: Optional[LeadNote] = None,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    lead = _get_lead_or_404(db, lead_id)
    lead.update_last_contact(note.notes if note else None, current_user.id)
    if lead.status == LeadStatus.NEW:
        lead.status = LeadStatus.CONTACTED

    db.commit()
    db.refresh(lead)
    return _lead_payload(lead, "Contact date updated successfully")

@router.post("/{lead_id}/qualify")
async def qualify_lead(
    lead_id: UUID,
    note: Optional[LeadNote] = None,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    lead = _get_lead_or_404(db, lead_id)
    lead.qualify(current_user.id, note.notes if note else None)
    db.commit()
    db.refresh(lead)
    return _lead_payload(lead, "Lead qualified successfully")

@router.post("/{lead_id}/close")
async def close_lead(
    lead_id: UUID,
    closure: LeadClose,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    lead = _get_lead_or_404(db, lead_id)
    lead.close(closure.status, current_user.id, closure.notes, closure.final_value)
    db.commit()
    db.refresh(lead)

    outcome = "won" if closure.status == LeadStatus.CLOSED_WON else "lost"
    logger.info("Lead %s %s by %s", lead_id, outcome, current_user.email)
    return _lead_payload(lead, f"Lead {outcome} successfully")

@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    lead = _get_lead_or_404(db, lead_id)
    db.delete(lead)
    db.commit()

    return {"success": True, "message": "Lead deleted successfully"}
