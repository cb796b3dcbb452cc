import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.database import apply_updates, get_db
from app.models.all_models import (
    RadiologistApplication, ApplicationStatus, Specialization, Availability, User,
    local_now, to_local_naive
)
from app.routes.radiologist_applications.schemas import (
    ApplicationCreate, ApplicationUpdate, ApproveRequest, RejectRequest, ApplicationResponse
)
from app.utils.auth import require_admin, require_editor
from app.utils.pagination import WidePageParams, paginate, apply_sort, apply_search, apply_date_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/radiologist-applications", tags=["radiologist-applications"])

APPLICATION_SORT_FIELDS = {"created_at", "updated_at", "experience", "last_name", "status", "specialization"}

def _get_application_or_404(db: Session, application_id: UUID) -> RadiologistApplication:
    application = db.query(RadiologistApplication).filter(RadiologistApplication.id == application_id).first()
    if not application:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Application not found"
        )
    return application

def _application_payload(application: RadiologistApplication, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": {"application": ApplicationResponse.model_validate(application)}}
    if message:
        body["message"] = message
    return body

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_application(
    request: Request,
    application_data: ApplicationCreate,
    db: Session = Depends(get_db)
):
    """Public application form for radiologists joining the reading network."""
    email = application_data.email.strip().lower()
    if db.query(RadiologistApplication).filter(RadiologistApplication.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An application with this email already exists"
        )

    application = RadiologistApplication(
        **application_data.model_dump(mode="json", exclude={"start_date"}),
        start_date=application_data.start_date,
        consent_date=local_now(),
        ip_address=request.client.host if request.client else None,
        user_agent=(request.headers.get("user-agent") or "")[:500] or None,
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    logger.info("Radiologist application received from %s (%s)", application.email, application.specialization.value)
    return {
        "success": True,
        "message": "Application submitted successfully",
        "data": {"id": application.id, "status": application.status, "submitted_at": application.created_at},
    }

@router.get("")
async def get_applications(
    q: Optional[str] = Query(None, min_length=1, max_length=100),
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    specialization: Optional[Specialization] = Query(None),
    availability: Optional[Availability] = Query(None),
    experience_min: Optional[int] = Query(None, ge=0),
    experience_max: Optional[int] = Query(None, ge=0),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    params: WidePageParams = Depends(),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    query = db.query(RadiologistApplication)
    query = apply_search(query, q, [
        RadiologistApplication.first_name,
        RadiologistApplication.last_name,
        RadiologistApplication.email,
        RadiologistApplication.license_number,
        RadiologistApplication.current_employer,
    ])

    if status_filter:
        query = query.filter(RadiologistApplication.status == status_filter)
    if specialization:
        query = query.filter(RadiologistApplication.specialization == specialization)
    if availability:
        query = query.filter(RadiologistApplication.availability == availability)
    if experience_min is not None:
        query = query.filter(RadiologistApplication.experience >= experience_min)
    if experience_max is not None:
        query = query.filter(RadiologistApplication.experience <= experience_max)
    query = apply_date_range(query, RadiologistApplication.created_at, date_from, date_to)

    query = apply_sort(query, RadiologistApplication, params.sort, APPLICATION_SORT_FIELDS)
    applications, pagination = paginate(query, params)

    return {
        "success": True,
        "data": {
            "applications": [ApplicationResponse.model_validate(a) for a in applications],
            "pagination": pagination,
        },
    }

@router.get("/stats/overview")
async def get_application_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    start, end = to_local_naive(start_date), to_local_naive(end_date)
    recent = (
        db.query(RadiologistApplication)
        .order_by(RadiologistApplication.created_at.desc())
        .limit(5)
        .all()
    )

    return {
        "success": True,
        "data": {
            "overview": RadiologistApplication.get_stats(db, start, end),
            "specialization_breakdown": RadiologistApplication.get_specialization_stats(db, start, end),
            "recent_applications": [
                {
                    "id": a.id,
                    "first_name": a.first_name,
                    "last_name": a.last_name,
                    "specialization": a.specialization,
                    "status": a.status,
                    "created_at": a.created_at,
                }
                for a in recent
            ],
        },
    }

@router.get("/{application_id}")
async def get_application(
    application_id: UUID,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    return _application_payload(_get_application_or_404(db, application_id))

@router.put("/{application_id}")
async def update_application(
    application_id: UUID,
    application_update: ApplicationUpdate,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    application = _get_application_or_404(db, application_id)
    updates = application_update.model_dump(exclude_unset=True, mode="json")

    if updates.get("status") and updates["status"] != application.status.value:
        application.reviewed_by = current_user.id
        application.reviewed_at = local_now()
    if "start_date" in updates:
        updates["start_date"] = application_update.start_date

    apply_updates(application, updates)

    db.commit()
    db.refresh(application)
    return _application_payload(application, "Application updated successfully")

@router.post("/{application_id}/approve")
async def approve_application(
    application_id: UUID,
    approval: Optional[ApproveRequest] = None,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    application = _get_application_or_404(db, application_id)
    application.approve(current_user.id, approval.notes if approval else None)
    db.commit()
    db.refresh(application)

    logger.info("Application %s approved by %s", application_id, current_user.email)
    return _application_payload(application, "Application approved successfully")

@router.post("/{application_id}/reject")
async def reject_application(
    application_id: UUID,
    rejection: RejectRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    application = _get_application_or_404(db, application_id)
    application.reject(current_user.id, rejection.reason, rejection.notes)
    db.commit()
    db.refresh(application)

    logger.info("Application %s rejected by %s", application_id, current_user.email)
    return _application_payload(application, "Application rejected")

@router.delete("/{application_id}")
async def delete_application(
    application_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    application = _get_application_or_404(db, application_id)
    db.delete(application)
    db.commit()

    return {"success": True, "message": "Application deleted successfully"}
