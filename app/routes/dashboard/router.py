import enum
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.all_models import (
    User, SalesLead, RadiologistApplication, Contact,
    LeadStatus, ContactStatus, ApplicationStatus, Priority,
    OPEN_LEAD_STATUSES, local_now, to_local_naive
)
from app.utils.auth import require_admin, require_editor
from app.utils.rate_limit import limiter, DASHBOARD_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

class TimeRange(str, enum.Enum):
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    YEAR = "1y"

TIME_RANGE_DAYS = {
    TimeRange.WEEK: 7,
    TimeRange.MONTH: 30,
    TimeRange.QUARTER: 90,
    TimeRange.YEAR: 365,
}

def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0

def _daily_series(rows, value_attr: Optional[str] = None) -> list:
    buckets = defaultdict(lambda: {"count": 0, "value": 0.0})
    for row in rows:
        bucket = buckets[row.created_at.date()]
        bucket["count"] += 1
        if value_attr:
            bucket["value"] += getattr(row, value_attr) or 0

    series = []
    for day in sorted(buckets):
        point = {"date": day.isoformat(), "count": buckets[day]["count"]}
        if value_attr:
            point["value"] = buckets[day]["value"]
        series.append(point)
    return series

def _avg_days(pairs) -> float:
    spans = [(end - start).total_seconds() / 86400 for start, end in pairs]
    return round(sum(spans) / len(spans), 1) if spans else 0

# ================================
# OVERVIEW
# ================================

@router.get("/stats")
@limiter.limit(DASHBOARD_LIMIT)
async def get_dashboard_stats(
    request: Request,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    now = local_now()
    month_ago = now - timedelta(days=30)
    week_ago = now - timedelta(days=7)

    new_users_month = db.query(User).filter(User.created_at >= month_ago).count()
    new_users_week = db.query(User).filter(User.created_at >= week_ago).count()

    total_leads = db.query(SalesLead).count()
    closed_won = db.query(SalesLead).filter(SalesLead.status == LeadStatus.CLOSED_WON).count()
    won_deal_value = func.coalesce(SalesLead.final_value, SalesLead.estimated_value)
    total_revenue, avg_deal_size = (
        db.query(func.coalesce(func.sum(won_deal_value), 0), func.coalesce(func.avg(won_deal_value), 0))
        .filter(SalesLead.status == LeadStatus.CLOSED_WON)
        .one()
    )

    total_applications = db.query(RadiologistApplication).count()
    approved_applications = db.query(RadiologistApplication).filter(
        RadiologistApplication.status == ApplicationStatus.APPROVED
    ).count()

    total_contacts = db.query(Contact).count()
    resolved_contacts = db.query(Contact).filter(Contact.status == ContactStatus.RESOLVED).count()

    return {
        "success": True,
        "data": {
            "users": {
                "total": db.query(User).count(),
                "active": db.query(User).filter(User.is_active.is_(True)).count(),
                "new_this_month": new_users_month,
                "new_this_week": new_users_week,
                "change": _rate(new_users_week, max(new_users_month - new_users_week, 1)) if new_users_week else 0,
            },
            "sales_leads": {
                "total": total_leads,
                "hot": db.query(SalesLead).filter(
                    SalesLead.priority == Priority.HIGH, SalesLead.status.in_(OPEN_LEAD_STATUSES)
                ).count(),
                "new_this_month": db.query(SalesLead).filter(SalesLead.created_at >= month_ago).count(),
                "qualified": db.query(SalesLead).filter(SalesLead.status == LeadStatus.QUALIFIED).count(),
                "closed": closed_won,
                "conversion_rate": _rate(closed_won, total_leads),
            },
            "radiologist_applications": {
                "total": total_applications,
                "pending": db.query(RadiologistApplication).filter(
                    RadiologistApplication.status == ApplicationStatus.PENDING
                ).count(),
                "approved": approved_applications,
                "new_this_month": db.query(RadiologistApplication).filter(
                    RadiologistApplication.created_at >= month_ago
                ).count(),
                "approval_rate": _rate(approved_applications, total_applications),
            },
            "contacts": {
                "total": total_contacts,
                "new": db.query(Contact).filter(Contact.status == ContactStatus.NEW).count(),
                "resolved": resolved_contacts,
                "resolution_rate": _rate(resolved_contacts, total_contacts),
            },
            "revenue": {
                "total": float(total_revenue or 0),
                "avg_deal_size": round(float(avg_deal_size or 0), 2),
                "closed_deals": closed_won,
            },
        },
    }

@router.get("/analytics")
@limiter.limit(DASHBOARD_LIMIT)
async def get_dashboard_analytics(
    request: Request,
    time_range: TimeRange = Query(TimeRange.MONTH),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    """
    Daily series and breakdowns for a window.
    Explicit `start_date` and `end_date` take precedence over `time_range`.
    """
    if start_date and end_date:
        start, end = to_local_naive(start_date), to_local_naive(end_date)
    else:
        end = local_now()
        start = end - timedelta(days=TIME_RANGE_DAYS[time_range])

    users = db.query(User).filter(User.created_at.between(start, end)).all()
    leads = db.query(SalesLead).filter(SalesLead.created_at.between(start, end)).all()
    applications = db.query(RadiologistApplication).filter(
        RadiologistApplication.created_at.between(start, end)
    ).all()

    leads_by_status = defaultdict(lambda: {"count": 0, "value": 0.0})
    for lead in leads:
        leads_by_status[lead.status.value]["count"] += 1
        leads_by_status[lead.status.value]["value"] += lead.estimated_value or 0

    users_by_role = defaultdict(int)
    for user in users:
        users_by_role[user.role.value] += 1

    return {
        "success": True,
        "data": {
            "time_range": {"start": start, "end": end},
            "user_registrations": _daily_series(users),
            "sales_leads_daily": _daily_series(leads, "estimated_value"),
            "radiologist_applications_daily": _daily_series(applications),
            "leads_by_status": [{"status": key, **value} for key, value in leads_by_status.items()],
            "applications_by_specialization": RadiologistApplication.get_specialization_stats(db, start, end),
            "users_by_role": [{"role": key, "count": count} for key, count in users_by_role.items()],
        },
    }

@router.get("/activity")
@limiter.limit(DASHBOARD_LIMIT)
async def get_recent_activity(
    request: Request,
    limit: int = Query(20, ge=1, le=50),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    per_source = -(-limit // 4)
    activities = []

    for user in db.query(User).order_by(User.created_at.desc()).limit(per_source):
        activities.append({
            "id": f"user-{user.id}",
            "type": "user_registration",
            "title": f"New user registered: {user.full_name}",
            "description": f"Role: {user.role.value}",
            "timestamp": user.created_at,
        })

    for lead in db.query(SalesLead).order_by(SalesLead.created_at.desc()).limit(per_source):
        activities.append({
            "id": f"lead-{lead.id}",
            "type": "sales_lead",
            "title": f"New sales lead: {lead.company_name}",
            "description": f"Contact: {lead.contact_name} | Value: ${lead.estimated_value or 0}",
            "timestamp": lead.created_at,
        })

    for application in db.query(RadiologistApplication).order_by(RadiologistApplication.created_at.desc()).limit(per_source):
        activities.append({
            "id": f"application-{application.id}",
            "type": "radiologist_application",
            "title": f"New radiologist application: Dr. {application.full_name}",
            "description": f"Specialization: {application.specialization.value}",
            "timestamp": application.created_at,
        })

    for contact in db.query(Contact).order_by(Contact.created_at.desc()).limit(per_source):
        activities.append({
            "id": f"contact-{contact.id}",
            "type": "contact_inquiry",
            "title": f"New contact inquiry: {contact.full_name}",
            "description": f"Type: {contact.inquiry_type.value}",
            "timestamp": contact.created_at,
        })

    activities.sort(key=lambda item: item["timestamp"], reverse=True)

    return {
        "success": True,
        "data": {"activities": activities[:limit], "total": len(activities)},
    }

@router.get("/performance")
@limiter.limit(DASHBOARD_LIMIT)
async def get_performance_metrics(
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    now = local_now()
    since = now - timedelta(days=30)

    responded = db.query(Contact).filter(
        Contact.responded_at.isnot(None), Contact.created_at >= since
    ).all()
    response_hours = [(c.responded_at - c.created_at).total_seconds() / 3600 for c in responded]

    leads = db.query(SalesLead).filter(SalesLead.created_at >= since).all()
    qualified = sum(1 for lead in leads if lead.status == LeadStatus.QUALIFIED)
    won = sum(1 for lead in leads if lead.status == LeadStatus.CLOSED_WON)

    applications = db.query(RadiologistApplication).filter(RadiologistApplication.created_at >= since).all()
    approved = sum(1 for a in applications if a.status == ApplicationStatus.APPROVED)

    return {
        "success": True,
        "data": {
            "contact_performance": {
                "avg_response_time": round(sum(response_hours) / len(response_hours), 1) if response_hours else 0,
                "unit": "hours",
            },
            "lead_performance": {
                "total_leads": len(leads),
                "qualification_rate": _rate(qualified, len(leads)),
                "conversion_rate": _rate(won, len(leads)),
                "avg_qualification_time": _avg_days((lead.created_at, lead.qualified_at or now) for lead in leads),
                "time_unit": "days",
            },
            "application_performance": {
                "total_applications": len(applications),
                "approval_rate": _rate(approved, len(applications)),
                "avg_processing_time": _avg_days((a.created_at, a.reviewed_at or now) for a in applications),
                "time_unit": "days",
            },
        },
    }
