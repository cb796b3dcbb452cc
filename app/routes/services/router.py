import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.all_models import Content, ContentType, ContentStatus, User, UserRole
from app.routes.cms.schemas import ContentResponse
from app.routes.services.schemas import (
    ServiceCreate, ServiceUpdate, ServiceType, AvailabilityHours, PriceRange
)
from app.utils.auth import get_current_user, require_admin, require_editor
from app.utils.pagination import PageParams, paginate_list
from app.utils.scoring import slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])

# Inclusive price bounds; None means unbounded
PRICE_RANGES = {
    PriceRange.FREE: (0, 0),
    PriceRange.LOW: (0.01, 100),
    PriceRange.MEDIUM: (100.01, 500),
    PriceRange.HIGH: (500.01, 2000),
    PriceRange.ENTERPRISE: (2000.01, None),
}

SERVICE_SORT_FIELDS = {"created_at", "title", "featured", "priority", "view_count", "pricing.amount"}
RELATED_LIMIT = 3

def _details(service: Content) -> Dict[str, Any]:
    return service.service_details or {}

def _price(service: Content) -> Optional[float]:
    amount = (_details(service).get("pricing") or {}).get("amount")
    return float(amount) if amount is not None else None

def _in_price_range(service: Content, price_range: PriceRange) -> bool:
    amount = _price(service)
    if amount is None:
        return False
    low, high = PRICE_RANGES[price_range]
    return amount >= low and (high is None or amount <= high)

def _matches_term(service: Content, term: str) -> bool:
    term = term.lower()
    details = _details(service)
    haystack = [
        service.title,
        service.excerpt,
        details.get("description"),
        " ".join(details.get("features") or []),
        " ".join(details.get("benefits") or []),
    ]
    return any(term in text.lower() for text in haystack if text)

def _sort_services(services: List[Content], sort: str) -> List[Content]:
    descending = sort.startswith("-")
    field = sort.lstrip("-")
    if field not in SERVICE_SORT_FIELDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid sort field: {field}"
        )

    def key(service):
        if field == "title":
            return (service.title or "").lower()
        value = _price(service) if field == "pricing.amount" else getattr(service, field)
        return (value is not None, value or 0)

    return sorted(services, key=key, reverse=descending)

def _published_services(db: Session):
    return db.query(Content).filter(
        Content.type == ContentType.SERVICE,
        Content.status == ContentStatus.PUBLISHED
    )

def _get_service_or_404(db: Session, service_id: UUID, published_only: bool = False) -> Content:
    query = _published_services(db) if published_only else db.query(Content).filter(Content.type == ContentType.SERVICE)
    service = query.filter(Content.id == service_id).first()
    if not service:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service not found"
        )
    return service

def _service_summary(service: Content) -> dict:
    return {
        "id": service.id,
        "title": service.title,
        "slug": service.slug,
        "excerpt": service.excerpt,
        "featured_image": service.featured_image,
        "service_details": service.service_details,
        "url": service.url,
    }

# ================================
# PUBLIC CATALOGUE
# ================================

@router.get("")
async def get_services(
    q: Optional[str] = Query(None, description="Search title, description, features and benefits"),
    service_type: Optional[ServiceType] = Query(None),
    featured: Optional[bool] = Query(None),
    is_active: Optional[bool] = Query(None),
    availability: Optional[AvailabilityHours] = Query(None),
    price_range: Optional[PriceRange] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort: str = Query("-created_at"),
    db: Session = Depends(get_db)
):
    """
    Published services with filters evaluated against `service_details`.
    """
    query = _published_services(db)
    if featured is not None:
        query = query.filter(Content.featured == featured)
    services = query.all()

    if service_type:
        services = [s for s in services if _details(s).get("service_type") == service_type.value]
    if is_active is not None:
        services = [s for s in services if bool(_details(s).get("is_active")) == is_active]
    if availability:
        services = [
            s for s in services
            if (_details(s).get("availability") or {}).get("hours") == availability.value
        ]
    if price_range:
        services = [s for s in services if _in_price_range(s, price_range)]
    if q:
        services = [s for s in services if _matches_term(s, q)]

    services = _sort_services(services, sort)
    rows, pagination = paginate_list(services, PageParams(page=page, limit=limit, sort=sort))

    return {
        "success": True,
        "data": {
            "services": [ContentResponse.model_validate(row) for row in rows],
            "pagination": pagination,
        },
    }

@router.get("/featured")
async def get_featured_services(
    limit: int = Query(6, ge=1, le=50),
    db: Session = Depends(get_db)
):
    services = (
        _published_services(db)
        .filter(Content.featured.is_(True))
        .order_by(Content.priority.desc(), Content.created_at.desc())
        .all()
    )
    active = [s for s in services if _details(s).get("is_active")][:limit]
    return {"success": True, "data": {"services": [ContentResponse.model_validate(s) for s in active]}}

@router.get("/types")
async def get_service_types(db: Session = Depends(get_db)):
    """Count and price spread per service type among active published services."""
    grouped: Dict[str, List[Optional[float]]] = {}
    for service in _published_services(db).all():
        details = _details(service)
        if not details.get("is_active") or not details.get("service_type"):
            continue
        grouped.setdefault(details["service_type"], []).append(_price(service))

    types = []
    for service_type, prices in grouped.items():
        priced = [p for p in prices if p is not None]
        types.append({
            "service_type": service_type,
            "count": len(prices),
            "min_price": min(priced) if priced else None,
            "max_price": max(priced) if priced else None,
            "avg_price": round(sum(priced) / len(priced), 2) if priced else None,
        })
    types.sort(key=lambda t: t["count"], reverse=True)

    return {"success": True, "data": {"types": types}}

@router.get("/stats/overview")
async def get_service_stats(
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    services = db.query(Content).filter(Content.type == ContentType.SERVICE).all()
    published = [s for s in services if s.status == ContentStatus.PUBLISHED]
    total_views = sum(s.view_count or 0 for s in services)

    by_type: Dict[str, dict] = {}
    for service in published:
        service_type = _details(service).get("service_type") or "unspecified"
        bucket = by_type.setdefault(service_type, {"service_type": service_type, "count": 0, "views": 0, "prices": []})
        bucket["count"] += 1
        bucket["views"] += service.view_count or 0
        if _price(service) is not None:
            bucket["prices"].append(_price(service))

    services_by_type = []
    for bucket in sorted(by_type.values(), key=lambda b: b["count"], reverse=True):
        prices = bucket.pop("prices")
        bucket["avg_price"] = round(sum(prices) / len(prices), 2) if prices else None
        services_by_type.append(bucket)

    top = sorted(published, key=lambda s: s.view_count or 0, reverse=True)[:10]

    return {
        "success": True,
        "data": {
            "overview": {
                "total_services": len(services),
                "active_services": sum(1 for s in services if _details(s).get("is_active")),
                "featured_services": sum(1 for s in services if s.featured),
                "published_services": len(published),
                "total_views": total_views,
                "avg_views": round(total_views / len(services), 2) if services else 0,
            },
            "services_by_type": services_by_type,
            "top_services": [{**_service_summary(s), "view_count": s.view_count} for s in top],
        },
    }

@router.get("/slug/{slug}")
async def get_service_by_slug(slug: str, db: Session = Depends(get_db)):
    service = _published_services(db).filter(Content.slug == slug).first()
    if not service:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service not found"
        )

    service.increment_view()
    db.commit()
    db.refresh(service)
    return {"success": True, "data": {"service": ContentResponse.model_validate(service)}}

@router.get("/{service_id}")
async def get_service(service_id: UUID, db: Session = Depends(get_db)):
    service = _get_service_or_404(db, service_id, published_only=True)
    service.increment_view()
    db.commit()
    db.refresh(service)

    service_type = _details(service).get("service_type")
    related = [
        s for s in _published_services(db).filter(Content.id != service.id).order_by(Content.created_at.desc()).all()
        if service_type and _details(s).get("service_type") == service_type
    ][:RELATED_LIMIT]

    return {
        "success": True,
        "data": {
            "service": ContentResponse.model_validate(service),
            "related_services": [_service_summary(s) for s in related],
        },
    }

# ================================
# SERVICE MANAGEMENT
# ================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_service(
    service_data: ServiceCreate,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    slug = service_data.slug or slugify(service_data.title)
    if db.query(Content).filter(Content.slug == slug).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content with this slug already exists"
        )

    service = Content(
        title=service_data.title,
        slug=slug,
        type=ContentType.SERVICE,
        status=ContentStatus.PUBLISHED,
        content=service_data.content,
        excerpt=service_data.description[:500],
        featured=service_data.featured,
        featured_image=service_data.featured_image,
        category=service_data.category,
        tags=service_data.tags,
        service_details=service_data.service_details(),
        author_id=current_user.id,
    )
    db.add(service)
    db.commit()
    db.refresh(service)

    logger.info("Service '%s' created by %s", service.slug, current_user.email)
    return {
        "success": True,
        "message": "Service created successfully",
        "data": {"service": ContentResponse.model_validate(service)},
    }

@router.put("/{service_id}")
async def update_service(
    service_id: UUID,
    service_data: ServiceUpdate,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    service = _get_service_or_404(db, service_id)

    service.title = service_data.title
    service.content = service_data.content
    service.excerpt = service_data.description[:500]
    service.featured = service_data.featured
    service.featured_image = service_data.featured_image
    service.category = service_data.category
    service.tags = service_data.tags
    service.service_details = service_data.service_details()

    db.commit()
    db.refresh(service)
    return {
        "success": True,
        "message": "Service updated successfully",
        "data": {"service": ContentResponse.model_validate(service)},
    }

@router.delete("/{service_id}")
async def delete_service(
    service_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = _get_service_or_404(db, service_id)
    db.delete(service)
    db.commit()
    logger.info("Service %s deleted by %s", service_id, current_user.email)

    return {"success": True, "message": "Service deleted successfully"}

@router.post("/{service_id}/toggle-active")
async def toggle_service_active(
    service_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = _get_service_or_404(db, service_id)

    if current_user.role != UserRole.ADMIN and service.author_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this service"
        )

    details = dict(_details(service))
    details["is_active"] = not details.get("is_active", False)
    service.service_details = details
    db.commit()

    state = "activated" if details["is_active"] else "deactivated"
    return {
        "success": True,
        "message": f"Service {state} successfully",
        "data": {"service": {"id": service.id, "title": service.title, "is_active": details["is_active"]}},
    }
