import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import String, cast, func
from sqlalchemy.orm import Session

from app.database import apply_updates, get_db
from app.models.all_models import (
    Content, ContentType, ContentStatus, User, UserRole, local_now, to_local_naive
)
from app.routes.cms.schemas import ContentCreate, ContentUpdate, ContentResponse
from app.utils.auth import get_optional_user, require_admin, require_editor, require_permission
from app.utils.pagination import PageParams, paginate, apply_sort, apply_search
from app.utils.scoring import slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cms", tags=["cms"])

CONTENT_SORT_FIELDS = {"created_at", "updated_at", "published_at", "title", "view_count", "priority"}
EDITOR_ROLES = (UserRole.ADMIN, UserRole.CMS_EDITOR)

def _get_content_or_404(db: Session, content_id: UUID) -> Content:
    content = db.query(Content).filter(Content.id == content_id).first()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Content not found"
        )
    return content

def _content_payload(content: Content, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": {"content": ContentResponse.model_validate(content)}}
    if message:
        body["message"] = message
    return body

def _ensure_slug_available(db: Session, slug: str, exclude_id: Optional[UUID] = None) -> None:
    query = db.query(Content).filter(Content.slug == slug)
    if exclude_id:
        query = query.filter(Content.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content with this slug already exists"
        )

def _is_future(moment: Optional[datetime]) -> bool:
    return bool(moment and moment > local_now())

# ================================
# CONTENT LISTING
# ================================

@router.get("/content")
async def get_content(
    q: Optional[str] = Query(None, description="Search title, body and excerpt"),
    type: Optional[ContentType] = Query(None),
    status_filter: Optional[ContentStatus] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    author: Optional[UUID] = Query(None, description="Author user id"),
    featured: Optional[bool] = Query(None),
    params: PageParams = Depends(),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    """
    List all content regardless of status (Editor/Admin)
    """
    query = db.query(Content)
    query = apply_search(query, q, [Content.title, Content.content, Content.excerpt])

    if type:
        query = query.filter(Content.type == type)
    if status_filter:
        query = query.filter(Content.status == status_filter)
    if category:
        query = query.filter(Content.category == category)
    if author:
        query = query.filter(Content.author_id == author)
    if featured is not None:
        query = query.filter(Content.featured == featured)

    query = apply_sort(query, Content, params.sort, CONTENT_SORT_FIELDS)
    rows, pagination = paginate(query, params)

    return {
        "success": True,
        "data": {
            "content": [ContentResponse.model_validate(row) for row in rows],
            "pagination": pagination,
        },
    }

@router.get("/content/published")
async def get_published_content(
    q: Optional[str] = Query(None),
    type: Optional[ContentType] = Query(None),
    category: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query("-published_at"),
    db: Session = Depends(get_db)
):
    """Public listing of published content."""
    params = PageParams(page=page, limit=limit, sort=sort)
    query = Content.search(db, q) if q else Content.find_published(db).order_by(None)

    if type:
        query = query.filter(Content.type == type)
    if category:
        query = query.filter(Content.category == category)
    if tag:
        query = query.filter(cast(Content.tags, String).ilike(f'%"{tag.strip().lower()}"%'))

    query = apply_sort(query, Content, params.sort, CONTENT_SORT_FIELDS)
    rows, pagination = paginate(query, params)

    return {
        "success": True,
        "data": {
            "content": [ContentResponse.model_validate(row) for row in rows],
            "pagination": pagination,
        },
    }

@router.get("/content/featured")
async def get_featured_content(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db)
):
    rows = Content.find_featured(db, limit)
    return {"success": True, "data": {"content": [ContentResponse.model_validate(row) for row in rows]}}

@router.get("/content/slug/{slug}")
async def get_content_by_slug(slug: str, db: Session = Depends(get_db)):
    content = db.query(Content).filter(
        Content.slug == slug,
        Content.status == ContentStatus.PUBLISHED
    ).first()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Content not found"
        )

    content.increment_view()
    db.commit()
    db.refresh(content)
    return _content_payload(content)

@router.get("/content/{content_id}")
async def get_content_by_id(
    content_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    content = _get_content_or_404(db, content_id)

    if content.status != ContentStatus.PUBLISHED and (
        current_user is None or current_user.role not in EDITOR_ROLES
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

    content.increment_view()
    db.commit()
    db.refresh(content)
    return _content_payload(content)

# ================================
# CONTENT MANAGEMENT
# ================================

@router.post("/content", status_code=status.HTTP_201_CREATED)
async def create_content(
    content_data: ContentCreate,
    current_user: User = Depends(require_permission("content:write")),
    db: Session = Depends(get_db)
):
    data = content_data.model_dump(exclude_unset=True)
    data["slug"] = data.get("slug") or slugify(content_data.title)
    _ensure_slug_available(db, data["slug"])

    if _is_future(content_data.scheduled_at):
        data["status"] = ContentStatus.DRAFT

    content = Content(**data, author_id=current_user.id)
    db.add(content)
    db.commit()
    db.refresh(content)

    logger.info("Content '%s' (%s) created by %s", content.slug, content.type.value, current_user.email)
    return _content_payload(content, "Content created successfully")

@router.put("/content/{content_id}")
async def update_content(
    content_id: UUID,
    content_data: ContentUpdate,
    current_user: User = Depends(require_permission("content:update")),
    db: Session = Depends(get_db)
):
    content = _get_content_or_404(db, content_id)
    updates = content_data.model_dump(exclude_unset=True)

    if updates.get("slug") and updates["slug"] != content.slug:
        _ensure_slug_available(db, updates["slug"], exclude_id=content.id)
    if "seo" in updates:
        updates["seo"] = {**(content.seo or {}), **(updates["seo"] or {})}
    if _is_future(content_data.scheduled_at):
        updates["status"] = ContentStatus.DRAFT

    content.create_version(modified_by=current_user.id)
    apply_updates(content, updates)

    db.commit()
    db.refresh(content)
    return _content_payload(content, "Content updated successfully")

@router.delete("/content/{content_id}")
async def delete_content(
    content_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    content = _get_content_or_404(db, content_id)
    db.delete(content)
    db.commit()
    logger.info("Content %s deleted by %s", content_id, current_user.email)

    return {"success": True, "message": "Content deleted successfully"}

@router.post("/content/{content_id}/publish")
async def publish_content(
    content_id: UUID,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    content = _get_content_or_404(db, content_id)
    content.publish()
    db.commit()
    db.refresh(content)
    return _content_payload(content, "Content published successfully")

@router.post("/content/{content_id}/unpublish")
async def unpublish_content(
    content_id: UUID,
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    content = _get_content_or_404(db, content_id)
    content.status = ContentStatus.DRAFT
    content.scheduled_at = None
    db.commit()
    db.refresh(content)
    return _content_payload(content, "Content unpublished successfully")

# ================================
# ANALYTICS & TAXONOMY
# ================================

@router.get("/analytics")
async def get_content_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(require_editor),
    db: Session = Depends(get_db)
):
    end = to_local_naive(end_date) or local_now()
    start = to_local_naive(start_date) or end - timedelta(days=30)

    in_range = db.query(Content).filter(Content.created_at >= start, Content.created_at <= end)
    by_type = (
        in_range.with_entities(Content.type, func.count(Content.id), func.coalesce(func.sum(Content.view_count), 0))
        .group_by(Content.type)
        .all()
    )
    top_content = (
        db.query(Content)
        .filter(Content.status == ContentStatus.PUBLISHED)
        .order_by(Content.view_count.desc())
        .limit(10)
        .all()
    )

    overview = {
        "total_content": db.query(Content).count(),
        "published": db.query(Content).filter(Content.status == ContentStatus.PUBLISHED).count(),
        "drafts": db.query(Content).filter(Content.status == ContentStatus.DRAFT).count(),
        "archived": db.query(Content).filter(Content.status == ContentStatus.ARCHIVED).count(),
        "created_in_range": in_range.count(),
        "total_views": int(db.query(func.coalesce(func.sum(Content.view_count), 0)).scalar() or 0),
    }

    return {
        "success": True,
        "data": {
            "overview": overview,
            "content_by_type": [
                {"type": content_type.value, "count": count, "views": int(views)}
                for content_type, count, views in by_type
            ],
            "top_content": [
                {
                    "id": row.id,
                    "title": row.title,
                    "slug": row.slug,
                    "type": row.type.value,
                    "view_count": row.view_count,
                    "url": row.url,
                }
                for row in top_content
            ],
            "date_range": {"start": start, "end": end},
        },
    }

@router.get("/categories")
async def get_categories(db: Session = Depends(get_db)):
    rows = (
        db.query(Content.category, func.count(Content.id))
        .filter(Content.status == ContentStatus.PUBLISHED, Content.category.isnot(None))
        .group_by(Content.category)
        .order_by(func.count(Content.id).desc())
        .all()
    )
    return {
        "success": True,
        "data": {"categories": [{"name": name, "count": count} for name, count in rows]},
    }

@router.get("/tags")
async def get_tags(db: Session = Depends(get_db)):
    counts = Counter()
    for (tags,) in db.query(Content.tags).filter(Content.status == ContentStatus.PUBLISHED).all():
        counts.update(tags or [])

    return {
        "success": True,
        "data": {"tags": [{"name": name, "count": count} for name, count in counts.most_common()]},
    }
