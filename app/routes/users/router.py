import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import apply_updates, get_db
from app.models.all_models import User, UserRole, local_now
from app.routes.users.schemas import ProfileUpdate, AdminUserUpdate
from app.schemas.user import UserResponse
from app.utils.auth import get_current_user, require_admin, ensure_owner_or_admin
from app.utils.pagination import PageParams, paginate, apply_sort, apply_search

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

USER_SORT_FIELDS = {"created_at", "updated_at", "first_name", "last_name", "email", "role", "last_login"}

def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user

def _user_payload(user: User, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": {"user": UserResponse.model_validate(user)}}
    if message:
        body["message"] = message
    return body

@router.get("")
async def get_users(
    q: Optional[str] = Query(None, description="Search by name, email, institution or specialization"),
    role: Optional[UserRole] = Query(None, description="Filter by user role"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    is_verified: Optional[bool] = Query(None, description="Filter by verification status"),
    params: PageParams = Depends(),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Get users with filtering and pagination (Admin only)
    """
    query = db.query(User)
    query = apply_search(query, q, [User.first_name, User.last_name, User.email, User.institution, User.specialization])

    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if is_verified is not None:
        query = query.filter(User.is_verified == is_verified)

    query = apply_sort(query, User, params.sort, USER_SORT_FIELDS)
    users, pagination = paginate(query, params)

    return {
        "success": True,
        "data": {
            "users": [UserResponse.model_validate(user) for user in users],
            "pagination": pagination,
        },
    }

@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return _user_payload(current_user)

@router.put("/profile")
async def update_profile(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    apply_updates(current_user, profile_update.model_dump(exclude_unset=True))

    db.commit()
    db.refresh(current_user)
    return _user_payload(current_user, "Profile updated successfully")

@router.get("/stats/overview")
async def get_user_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    now = local_now()
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    overview = {
        "total_users": db.query(User).count(),
        "active_users": db.query(User).filter(User.is_active.is_(True)).count(),
        "verified_users": db.query(User).filter(User.is_verified.is_(True)).count(),
        "new_users_this_month": db.query(User).filter(User.created_at >= start_of_month).count(),
    }

    by_role = (
        db.query(User.role, func.count(User.id))
        .group_by(User.role)
        .order_by(func.count(User.id).desc())
        .all()
    )
    recent = db.query(User).order_by(User.created_at.desc()).limit(10).all()

    return {
        "success": True,
        "data": {
            "overview": overview,
            "users_by_role": [{"role": role.value, "count": count} for role, count in by_role],
            "recent_users": [UserResponse.model_validate(user) for user in recent],
        },
    }

@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ensure_owner_or_admin(current_user, user_id)
    return _user_payload(_get_user_or_404(db, user_id))

@router.put("/{user_id}")
async def update_user(
    user_id: UUID,
    user_update: AdminUserUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_user_or_404(db, user_id)
    updates = user_update.model_dump(exclude_unset=True)

    if updates.get("email"):
        email = updates["email"].strip().lower()
        taken = db.query(User).filter(User.email == email, User.id != user_id).first()
        if taken:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use"
            )
        updates["email"] = email

    apply_updates(user, updates)

    db.commit()
    db.refresh(user)
    return _user_payload(user, "User updated successfully")

@router.delete("/{user_id}")
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    user = _get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", user_id, current_user.email)

    return {"success": True, "message": "User deleted successfully"}

@router.post("/{user_id}/activate")
async def activate_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_user_or_404(db, user_id)
    user.is_active = True
    db.commit()
    db.refresh(user)
    return _user_payload(user, "User activated successfully")

@router.post("/{user_id}/deactivate")
async def deactivate_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    user = _get_user_or_404(db, user_id)
    user.is_active = False
    db.commit()
    db.refresh(user)
    return _user_payload(user, "User deactivated successfully")

@router.post("/{user_id}/verify")
async def verify_user(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_user_or_404(db, user_id)
    user.is_verified = True
    user.verification_token = None
    user.verification_token_expires = None
    db.commit()
    db.refresh(user)
    return _user_payload(user, "User verified successfully")

@router.post("/{user_id}/reset-login-attempts")
async def reset_login_attempts(
    user_id: UUID,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_user_or_404(db, user_id)
    user.reset_login_attempts()
    db.commit()
    db.refresh(user)
    return _user_payload(user, "Login attempts reset successfully")
