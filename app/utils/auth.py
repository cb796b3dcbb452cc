# app/utils/auth.py
import hashlib
import logging
import secrets
import time
import uuid
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

# Local imports
from app.database import get_db
from app.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_SALT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        return False

def generate_reset_token() -> tuple:
    """Return (plain token for the e-mail, sha256 digest for the database)."""
    token = secrets.token_hex(20)
    return token, hash_token(token)

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()

# ================================
# TOKENS
# ================================

def create_access_token(data: Dict[str, str], expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expires_delta = expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    to_encode.update({"exp": int(time.time() + expires_delta.total_seconds()), "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def create_refresh_token(data: Dict[str, str], expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT refresh token signed with its own secret."""
    to_encode = data.copy()
    expires_delta = expires_delta or timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)
    to_encode.update({"exp": int(time.time() + expires_delta.total_seconds()), "type": "refresh"})
    return jwt.encode(to_encode, settings.JWT_REFRESH_SECRET, algorithm=settings.JWT_ALGORITHM)

def verify_token(token: str, token_type: str = "access") -> Dict:
    """Verify a JWT token and return its payload."""
    secret = settings.JWT_SECRET if token_type == "access" else settings.JWT_REFRESH_SECRET
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired."
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token."
        )

    if payload.get("type") != token_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token."
        )
    return payload

def issue_tokens(user) -> Dict[str, str]:
    return {
        "token": create_access_token({"sub": str(user.id), "role": user.role.value}),
        "refresh_token": create_refresh_token({"sub": str(user.id)}),
    }

# Import User model here to avoid circular imports
from app.models.all_models import User, UserRole

# ================================
# AUTHENTICATION DEPENDENCIES
# ================================

def _resolve_user(token: str, db: Session) -> User:
    payload = verify_token(token, token_type="access")
    user = db.query(User).filter(User.id == _parse_subject(payload)).first()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token. User not found."
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account has been deactivated."
        )
    if user.is_locked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is temporarily locked."
        )
    return user

def _parse_subject(payload: Dict):
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token."
        )

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Retrieve the current authenticated user from the bearer token."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided."
        )
    return _resolve_user(credentials.credentials, db)

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Like get_current_user, but anonymous or invalid credentials yield None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _resolve_user(credentials.credentials, db)
    except HTTPException:
        return None

# ================================
# AUTHORIZATION DEPENDENCIES
# ================================

def require_roles(*allowed_roles: UserRole):
    """
    Dependency factory restricting a route to specific roles.

    Usage:
    @router.get("/leads")
    async def list_leads(user: User = Depends(require_roles(UserRole.ADMIN, UserRole.CMS_EDITOR))):
        ...
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Required role: " + " or ".join(role.value for role in allowed_roles)
            )
        return current_user

    return role_checker

require_admin = require_roles(UserRole.ADMIN)
require_editor = require_roles(UserRole.ADMIN, UserRole.CMS_EDITOR)

async def require_verified(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email verification required."
        )
    return current_user

def ensure_owner_or_admin(current_user: User, owner_id) -> None:
    if current_user.role != UserRole.ADMIN and str(current_user.id) != str(owner_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You can only access your own resources."
        )

async def require_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required"
        )
    if x_api_key not in settings.valid_api_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )
    return x_api_key

# ================================
# PERMISSIONS
# ================================

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserRole.ADMIN.value: ["*"],
    UserRole.CMS_EDITOR.value: ["content:read", "content:write", "content:update", "content:delete"],
    UserRole.RADIOLOGIST.value: ["content:read", "user:read", "user:update_own"],
    UserRole.USER.value: ["content:read", "user:read_own", "user:update_own"],
}

def check_permission(role, permission: str) -> bool:
    granted = ROLE_PERMISSIONS.get(getattr(role, "value", role), [])
    resource = permission.split(":", 1)[0]
    return "*" in granted or permission in granted or f"{resource}:*" in granted

def require_permission(permission: str):
    async def permission_checker(current_user: User = Depends(get_current_user)) -> User:
        if not check_permission(current_user.role, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions."
            )
        return current_user

    return permission_checker

# ================================
# PER-USER RATE LIMIT
# ================================

USER_RATE_LIMIT = 100
USER_RATE_WINDOW = 15 * 60

_user_requests: Dict[str, List[float]] = defaultdict(list)

def reset_user_rate_limits() -> None:
    _user_requests.clear()

async def user_rate_limit(
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user)
) -> None:
    """In-memory sliding window keyed by user id, falling back to client IP."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    key = str(current_user.id) if current_user else (request.client.host if request.client else "anonymous")
    now = time.time()
    window_start = now - USER_RATE_WINDOW
    hits = [stamp for stamp in _user_requests[key] if stamp > window_start]

    if len(hits) >= USER_RATE_LIMIT:
        retry_after = int(hits[0] + USER_RATE_WINDOW - now) + 1
        _user_requests[key] = hits
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={"Retry-After": str(retry_after)}
        )

    hits.append(now)
    _user_requests[key] = hits
