# app/routes/auth/router.py

import logging
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status, BackgroundTasks
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.all_models import User, AuthenticationError, local_now
from app.routes.auth.schemas import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ChangePasswordRequest,
    VerifyEmailRequest,
    AuthPayload,
    TokenPair,
)
from app.schemas.user import UserResponse
from app.utils.auth import (
    hash_password,
    verify_password,
    verify_token,
    issue_tokens,
    generate_reset_token,
    hash_token,
    get_current_user,
)
from app.utils.email import send_verification_email, send_password_reset_email
from app.utils.rate_limit import limiter, AUTH_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

RESET_TOKEN_TTL = timedelta(minutes=10)
RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent."

# ================================
# REGISTRATION & LOGIN
# ================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    user_data: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """
    Register a new account.
    Only the `user` and `radiologist` roles can be self-assigned.
    """
    email = user_data.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User with this email already exists"
        )

    new_user = User(
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        email=email,
        password=hash_password(user_data.password),
        role=user_data.role,
        specialization=user_data.specialization,
        license_number=user_data.license_number,
        institution=user_data.institution,
        phone=user_data.phone,
    )
    verification_token = new_user.generate_verification_token()

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    background_tasks.add_task(send_verification_email, new_user.email, new_user.first_name, verification_token)
    logger.info("Registered %s as %s", new_user.email, new_user.role.value)

    payload = AuthPayload(user=UserResponse.model_validate(new_user), **issue_tokens(new_user))
    return {
        "success": True,
        "message": "User registered successfully. Please check your email for verification.",
        "data": payload,
    }

@router.post("/login")
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate with email and password and return a token pair."""
    try:
        user = User.find_by_credentials(db, login_data.email, login_data.password)
    except AuthenticationError as e:
        logger.info("Failed login for %s: %s", login_data.email, e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

    payload = AuthPayload(user=UserResponse.model_validate(user), **issue_tokens(user))
    return {"success": True, "message": "Login successful", "data": payload}

@router.post("/refresh")
async def refresh_token(
    token_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    if not token_data.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token is required"
        )

    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid refresh token"
    )
    try:
        payload = verify_token(token_data.refresh_token, token_type="refresh")
        user_id = uuid.UUID(str(payload.get("sub")))
    except (HTTPException, ValueError):
        raise invalid

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise invalid

    return {"success": True, "data": TokenPair(**issue_tokens(user))}

@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; clients discard them
    return {"success": True, "message": "Logged out successfully"}

@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": UserResponse.model_validate(current_user)}}

# ================================
# PASSWORD MANAGEMENT
# ================================

@router.post("/forgot-password")
@limiter.limit(AUTH_LIMIT)
async def forgot_password(
    request: Request,
    reset_request: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Email a reset link; the response never reveals whether the account exists."""
    user = db.query(User).filter(
        User.email == reset_request.email.strip().lower(),
        User.is_active.is_(True)
    ).first()

    if user:
        token, digest = generate_reset_token()
        user.reset_password_token = digest
        user.reset_password_expires = local_now() + RESET_TOKEN_TTL
        db.commit()
        background_tasks.add_task(send_password_reset_email, user.email, user.first_name, token)

    return {"success": True, "message": RESET_MESSAGE}

@router.post("/reset-password")
@limiter.limit(AUTH_LIMIT)
async def reset_password(
    request: Request,
    reset_data: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(
        User.reset_password_token == hash_token(reset_data.token),
        User.reset_password_expires > local_now(),
        User.is_active.is_(True)
    ).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user.password = hash_password(reset_data.password)
    user.reset_password_token = None
    user.reset_password_expires = None
    user.reset_login_attempts()
    db.commit()

    return {"success": True, "message": "Password reset successful"}

@router.post("/change-password")
async def change_password(
    password_data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not verify_password(password_data.current_password, current_user.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    current_user.password = hash_password(password_data.new_password)
    db.commit()

    return {"success": True, "message": "Password changed successfully"}

# ================================
# EMAIL VERIFICATION
# ================================

@router.post("/verify-email")
async def verify_email(
    verify_data: VerifyEmailRequest,
    db: Session = Depends(get_db)
):
    if not verify_data.token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verification token is required"
        )

    user = db.query(User).filter(
        User.verification_token == verify_data.token,
        User.verification_token_expires > local_now()
    ).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification token"
        )

    user.is_verified = True
    user.verification_token = None
    user.verification_token_expires = None
    db.commit()

    return {"success": True, "message": "Email verified successfully"}

@router.post("/resend-verification")
@limiter.limit(AUTH_LIMIT)
async def resend_verification(
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already verified"
        )

    token = user.generate_verification_token()
    db.commit()
    background_tasks.add_task(send_verification_email, user.email, user.first_name, token)

    return {"success": True, "message": "Verification email sent"}
