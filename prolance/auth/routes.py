from datetime import timedelta
import logging

import redis
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from prolance.auth.crud import get_user_by_email, get_user_by_identifier, create_user, set_password
from prolance.auth.mailer import MailerError, mask_email, send_otp_email
from prolance.auth.models import User
from prolance.auth.otp import OTP_EXPIRE_SECONDS, generate_otp, store_otp, has_otp, check_otp, consume_otp
from prolance.auth.schemas import (
    UserSignup, UserLogin, SignupResponse, LoginResponse, UpdateRoleRequest,
    ForgotPasswordRequest, VerifyOtpRequest, ResetPasswordRequest, OtpSentResponse
)
from prolance.database import get_db
from prolance.redis_client import get_redis
from prolance.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, verify_password, get_current_user
)
from prolance.users.schemas import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_FAILED = "Auth failed, email or password is wrong"


def issue_token(user: User) -> str:
    return create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def find_reset_user(db: Session, identifier: str) -> User:
    user = get_user_by_identifier(db, identifier)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No account found with this email or username"
        )
    return user


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(user_data: UserSignup, db: Session = Depends(get_db)):
    if get_user_by_email(db, user_data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists, you can login"
        )
    user = create_user(db, user_data.name, user_data.email, user_data.password, user_data.role)
    logger.info("New %s account %s created", user.role.value, user.username)
    return SignupResponse(message="Signup successful", user_id=user.id, username=user.username)


@router.post("/login", response_model=LoginResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = get_user_by_email(db, credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=LOGIN_FAILED)
    if user.is_banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been banned by an administrator"
        )
    return LoginResponse(
        message="Login successful",
        jwt_token=issue_token(user),
        user_id=user.id,
        name=user.name,
        email=user.email,
        username=user.username,
        role=user.role,
        is_admin=user.is_admin,
    )


@router.put("/update-role", response_model=UserResponse)
def update_role(
    request: UpdateRoleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admin accounts cannot change role")
    current_user.role = request.role
    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/forgot-password", response_model=OtpSentResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
):
    user = find_reset_user(db, request.identifier)
    otp = generate_otp()
    store_otp(redis_client, user.email, otp)
    try:
        send_otp_email(user.email, user.name, otp, OTP_EXPIRE_SECONDS // 60)
    except MailerError as exc:
        logger.error("Failed to send OTP email to %s: %s", mask_email(user.email), exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send OTP email. Please try again."
        )
    return OtpSentResponse(
        message="OTP sent to your email successfully",
        email=mask_email(user.email),
        expires_in=OTP_EXPIRE_SECONDS,
    )


@router.post("/verify-otp")
def verify_otp(
    request: VerifyOtpRequest,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
):
    user = find_reset_user(db, request.identifier)
    if not has_otp(redis_client, user.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No OTP request found or it has expired. Please request a new OTP."
        )
    if not check_otp(redis_client, user.email, request.otp):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP. Please try again.")
    return {"success": True, "message": "OTP verified successfully"}


@router.post("/reset-password")
def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
):
    if len(request.new_password) < 6:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 6 characters long"
        )
    user = find_reset_user(db, request.identifier)
    if not consume_otp(redis_client, user.email, request.otp):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    set_password(db, user, request.new_password)
    logger.info("Password reset for user %s", user.id)
    return {"success": True, "message": "Password reset successfully"}
