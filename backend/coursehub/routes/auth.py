"""
Auth Routes — Registration, password/OTP login, profile and logout.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from coursehub.database import get_db
from coursehub.models.user import User
from coursehub.schemas.schemas import (
    RegisterRequest, RegisterResponse, LoginRequest, SendOTPRequest, VerifyOTPRequest,
    TokenResponse, UserView, ProfileUpdateRequest, AdminResetRequest, AdminResetConfirm,
    MessageResponse,
)
from coursehub.services.auth_service import AuthService
from coursehub.services.sms_service import OtpSender, get_otp_sender
from coursehub.utils.auth import get_current_user
from coursehub.utils.rate_limiter import rate_limit

router = APIRouter(
    prefix="/api/auth",
    tags=["Auth"],
    dependencies=[Depends(rate_limit(requests=30, window=60, scope="auth"))],
)


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    sender: OtpSender = Depends(get_otp_sender),
):
    """Create a student account. A mobile number also receives a verification OTP."""
    user = AuthService.register(db, sender, payload.email, payload.mobile, payload.password)
    return RegisterResponse(user_id=user.id)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user, token = AuthService.login_with_password(db, payload.email_or_phone, payload.password)
    return TokenResponse(token=token, user=UserView.model_validate(user))


@router.post("/send-otp", response_model=MessageResponse)
def send_otp(
    payload: SendOTPRequest,
    db: Session = Depends(get_db),
    sender: OtpSender = Depends(get_otp_sender),
):
    AuthService.send_login_otp(db, sender, payload.mobile)
    return MessageResponse(message="OTP sent successfully")


@router.post("/verify-otp", response_model=TokenResponse)
def verify_otp(payload: VerifyOTPRequest, db: Session = Depends(get_db)):
    user, token = AuthService.login_with_otp(db, payload.mobile, payload.code)
    return TokenResponse(token=token, user=UserView.model_validate(user))


@router.get("/profile", response_model=UserView)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=UserView)
def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AuthService.update_profile(db, user, payload.email)


@router.post("/logout", response_model=MessageResponse)
def logout(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """End the current session; the token stops working immediately."""
    AuthService.end_session(db, user)
    return MessageResponse(message="Logged out successfully")


# ─── Admin password reset ────────────────────────────────────────────

@router.post("/admin/forgot-password", response_model=MessageResponse)
def request_admin_password_reset(
    payload: AdminResetRequest,
    db: Session = Depends(get_db),
    sender: OtpSender = Depends(get_otp_sender),
):
    message = AuthService.request_admin_password_reset(db, sender, payload.email_or_phone)
    return MessageResponse(message=message)


@router.post("/admin/reset-password", response_model=MessageResponse)
def reset_admin_password(payload: AdminResetConfirm, db: Session = Depends(get_db)):
    AuthService.reset_admin_password(db, payload.email_or_phone, payload.otp, payload.new_password)
    return MessageResponse(message="Password updated successfully")
