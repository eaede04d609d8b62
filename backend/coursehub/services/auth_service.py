"""
Auth Service — Registration, password and OTP login, single-device sessions.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from coursehub.config import get_settings
from coursehub.errors import AuthorizationError, ConflictError, NotFoundError, RateLimitError, ValidationError
from coursehub.models.session import UserSession
from coursehub.models.user import User, OTPCode
from coursehub.services.sms_service import OtpSender
from coursehub.utils.auth import hash_password, verify_password, generate_otp, create_access_token
from coursehub.utils.validators import validate_email, validate_mobile, password_problems, is_email_identifier

logger = logging.getLogger(__name__)
settings = get_settings()

NEUTRAL_RESET_MESSAGE = "If an admin account exists with this contact, an OTP has been sent."


class AuthService:
    """Identity store operations. Every method takes the request's DB session."""

    # ─── Users ───────────────────────────────────────────────────────

    @staticmethod
    def find_by_identifier(db: Session, identifier: str) -> Optional[User]:
        identifier = identifier.strip()
        if is_email_identifier(identifier):
            return db.query(User).filter(func.lower(User.email) == identifier.lower()).first()
        return db.query(User).filter(User.mobile == identifier).first()

    @staticmethod
    def create_user(
        db: Session,
        email: Optional[str] = None,
        mobile: Optional[str] = None,
        password: Optional[str] = None,
        role: str = "student",
        is_verified: bool = False,
    ) -> User:
        errors = []
        if not email and not mobile:
            errors.append({"field": "email", "message": "Email or mobile is required"})
        if email and not validate_email(email):
            errors.append({"field": "email", "message": "Invalid email address"})
        if mobile and not validate_mobile(mobile):
            errors.append({"field": "mobile", "message": "Mobile must be in E.164 format, e.g. +919876543210"})
        if password is not None:
            errors.extend({"field": "password", "message": m} for m in password_problems(password))
        if errors:
            raise ValidationError("Registration validation failed", errors=errors)

        email = email.strip().lower() if email else None
        if email and db.query(User.id).filter(func.lower(User.email) == email).first():
            raise ConflictError("User with this email already exists", error_code="EMAIL_TAKEN")
        if mobile and db.query(User.id).filter(User.mobile == mobile).first():
            raise ConflictError("User with this mobile number already exists", error_code="MOBILE_TAKEN")

        user = User(
            email=email,
            mobile=mobile,
            password_hash=hash_password(password) if password else None,
            role=role,
            is_verified=is_verified,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("User registered id=%s role=%s", user.id, user.role)
        return user

    @staticmethod
    def register(db: Session, sender: OtpSender, email: Optional[str], mobile: Optional[str], password: str) -> User:
        user = AuthService.create_user(db, email=email, mobile=mobile, password=password)
        if user.mobile:
            AuthService.issue_otp(db, sender, user.mobile)
        return user

    @staticmethod
    def update_profile(db: Session, user: User, email: Optional[str]) -> User:
        if email:
            if not validate_email(email):
                raise ValidationError("Invalid email address", errors=[{"field": "email", "message": "Invalid email address"}])
            email = email.strip().lower()
            taken = db.query(User).filter(func.lower(User.email) == email, User.id != user.id).first()
            if taken:
                raise ConflictError("Email already taken", error_code="EMAIL_TAKEN")
            user.email = email
            user.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(user)
        return user

    # ─── Sessions ────────────────────────────────────────────────────

    @staticmethod
    def start_session(db: Session, user: User) -> str:
        """Issue a token and make it the user's only valid one (upsert)."""
        token = create_access_token(user)
        session = db.query(UserSession).filter(UserSession.user_id == user.id).first()
        if session:
            session.token = token
            session.updated_at = datetime.utcnow()
        else:
            db.add(UserSession(user_id=user.id, token=token))
        db.commit()
        return token

    @staticmethod
    def end_session(db: Session, user: User):
        db.query(UserSession).filter(UserSession.user_id == user.id).delete()
        db.commit()

    @staticmethod
    def login_with_password(db: Session, identifier: str, password: str) -> tuple[User, str]:
        user = AuthService.find_by_identifier(db, identifier)
        if not user:
            raise AuthorizationError("Invalid credentials", error_code="INVALID_CREDENTIALS")

        if not user.is_admin and not settings.ALLOW_STUDENT_PASSWORD_LOGIN:
            raise AuthorizationError("Please use OTP login for this account", error_code="OTP_LOGIN_REQUIRED")
        if not user.password_hash:
            raise AuthorizationError("Account does not have a password set", error_code="INVALID_CREDENTIALS")
        if not verify_password(password, user.password_hash):
            logger.warning("Failed password login for user=%s", user.id)
            raise AuthorizationError("Invalid credentials", error_code="INVALID_CREDENTIALS")

        return user, AuthService.start_session(db, user)

    # ─── OTP ─────────────────────────────────────────────────────────

    @staticmethod
    def issue_otp(db: Session, sender: OtpSender, mobile: str) -> OTPCode:
        window_start = datetime.utcnow() - timedelta(minutes=settings.OTP_WINDOW_MINUTES)
        recent = (
            db.query(func.count(OTPCode.id))
            .filter(OTPCode.mobile == mobile, OTPCode.created_at > window_start)
            .scalar()
        ) or 0
        if recent >= settings.OTP_MAX_REQUESTS:
            raise RateLimitError("Too many OTP requests. Please try again later.")

        otp = OTPCode(
            mobile=mobile,
            code=generate_otp(),
            expires_at=datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRY_MINUTES),
            is_used=False,
        )
        db.add(otp)
        db.commit()
        db.refresh(otp)

        if not sender.send(mobile, otp.code):
            logger.warning("OTP delivery to %s failed", mobile)
        return otp

    @staticmethod
    def send_login_otp(db: Session, sender: OtpSender, mobile: str) -> User:
        """Send a login code, auto-registering unknown mobiles as students."""
        if not validate_mobile(mobile):
            raise ValidationError("Invalid mobile number", errors=[{"field": "mobile", "message": "Mobile must be in E.164 format"}])
        user = db.query(User).filter(User.mobile == mobile).first()
        if not user:
            user = AuthService.create_user(db, mobile=mobile)
        AuthService.issue_otp(db, sender, mobile)
        return user

    @staticmethod
    def consume_otp(db: Session, mobile: str, code: str) -> OTPCode:
        otp = (
            db.query(OTPCode)
            .filter(
                OTPCode.mobile == mobile,
                OTPCode.code == code,
                OTPCode.is_used.is_(False),
                OTPCode.expires_at > datetime.utcnow(),
            )
            .order_by(OTPCode.created_at.desc())
            .first()
        )
        if not otp:
            raise ValidationError("Invalid or expired OTP", errors=[{"field": "code", "message": "Invalid or expired OTP"}])
        otp.is_used = True
        return otp

    @staticmethod
    def login_with_otp(db: Session, mobile: str, code: str) -> tuple[User, str]:
        user = db.query(User).filter(User.mobile == mobile).first()
        if not user:
            raise NotFoundError("User with this mobile number does not exist", error_code="USER_NOT_FOUND")
        AuthService.consume_otp(db, mobile, code)
        user.is_verified = True
        db.commit()
        return user, AuthService.start_session(db, user)

    # ─── Admin password reset ────────────────────────────────────────

    @staticmethod
    def request_admin_password_reset(db: Session, sender: OtpSender, identifier: str) -> str:
        user = AuthService.find_by_identifier(db, identifier)
        if not user or not user.is_admin:
            return NEUTRAL_RESET_MESSAGE
        if not user.mobile:
            raise ValidationError("Admin account does not have a mobile number registered. Please contact support.")
        AuthService.issue_otp(db, sender, user.mobile)
        return "OTP sent successfully to your registered mobile number"

    @staticmethod
    def reset_admin_password(db: Session, identifier: str, code: str, new_password: str):
        user = AuthService.find_by_identifier(db, identifier)
        if not user or not user.is_admin:
            raise AuthorizationError("Invalid credentials", error_code="INVALID_CREDENTIALS")
        if not user.mobile:
            raise ValidationError("Admin account does not have a mobile number registered")

        problems = password_problems(new_password)
        if problems:
            raise ValidationError(
                "Password validation failed",
                errors=[{"field": "newPassword", "message": m} for m in problems],
            )

        AuthService.consume_otp(db, user.mobile, code)
        user.password_hash = hash_password(new_password)
        user.updated_at = datetime.utcnow()
        # Existing admin tokens keep working; admins are exempt from session checks
        db.commit()
        logger.info("Admin password updated user=%s", user.id)
