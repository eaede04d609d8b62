"""
User & OTP Models — Identity store for students and admins.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Integer

from coursehub.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=True)
    mobile = Column(String(20), unique=True, index=True, nullable=True)   # E.164, e.g. +919876543210
    password_hash = Column(String(128), nullable=True)                    # bcrypt; empty for OTP-only accounts

    is_verified = Column(Boolean, default=False)
    role = Column(String(16), default="student")  # student | admin

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class OTPCode(Base):
    __tablename__ = "otps"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    mobile = Column(String(20), nullable=False, index=True)
    code = Column(String(6), nullable=False)

    expires_at = Column(DateTime, nullable=False, index=True)
    is_used = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
