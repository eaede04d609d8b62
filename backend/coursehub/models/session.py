"""
Session Model — Single-device login marker.
Maps to the 'user_sessions' table; one row per user holding the latest token.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, ForeignKey

from coursehub.database import Base


class UserSession(Base):
    __tablename__ = "user_sessions"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    token = Column(Text, nullable=False)  # Latest issued JWT; older tokens are implicitly invalid

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
