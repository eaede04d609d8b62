"""
Entitlement Model — Paid access of a user to a course.
Rows are inserted once per successful purchase and never updated.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Numeric, ForeignKey

from coursehub.database import Base


class UserCourse(Base):
    __tablename__ = "user_courses"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String(32), ForeignKey("payment_transactions.transaction_id"), unique=True)
    gateway_payment_id = Column(String(64))

    expiry_date = Column(DateTime, nullable=True)  # NULL = perpetual
    status = Column(String(16), default="completed")

    purchase_date = Column(DateTime, default=datetime.utcnow)
