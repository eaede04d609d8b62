"""
Payment Transaction Model — One row per course purchase attempt.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Numeric, Text, ForeignKey

from coursehub.database import Base

INITIATED = "initiated"
PENDING = "pending"
SUCCESS = "success"
FAILED = "failed"
CANCELLED = "cancelled"
TIMEOUT = "timeout"

OPEN_STATUSES = (INITIATED, PENDING)
TERMINAL_STATUSES = (SUCCESS, FAILED, CANCELLED, TIMEOUT)


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    transaction_id = Column(String(32), unique=True, nullable=False, index=True)  # txnid sent to the gateway
    idempotency_key = Column(String(64), unique=True, nullable=False)            # UNIQUE closes the double-submit race

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)  # Fixed at creation
    currency = Column(String(3), default="INR")
    product_info = Column(String(200))

    # Status tracking
    status = Column(String(16), default=INITIATED, index=True)
    # Statuses: initiated → pending → success | failed | cancelled | timeout

    gateway_payment_id = Column(String(64), index=True)  # mihpayid
    gateway_txn_id = Column(String(64))
    payment_mode = Column(String(32))

    hash = Column(String(128))            # Outbound signature
    response_hash = Column(String(128))   # Inbound signature as received
    request_params = Column(JSON, default=dict)
    gateway_response = Column(JSON, nullable=True)

    error_message = Column(Text)
    error_code = Column(String(32))

    ip_address = Column(String(45))
    user_agent = Column(String(256))

    initiated_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
