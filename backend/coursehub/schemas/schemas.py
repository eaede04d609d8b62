"""
Pydantic Schemas — Request & Response models for API validation.

Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, List
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ──────────────── Auth ────────────────

class RegisterRequest(CamelModel):
    email: Optional[str] = None
    mobile: Optional[str] = None
    password: str


class RegisterResponse(CamelModel):
    message: str = "User registered successfully"
    user_id: str


class LoginRequest(CamelModel):
    email_or_phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SendOTPRequest(CamelModel):
    mobile: str


class VerifyOTPRequest(CamelModel):
    mobile: str
    code: str = Field(..., min_length=6, max_length=6)


class UserView(CamelModel):
    id: str
    email: Optional[str] = None
    mobile: Optional[str] = None
    role: str
    is_verified: bool
    created_at: Optional[datetime] = None


class TokenResponse(CamelModel):
    token: str
    user: UserView


class ProfileUpdateRequest(CamelModel):
    email: Optional[str] = None


class AdminResetRequest(CamelModel):
    email_or_phone: str


class AdminResetConfirm(CamelModel):
    email_or_phone: str
    otp: str = Field(..., min_length=6, max_length=6)
    new_password: str


class MessageResponse(CamelModel):
    message: str


# ──────────────── Catalog ────────────────

class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None


class CategoryView(CamelModel):
    id: str
    name: str
    description: Optional[str] = None


class CourseCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category_id: Optional[str] = None
    about_creator: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    discount: Decimal = Field(Decimal("0"), ge=0, le=100, max_digits=5, decimal_places=2)
    validity_days: Optional[int] = Field(None, gt=0)
    expires_on: Optional[date] = None
    thumbnail_url: Optional[str] = None


class CourseUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category_id: Optional[str] = None
    about_creator: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    discount: Optional[Decimal] = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)
    validity_days: Optional[int] = Field(None, gt=0)
    expires_on: Optional[date] = None
    thumbnail_url: Optional[str] = None


class CourseView(CamelModel):
    id: str
    name: str
    description: str
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    about_creator: Optional[str] = None
    price: Decimal
    discount: Decimal
    final_price: Decimal
    validity_days: Optional[int] = None
    expires_on: Optional[date] = None
    thumbnail_url: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None


class MyCourseView(CourseView):
    purchase_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    transaction_id: str


class PDFView(CamelModel):
    id: str
    course_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    file_size: int = 0
    created_at: Optional[datetime] = None


class VideoCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    video_url: str = Field(..., min_length=1, max_length=512)
    description: Optional[str] = None


class VideoView(CamelModel):
    id: str
    course_id: str
    title: str
    video_url: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


# ──────────────── Payment ────────────────

class PaymentInitRequest(CamelModel):
    course_id: str = Field(..., min_length=1)


class PaymentInitResponse(CamelModel):
    transaction_id: str
    payment_url: str
    payment_params: Dict[str, str]
    merchant_key: str


class CallbackResponse(CamelModel):
    transaction_id: str
    status: str
    gateway_payment_id: Optional[str] = None


class TransactionView(CamelModel):
    transaction_id: str
    course_id: str
    amount: Decimal
    currency: str
    status: str
    gateway_payment_id: Optional[str] = None
    payment_mode: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    initiated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class AdminTransactionView(TransactionView):
    user_id: str
    ip_address: Optional[str] = None


class TransactionPage(CamelModel):
    total: int
    items: List[AdminTransactionView]


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    database: str
    gateway: str
    version: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
