import io
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="coursehub-tests-")

# Settings are read at import time, so the environment goes first
os.environ.update({
    "ENVIRONMENT": "test",
    "DATABASE_URL": f"sqlite:///{os.path.join(_TMP, 'test.db')}",
    "JWT_SECRET": "test-secret",
    "BCRYPT_ROUNDS": "4",
    "PAYU_MERCHANT_KEY": "testKey",
    "PAYU_SALT": "testSalt",
    "PAYU_BASE_URL": "https://test.payu.in",
    "SERVER_URL": "http://tests",
    "UPLOAD_DIR": os.path.join(_TMP, "uploads"),
    "LOG_DIR": os.path.join(_TMP, "logs"),
    "STORAGE_BACKEND": "local",
})
for _name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER", "ALLOW_STUDENT_PASSWORD_LOGIN"):
    os.environ.pop(_name, None)

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from reportlab.pdfgen import canvas

from coursehub.database import Base, SessionLocal, engine
from coursehub.main import app
from coursehub.models.payment import PaymentTransaction
from coursehub.services.auth_service import AuthService
from coursehub.services.catalog_service import CatalogService
from coursehub.services.gateway import format_amount
from coursehub.services.payment_service import get_payment_service
from coursehub.utils.rate_limiter import reset_rate_limits

ADMIN_PASSWORD = "Admin@1234"
STUDENT_MOBILE = "+919876543210"


@pytest.fixture(autouse=True)
def reset_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def student(db):
    return AuthService.create_user(db, email="student@example.com", mobile=STUDENT_MOBILE, is_verified=True)


@pytest.fixture
def other_student(db):
    return AuthService.create_user(db, email="other@example.com", mobile="+919812345678", is_verified=True)


@pytest.fixture
def admin(db):
    return AuthService.create_user(
        db, email="admin@example.com", mobile="+919800000001",
        password=ADMIN_PASSWORD, role="admin", is_verified=True,
    )


def auth_headers(db, user) -> dict:
    return {"Authorization": f"Bearer {AuthService.start_session(db, user)}"}


@pytest.fixture
def student_headers(db, student):
    return auth_headers(db, student)


@pytest.fixture
def admin_headers(db, admin):
    return auth_headers(db, admin)


@pytest.fixture
def course(db, admin):
    return CatalogService.create_course(
        db, admin,
        name="Organic Chemistry",
        description="Reaction mechanisms and notes",
        price=Decimal("1000.00"),
        discount=Decimal("10"),
        validity_days=30,
    )


@pytest.fixture
def payment_service():
    return get_payment_service()


@pytest.fixture
def sample_pdf() -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer)
    c.drawString(100, 750, "Chapter 1")
    c.showPage()
    c.drawString(100, 750, "Chapter 2")
    c.save()
    return buffer.getvalue()


def signed_response(gateway, txn: PaymentTransaction, status: str = "success", **overrides) -> dict:
    """Gateway callback body for ``txn``, hashed the way PayU would hash it."""
    params = txn.request_params
    response = {
        "txnid": txn.transaction_id,
        "amount": format_amount(txn.amount),
        "productinfo": params["productinfo"],
        "firstname": params["firstname"],
        "email": params["email"],
        "udf1": params["udf1"],
        "udf2": params["udf2"],
        "status": status,
        "mihpayid": "403993715521234567",
        "mode": "UPI",
        "bank_ref_num": "BANKREF1",
    }
    response.update(overrides)
    response["hash"] = gateway.response_hash(response)
    return response
