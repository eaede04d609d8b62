"""
Admin Routes — User and transaction listings, category management.
Every endpoint requires an admin token.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coursehub.database import get_db
from coursehub.errors import ValidationError
from coursehub.models import payment as status
from coursehub.models.user import User
from coursehub.schemas.schemas import CategoryCreate, CategoryView, TransactionPage, AdminTransactionView
from coursehub.services.catalog_service import CatalogService
from coursehub.services.payment_service import PaymentService
from coursehub.utils.auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

KNOWN_STATUSES = status.OPEN_STATUSES + status.TERMINAL_STATUSES


@router.get("/users")
def list_users(
    role: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List users with an optional role filter."""
    query = db.query(User).order_by(User.created_at.desc())
    if role:
        query = query.filter(User.role == role)

    total = query.count()
    users = query.offset(offset).limit(limit).all()

    return {
        "total": total,
        "users": [
            {
                "id": u.id,
                "email": u.email,
                "mobile": u.mobile,
                "role": u.role,
                "isVerified": u.is_verified,
                "createdAt": u.created_at.isoformat() if u.created_at else None,
            }
            for u in users
        ],
    }


@router.get("/transactions", response_model=TransactionPage)
def list_transactions(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List payment transactions, newest first."""
    if status_filter and status_filter not in KNOWN_STATUSES:
        raise ValidationError(
            "Unknown status filter",
            errors=[{"field": "status", "message": f"Must be one of {', '.join(KNOWN_STATUSES)}"}],
        )
    total, rows = PaymentService.list_transactions(db, status_filter, limit=limit, offset=offset)
    return TransactionPage(total=total, items=[AdminTransactionView.model_validate(r) for r in rows])


@router.post("/categories", response_model=CategoryView, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    return CatalogService.create_category(db, payload.name, payload.description)
