"""
Entitlement Ledger — Who holds paid access to which course, and until when.
"""
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from coursehub.models.catalog import Course
from coursehub.models.entitlement import UserCourse


class EntitlementLedger:
    """Read access checks and the insert-only grant used by the payment engine."""

    @staticmethod
    def _live(now: datetime):
        return or_(UserCourse.expiry_date.is_(None), UserCourse.expiry_date > now)

    @staticmethod
    def has_access(db: Session, user_id: str, course_id: str, now: Optional[datetime] = None) -> bool:
        """True iff a completed entitlement exists whose expiry is unset or strictly in the future."""
        now = now or datetime.utcnow()
        row = (
            db.query(UserCourse.id)
            .filter(
                UserCourse.user_id == user_id,
                UserCourse.course_id == course_id,
                UserCourse.status == "completed",
                EntitlementLedger._live(now),
            )
            .first()
        )
        return row is not None

    @staticmethod
    def expiry_for(course: Course, granted_at: datetime) -> Optional[datetime]:
        """Access end for a purchase made at ``granted_at``; None means perpetual."""
        if course.validity_days:
            return granted_at + timedelta(days=course.validity_days)
        if course.expires_on:
            return datetime.combine(course.expires_on, time.max)
        return None

    @staticmethod
    def grant(
        db: Session,
        user_id: str,
        course_id: str,
        amount: Decimal,
        transaction_id: str,
        gateway_payment_id: Optional[str],
        expiry_date: Optional[datetime],
    ) -> UserCourse:
        """Stage the entitlement row. The caller owns the commit.

        Only the payment engine's success path calls this, inside the same
        database transaction that flips the payment to ``success``.
        """
        entry = UserCourse(
            user_id=user_id,
            course_id=course_id,
            amount=amount,
            transaction_id=transaction_id,
            gateway_payment_id=gateway_payment_id,
            expiry_date=expiry_date,
            status="completed",
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def list_courses(db: Session, user_id: str, now: Optional[datetime] = None) -> list[tuple[Course, UserCourse]]:
        """Courses the user can currently open, most recent purchase first."""
        now = now or datetime.utcnow()
        return (
            db.query(Course, UserCourse)
            .join(UserCourse, UserCourse.course_id == Course.id)
            .filter(
                UserCourse.user_id == user_id,
                UserCourse.status == "completed",
                EntitlementLedger._live(now),
            )
            .order_by(UserCourse.purchase_date.desc())
            .all()
        )
