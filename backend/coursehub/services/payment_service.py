"""
Payment Transaction Engine — Course purchase lifecycle against the PayU gateway.

initiate → (customer pays at the gateway) → handle_callback → entitlement.

Guarantees:
- one open attempt per (user, course, time bucket), enforced by the UNIQUE
  idempotency key rather than a check-then-insert;
- the flip to ``success`` and the entitlement insert commit together or not
  at all;
- terminal rows are never transitioned again, so duplicate webhooks are no-ops;
  a verified success arriving for a row closed without payment is escalated,
  not dropped.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Mapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursehub.config import get_settings
from coursehub.errors import (
    ConflictError, NotFoundError, ValidationError, ForbiddenError,
    GatewayUnavailableError, GatewaySignatureError, EntitlementGrantFailure,
    PaymentReconciliationRequired,
)
from coursehub.models import payment as status
from coursehub.models.catalog import Course
from coursehub.models.payment import PaymentTransaction
from coursehub.models.user import User
from coursehub.services.entitlement_service import EntitlementLedger
from coursehub.services.gateway import PayUGateway, format_amount, map_status
from coursehub.utils.hashing import generate_idempotency_key, chain_idempotency_key, time_bucket

logger = logging.getLogger(__name__)

REQUIRED_CALLBACK_FIELDS = ("txnid", "status", "hash")
CENT = Decimal("0.01")


def discounted_amount(price: Decimal, discount: Optional[Decimal]) -> Decimal:
    """``price - price * discount / 100`` rounded half-up to paise; discount clamped to 0-100."""
    price = Decimal(price)
    pct = min(max(Decimal(discount or 0), Decimal(0)), Decimal(100))
    return (price - price * pct / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)


def new_transaction_id() -> str:
    """Locally generated gateway txnid (23 chars, under PayU's 25-char limit)."""
    return f"TXN{uuid.uuid4().hex[:20].upper()}"


@dataclass(frozen=True)
class InitiateResult:
    transaction: PaymentTransaction
    payment_url: str
    params: dict
    merchant_key: str
    replayed: bool = False


@dataclass(frozen=True)
class CallbackResult:
    transaction_id: str
    status: str
    gateway_payment_id: Optional[str]
    already_processed: bool = False


@dataclass(frozen=True)
class PaymentService:
    gateway: PayUGateway
    bucket_seconds: int = 60
    currency: str = "INR"

    # ─── Initiate ────────────────────────────────────────────────────

    def initiate(
        self,
        db: Session,
        user: User,
        course_id: str,
        request_time: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> InitiateResult:
        if not self.gateway.is_configured:
            raise GatewayUnavailableError()

        course = db.query(Course).filter(Course.id == course_id).first()
        if not course or not course.is_active:
            raise NotFoundError("Course not found", error_code="COURSE_NOT_FOUND")

        amount = discounted_amount(course.price, course.discount)
        if Decimal(course.price) <= 0 or amount <= 0:
            raise ValidationError(
                "Course is not available for purchase",
                errors=[{"field": "courseId", "message": "Course has no payable price"}],
            )

        if EntitlementLedger.has_access(db, user.id, course.id):
            raise ConflictError("You already have access to this course", error_code="ALREADY_ENTITLED")

        key = generate_idempotency_key(user.id, course.id, time_bucket(request_time, self.bucket_seconds))

        # Second pass only runs when our insert lost the unique-key race
        for _ in range(2):
            existing, key = self._resolve_key(db, key)
            if existing is not None:
                if existing.status == status.SUCCESS:
                    raise ConflictError("This course has already been paid for", error_code="ALREADY_PAID")
                logger.info(
                    "Replaying open payment attempt txnid=%s user=%s course=%s",
                    existing.transaction_id, user.id, course.id,
                )
                return self._result(existing, replayed=True)

            created = self._create(db, user, course, amount, key, ip_address, user_agent)
            if created is not None:
                return self._result(created)

        raise ConflictError("Payment is already being processed", error_code="DUPLICATE_REQUEST")

    def _resolve_key(self, db: Session, key: str) -> tuple[Optional[PaymentTransaction], str]:
        """Follow the key chain past attempts that ended without payment."""
        existing = self._find_by_key(db, key)
        while existing is not None and existing.status in (status.FAILED, status.CANCELLED, status.TIMEOUT):
            key = chain_idempotency_key(key, existing.transaction_id)
            existing = self._find_by_key(db, key)
        return existing, key

    @staticmethod
    def _find_by_key(db: Session, key: str) -> Optional[PaymentTransaction]:
        return db.query(PaymentTransaction).filter(PaymentTransaction.idempotency_key == key).first()

    def _create(
        self,
        db: Session,
        user: User,
        course: Course,
        amount: Decimal,
        key: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> Optional[PaymentTransaction]:
        transaction_id = new_transaction_id()
        params = self.gateway.build_payment_request(
            transaction_id=transaction_id,
            amount=amount,
            product_info=course.name[:100],
            first_name=_first_name(user),
            email=user.email or "",
            phone=user.mobile or "",
            user_id=user.id,
            course_id=course.id,
        )

        txn = PaymentTransaction(
            transaction_id=transaction_id,
            idempotency_key=key,
            user_id=user.id,
            course_id=course.id,
            amount=amount,
            currency=self.currency,
            product_info=params["productinfo"],
            status=status.INITIATED,
            hash=params["hash"],
            request_params=params,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:256],
            initiated_at=datetime.utcnow(),
        )
        db.add(txn)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Concurrent initiate detected for idempotency key, reusing winner user=%s course=%s",
                        user.id, course.id)
            return None

        db.refresh(txn)
        logger.info(
            "Payment transaction created txnid=%s user=%s course=%s amount=%s",
            txn.transaction_id, txn.user_id, txn.course_id, format_amount(txn.amount),
        )
        return txn

    def _result(self, txn: PaymentTransaction, replayed: bool = False) -> InitiateResult:
        return InitiateResult(
            transaction=txn,
            payment_url=self.gateway.payment_url,
            params=dict(txn.request_params or {}),
            merchant_key=self.gateway.merchant_key,
            replayed=replayed,
        )

    # ─── Callback ────────────────────────────────────────────────────

    def handle_callback(self, db: Session, response: Mapping[str, str]) -> CallbackResult:
        missing = [name for name in REQUIRED_CALLBACK_FIELDS if not response.get(name)]
        if missing:
            raise ValidationError(
                "Malformed gateway response",
                errors=[{"field": name, "message": "Field is required"} for name in missing],
            )

        txn = (
            db.query(PaymentTransaction)
            .filter(PaymentTransaction.transaction_id == response["txnid"].strip())
            .with_for_update()
            .first()
        )
        if txn is None:
            logger.error("Gateway callback for unknown transaction txnid=%s", response.get("txnid"))
            raise NotFoundError("Transaction not found", error_code="TRANSACTION_NOT_FOUND")

        if txn.status == status.SUCCESS:
            logger.info("Duplicate callback ignored txnid=%s status=%s", txn.transaction_id, txn.status)
            result = _callback_result(txn, already_processed=True)
            db.rollback()
            return result

        if txn.status in status.TERMINAL_STATUSES:
            return self._late_callback(db, txn, response)

        if not self.gateway.verify(response):
            self._transition(db, txn, status.FAILED, response,
                             error_code="SIGNATURE_INVALID", error_message="Response signature mismatch")
            db.commit()
            logger.error(
                "Payment callback rejected: invalid signature txnid=%s user=%s course=%s",
                txn.transaction_id, txn.user_id, txn.course_id,
            )
            raise GatewaySignatureError(txn.transaction_id)

        new_status = map_status(response.get("status"))

        if new_status == status.SUCCESS:
            if (response.get("amount") or "").strip() != format_amount(txn.amount):
                logger.error(
                    "Payment amount mismatch txnid=%s expected=%s received=%s",
                    txn.transaction_id, format_amount(txn.amount), response.get("amount"),
                )
                return self._close(db, txn, status.FAILED, response,
                                   error_code="AMOUNT_MISMATCH", error_message="Paid amount does not match order")
            return self._complete(db, txn, response)

        error_message = response.get("error_Message") or response.get("error") or None
        error_code = "PAYMENT_ERROR" if new_status in status.TERMINAL_STATUSES else None
        return self._close(db, txn, new_status, response, error_code=error_code, error_message=error_message)

    def _late_callback(self, db: Session, txn: PaymentTransaction, response: Mapping[str, str]) -> CallbackResult:
        """Callback for a row already closed without payment. The row itself never moves again."""
        transaction_id, user_id, course_id = txn.transaction_id, txn.user_id, txn.course_id
        recorded = txn.status
        result = _callback_result(txn, already_processed=True)
        db.rollback()

        if not self.gateway.verify(response):
            logger.error(
                "Late callback rejected: invalid signature txnid=%s user=%s course=%s",
                transaction_id, user_id, course_id,
            )
            raise GatewaySignatureError(transaction_id)

        if map_status(response.get("status")) != status.SUCCESS:
            logger.info("Duplicate callback ignored txnid=%s status=%s", transaction_id, recorded)
            return result

        logger.critical(
            "Verified gateway success for closed transaction txnid=%s status=%s user=%s course=%s "
            "mihpayid=%s amount=%s; manual reconciliation required",
            transaction_id, recorded, user_id, course_id, response.get("mihpayid"), response.get("amount"),
        )
        raise PaymentReconciliationRequired(transaction_id)

    def _transition(
        self,
        db: Session,
        txn: PaymentTransaction,
        new_status: str,
        response: Mapping[str, str],
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Conditional UPDATE: only rows still open may move. Returns False if another writer won."""
        now = now or datetime.utcnow()
        result = db.execute(
            update(PaymentTransaction)
            .where(
                PaymentTransaction.id == txn.id,
                PaymentTransaction.status.in_(status.OPEN_STATUSES),
            )
            .values({
                PaymentTransaction.status: new_status,
                PaymentTransaction.gateway_payment_id: response.get("mihpayid"),
                PaymentTransaction.gateway_txn_id: response.get("bank_ref_num") or response.get("txnid"),
                PaymentTransaction.payment_mode: response.get("mode"),
                PaymentTransaction.response_hash: response.get("hash"),
                PaymentTransaction.gateway_response: dict(response),
                PaymentTransaction.error_code: error_code,
                PaymentTransaction.error_message: error_message,
                PaymentTransaction.completed_at: now if new_status in status.TERMINAL_STATUSES else None,
                PaymentTransaction.updated_at: now,
            })
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _close(
        self,
        db: Session,
        txn: PaymentTransaction,
        new_status: str,
        response: Mapping[str, str],
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> CallbackResult:
        """Record a non-success outcome; never touches entitlements."""
        moved = self._transition(db, txn, new_status, response, error_code=error_code, error_message=error_message)
        db.commit()
        db.refresh(txn)
        if moved:
            logger.info("Payment transaction updated txnid=%s status=%s", txn.transaction_id, txn.status)
        return _callback_result(txn, already_processed=not moved)

    def _complete(self, db: Session, txn: PaymentTransaction, response: Mapping[str, str]) -> CallbackResult:
        """Flip to success and grant the entitlement in one database transaction."""
        transaction_id, user_id, course_id = txn.transaction_id, txn.user_id, txn.course_id
        amount = txn.amount
        now = datetime.utcnow()

        try:
            if not self._transition(db, txn, status.SUCCESS, response, now=now):
                db.rollback()
                db.refresh(txn)
                return _callback_result(txn, already_processed=True)

            course = db.get(Course, course_id)
            EntitlementLedger.grant(
                db,
                user_id=user_id,
                course_id=course_id,
                amount=amount,
                transaction_id=transaction_id,
                gateway_payment_id=response.get("mihpayid"),
                expiry_date=EntitlementLedger.expiry_for(course, now) if course else None,
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.critical(
                "Entitlement grant failed after gateway success txnid=%s user=%s course=%s mihpayid=%s",
                transaction_id, user_id, course_id, response.get("mihpayid"),
                exc_info=True,
            )
            raise EntitlementGrantFailure(transaction_id) from exc

        db.refresh(txn)
        logger.info("Payment succeeded, access granted txnid=%s user=%s course=%s", transaction_id, user_id, course_id)
        return _callback_result(txn)

    # ─── Queries ─────────────────────────────────────────────────────

    @staticmethod
    def get_status(db: Session, transaction_id: str, requesting_user_id: str) -> PaymentTransaction:
        txn = db.query(PaymentTransaction).filter(PaymentTransaction.transaction_id == transaction_id).first()
        if txn is None:
            raise NotFoundError("Transaction not found", error_code="TRANSACTION_NOT_FOUND")
        if txn.user_id != requesting_user_id:
            raise ForbiddenError("You do not have access to this transaction")
        return txn

    @staticmethod
    def history(db: Session, user_id: str, limit: int = 50, offset: int = 0) -> list[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .filter(PaymentTransaction.user_id == user_id)
            .order_by(PaymentTransaction.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_transactions(
        db: Session, status_filter: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> tuple[int, list[PaymentTransaction]]:
        query = db.query(PaymentTransaction).order_by(PaymentTransaction.created_at.desc())
        if status_filter:
            query = query.filter(PaymentTransaction.status == status_filter)
        return query.count(), query.offset(offset).limit(limit).all()


def _first_name(user: User) -> str:
    if user.email:
        return user.email.split("@", 1)[0][:60]
    return "Student"


def _callback_result(txn: PaymentTransaction, already_processed: bool = False) -> CallbackResult:
    return CallbackResult(
        transaction_id=txn.transaction_id,
        status=txn.status,
        gateway_payment_id=txn.gateway_payment_id,
        already_processed=already_processed,
    )


@lru_cache
def get_payment_service() -> PaymentService:
    settings = get_settings()
    return PaymentService(
        gateway=PayUGateway.from_settings(settings),
        bucket_seconds=settings.IDEMPOTENCY_BUCKET_SECONDS,
        currency=settings.PAYMENT_CURRENCY,
    )
