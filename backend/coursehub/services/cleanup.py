"""
Maintenance sweep — Removes abandoned payment attempts and expired OTP codes.

Advisory only: nothing depends on it for correctness, so failures are logged
and never propagate.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from coursehub.config import get_settings
from coursehub.models import payment as status
from coursehub.models.payment import PaymentTransaction
from coursehub.models.user import OTPCode

logger = logging.getLogger(__name__)


def run_cleanup(session_factory: Callable[[], Session], now: Optional[datetime] = None,
                retention_days: Optional[int] = None) -> dict[str, int]:
    settings = get_settings()
    now = now or datetime.utcnow()
    retention_days = retention_days if retention_days is not None else settings.TRANSACTION_RETENTION_DAYS
    cutoff = now - timedelta(days=retention_days)

    db = session_factory()
    try:
        transactions = (
            db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.status.in_(status.OPEN_STATUSES),
                PaymentTransaction.created_at < cutoff,
            )
            .delete(synchronize_session=False)
        )
        otps = db.query(OTPCode).filter(OTPCode.expires_at < now).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Cleanup sweep failed")
        return {"transactions": 0, "otps": 0}
    finally:
        db.close()

    if transactions or otps:
        logger.info("Cleanup removed %d stale transactions and %d expired OTPs", transactions, otps)
    return {"transactions": transactions, "otps": otps}


async def cleanup_loop(session_factory: Callable[[], Session]):
    interval = get_settings().CLEANUP_INTERVAL_HOURS * 3600
    while True:
        await asyncio.sleep(interval)
        await run_in_threadpool(run_cleanup, session_factory)
