"""
SMS Service — OTP delivery through Twilio, or the application log when SMS is not configured.
"""
import logging
from functools import lru_cache

import httpx

from coursehub.config import get_settings

logger = logging.getLogger(__name__)

OTP_MESSAGE = "Your CourseHub OTP is: {code}. This OTP is valid for {minutes} minutes."


class OtpSender:
    """Delivers one-time codes. ``send`` is best-effort and never raises."""

    def send(self, mobile: str, code: str) -> bool:
        raise NotImplementedError


class LogOtpSender(OtpSender):
    """Development fallback: writes the code to the log instead of texting it."""

    def send(self, mobile: str, code: str) -> bool:
        logger.warning("SMS not configured. OTP for %s: %s", mobile, code)
        return True


class TwilioOtpSender(OtpSender):
    """Sends codes through Twilio's Messages REST endpoint."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str,
                 base_url: str = "https://api.twilio.com", timeout: float = 10.0,
                 expiry_minutes: int = 5, production: bool = False):
        self.account_sid = account_sid
        self.from_number = from_number
        self.expiry_minutes = expiry_minutes
        self.production = production
        self.client = httpx.Client(
            base_url=base_url,
            auth=httpx.BasicAuth(account_sid, auth_token),
            timeout=timeout,
        )

    def send(self, mobile: str, code: str) -> bool:
        error_msg = None
        try:
            response = self.client.post(
                url=f"/2010-04-01/Accounts/{self.account_sid}/Messages.json",
                data={
                    "To": mobile,
                    "From": self.from_number,
                    "Body": OTP_MESSAGE.format(code=code, minutes=self.expiry_minutes),
                },
            )
            if response.status_code not in (200, 201):
                error_msg = f"got status {response.status_code} from Twilio"
            else:
                logger.info("OTP sent to %s, message sid %s", mobile, response.json().get("sid"))
        except httpx.HTTPError as exc:
            error_msg = f"couldn't reach Twilio: {exc}"

        if error_msg is None:
            return True

        logger.error("Failed to send OTP to %s: %s", mobile, error_msg)
        if not self.production:
            logger.warning("Falling back to log delivery. OTP for %s: %s", mobile, code)
        return False


@lru_cache
def get_otp_sender() -> OtpSender:
    settings = get_settings()
    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER:
        return TwilioOtpSender(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_FROM_NUMBER,
            base_url=settings.TWILIO_BASE_URL,
            timeout=settings.SMS_TIMEOUT_SECONDS,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            production=settings.is_production,
        )
    if settings.is_production:
        logger.error("Twilio credentials missing in production; OTPs will only be logged")
    return LogOtpSender()
