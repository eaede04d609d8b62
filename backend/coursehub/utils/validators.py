"""
Validators — Regex and rule-based validation for account identifiers and passwords.
"""
import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_RE = re.compile(r"^\+[1-9]\d{1,14}$")
SPECIAL_CHARS_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def validate_email(email: str | None) -> bool:
    """Validate a plain ``local@domain.tld`` email address."""
    if not email:
        return False
    return bool(EMAIL_RE.match(email.strip()))


def validate_mobile(mobile: str | None) -> bool:
    """Validate an E.164 mobile number, e.g. +919876543210."""
    if not mobile:
        return False
    return bool(MOBILE_RE.match(mobile.strip()))


def password_problems(password: str) -> list[str]:
    """Return the password rules that ``password`` breaks (empty list = strong enough)."""
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if not SPECIAL_CHARS_RE.search(password):
        problems.append("Password must contain at least one special character")
    return problems


def is_email_identifier(identifier: str) -> bool:
    """Login identifiers containing '@' are emails, everything else is a mobile."""
    return "@" in identifier
