from coursehub.utils.hashing import sha512_hex, digests_match, generate_idempotency_key
from coursehub.utils.validators import validate_email, validate_mobile, password_problems

__all__ = [
    "sha512_hex", "digests_match", "generate_idempotency_key",
    "validate_email", "validate_mobile", "password_problems",
]
