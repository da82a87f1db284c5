"""Password hashing helpers for profile logins."""

import hashlib
import secrets

ITERATIONS = 390000


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), ITERATIONS)
    return f"pbkdf2_sha256${salt}${digest.hex()}"


def verify_password(stored: str, provided: str) -> bool:
    try:
        _algorithm, salt, hex_digest = stored.split("$")
    except (AttributeError, ValueError):
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", provided.encode(), salt.encode(), ITERATIONS)
    return secrets.compare_digest(candidate.hex(), hex_digest)
