"""Password hashing with salted PBKDF2-HMAC-SHA256.

Stored format: ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``.
"""

import hashlib
import hmac
import secrets

ALGORITHM = 'pbkdf2_sha256'
ITERATIONS = 260_000


def hash_password(password: str, salt: str = None, iterations: int = ITERATIONS) -> str:
    """Hash a password for storage."""
    if salt is None:
        salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        'sha256', password.encode('utf-8'), bytes.fromhex(salt), iterations
    ).hex()
    return f"{ALGORITHM}${iterations}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a stored hash in constant time."""
    try:
        algorithm, iterations, salt, expected = password_hash.split('$')
        if algorithm != ALGORITHM:
            return False
        digest = hashlib.pbkdf2_hmac(
            'sha256', password.encode('utf-8'), bytes.fromhex(salt), int(iterations)
        ).hex()
    except (ValueError, AttributeError):
        return False
    return hmac.compare_digest(digest, expected)
