"""
Password hashing

Salted scrypt hashes stored as ``scrypt$<salt>$<hex digest>`` so the salt
travels with the hash in the single password column.
"""

import hashlib
import hmac
import secrets


SCHEME = "scrypt"


def generate_salt() -> str:
    """Generate random salt for password hashing"""
    return secrets.token_hex(16)


def generate_temporary_password() -> str:
    """Generate temporary password"""
    return secrets.token_urlsafe(12)


def _scrypt(password: str, salt: str) -> str:
    return hashlib.scrypt(
        password.encode(),
        salt=salt.encode(),
        n=16384, r=8, p=1
    ).hex()


def hash_password(password: str, salt: str = None) -> str:
    """Hash password with a fresh (or given) salt"""
    salt = salt or generate_salt()
    return f"{SCHEME}${salt}${_scrypt(password, salt)}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against stored hash"""
    try:
        scheme, salt, expected = password_hash.split("$")
    except (AttributeError, ValueError):
        return False
    if scheme != SCHEME:
        return False
    return hmac.compare_digest(_scrypt(password, salt), expected)
