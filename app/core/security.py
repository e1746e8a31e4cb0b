"""
Security utilities: local dev tokens and secret hashing.
"""

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.config import get_settings

_HASH_ITERATIONS = 120_000


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token carrying a unique ``jti``."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode a JWT access token. Raises ValueError when invalid or expired."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.PyJWTError as e:
        raise ValueError(f"Token decode failed: {e}") from e


def hash_secret(secret: str, salt: Optional[str] = None) -> str:
    """Hash a password or passcode as ``salt$hexdigest`` (PBKDF2-SHA256)."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", secret.encode(), salt.encode(), _HASH_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_secret(secret: str, hashed: Optional[str]) -> bool:
    """Check a secret against a value produced by ``hash_secret``."""
    if not hashed or "$" not in hashed:
        return False
    salt, _ = hashed.split("$", 1)
    return hmac.compare_digest(hash_secret(secret, salt), hashed)
