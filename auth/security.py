"""
JWT helpers for password-based sessions.
Access tokens are issued by the login service; this module only signs
(for tooling and tests) and verifies them.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from errors import ConfigurationError

# ─── Config ───────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("JWT_SECRET_KEY")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = 30


def _secret(secret_key: Optional[str]) -> str:
    key = secret_key or SECRET_KEY
    if not key:
        raise ConfigurationError("JWT_SECRET_KEY is not set. Add it to your .env file.")
    return key


# ─── Token helpers ─────────────────────────────────────────────────────────────

def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None,
) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, _secret(secret_key), algorithm=ALGORITHM)


def decode_token(token: str, secret_key: Optional[str] = None) -> Optional[dict]:
    """Decode a JWT token. Returns payload dict or None if invalid/expired."""
    key = _secret(secret_key)
    try:
        return jwt.decode(token, key, algorithms=[ALGORITHM])
    except (JWTError, ValueError, TypeError):
        return None


# ─── Forwarded claims ──────────────────────────────────────────────────────────
# A gateway that terminates federated sign-in forwards the verified claims as a
# JWT signed with GATEWAY_CLAIMS_SECRET. Without that secret no claims are read.

GATEWAY_CLAIMS_SECRET = os.getenv("GATEWAY_CLAIMS_SECRET")
CLAIMS_HEADER = "X-Identity-Claims"


def decode_forwarded_claims(token: Optional[str], secret_key: Optional[str] = None) -> dict:
    """Claims from the gateway header, or {} when absent, unsigned or not configured."""
    key = secret_key or GATEWAY_CLAIMS_SECRET
    if not token or not key:
        return {}
    try:
        return jwt.decode(token, key, algorithms=[ALGORITHM])
    except (JWTError, ValueError, TypeError):
        return {}
