# gateway/api/auth/token.py
"""
Access token helpers.
- sign_token issues an HS* signed JWT carrying the user id (sub) and role
- decode_token verifies signature and expiry and returns the claims or None
"""
from __future__ import annotations
import time
import uuid
from typing import Any, Dict, Optional

from jose import jwt, JWTError, ExpiredSignatureError

from gateway.api.utils.logger import write_log

DEFAULT_ALGORITHM = "HS256"
DEFAULT_EXPIRE_MINUTES = 30


def _now() -> int:
    return int(time.time())


def sign_token(
    subject: Any,
    secret: str,
    role: Optional[str] = None,
    expire_minutes: int = DEFAULT_EXPIRE_MINUTES,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    if not secret:
        raise ValueError("a signing secret is required")
    now = _now()
    claims: Dict[str, Any] = {
        "sub": str(subject),
        "iat": now,
        "exp": now + int(expire_minutes) * 60,
        "jti": str(uuid.uuid4()),
        "typ": "access",
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_token(token: Optional[str], secret: Optional[str], algorithm: str = DEFAULT_ALGORITHM) -> Optional[Dict[str, Any]]:
    if not token or not secret:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError:
        write_log({"event": "token_expired", "token_snippet": token[:16]}, stream="auth")
        return None
    except JWTError as e:
        write_log({"event": "token_invalid", "error": str(e), "token_snippet": token[:16]}, stream="auth")
        return None
    if payload.get("typ") != "access":
        write_log({"event": "token_wrong_type", "typ": payload.get("typ")}, stream="auth")
        return None
    return payload


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    if header_value.startswith("Bearer "):
        token = header_value[len("Bearer "):].strip()
        return token or None
    return None
