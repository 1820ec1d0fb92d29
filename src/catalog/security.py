from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from src.catalog.config import AuthConfig
from src.catalog.errors import AuthenticationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _signing_key(config: AuthConfig) -> str:
    if not config.secret_key:
        raise RuntimeError("JWT secret key is not configured")
    return config.secret_key


def create_access_token(
    config: AuthConfig,
    user_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.access_token_expire_minutes)
    )
    to_encode: Dict[str, Any] = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, _signing_key(config), algorithm=config.algorithm)


def decode_access_token(config: AuthConfig, token: str) -> Dict[str, Any]:
    """Verify signature and expiry; return the claims (``sub``, ``role``, ...)."""
    try:
        payload = jwt.decode(token, _signing_key(config), algorithms=[config.algorithm])
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
    if not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")
    return payload
