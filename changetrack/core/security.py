import jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from changetrack.core.config import Settings


def _now() -> datetime:
    return datetime.now(timezone.utc)

def _encode(settings: Settings, payload: Dict[str, Any]) -> str:
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algo)

def _decode(settings: Settings, token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algo])

def _token(settings: Settings, user_id: str, role: str, kind: str, ttl_min: int) -> str:
    now = _now()
    exp = now + timedelta(minutes=ttl_min)
    payload = {
        "sub": user_id,
        "role": role,
        "type": kind,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return _encode(settings, payload)

def create_access_token(settings: Settings, user_id: str, role: str) -> str:
    return _token(settings, user_id, role, "access", settings.access_ttl_min)

def create_refresh_token(settings: Settings, user_id: str, role: str) -> str:
    return _token(settings, user_id, role, "refresh", settings.refresh_ttl_min)

def decode_token(settings: Settings, token: str, expected_type: str | None = None) -> Dict[str, Any]:
    data = _decode(settings, token)
    if expected_type and data.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"unexpected token type: {data.get('type')}")
    return data
