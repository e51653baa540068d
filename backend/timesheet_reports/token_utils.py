from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"


class SessionPayload(BaseModel):
    sub: int
    login: str
    name: str
    role_id: Optional[int] = None
    iat: int
    exp: int


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _signature(payload_json: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), msg=payload_json.encode(), digestmod=hashlib.sha256)
    return _b64url_encode(digest.digest())


def legacy_password_hash(password: str) -> str:
    """Digest format used by the ``tt_users.password`` column."""
    return hashlib.md5(password.encode("utf-8")).hexdigest()


def build_payload(user: Any, ttl_seconds: int, now: Optional[int] = None) -> SessionPayload:
    issued = int(now if now is not None else time.time())
    return SessionPayload(
        sub=int(user.id),
        login=user.login,
        name=user.name or user.login,
        role_id=user.role_id,
        iat=issued,
        exp=issued + ttl_seconds,
    )


def create_session_token(payload: SessionPayload, secret: str) -> str:
    payload_json = json.dumps(payload.model_dump(), separators=(",", ":"))
    return f"{_b64url_encode(payload_json.encode())}.{_signature(payload_json, secret)}"


def verify_session_token(token: Optional[str], secret: str, now: Optional[int] = None) -> Optional[SessionPayload]:
    if not token or not secret:
        return None
    payload_b64, _, signature = token.partition(".")
    if not payload_b64 or not signature:
        return None
    try:
        payload_json = _b64url_decode(payload_b64).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not hmac.compare_digest(_signature(payload_json, secret), signature):
        logger.info("Rejected session token with invalid signature")
        return None
    try:
        data: Dict[str, Any] = json.loads(payload_json)
        payload = SessionPayload.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        return None
    current = int(now if now is not None else time.time())
    if not payload.exp or current >= payload.exp:
        return None
    return payload
