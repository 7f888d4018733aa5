"""Session tokens: signed JWTs carrying the GitHub user id and an encrypted access token."""

from __future__ import annotations

import hashlib
from datetime import timedelta
from typing import Any, Optional

from jose import JWTError, jwe, jwt
from jose.exceptions import JWEError

from starseekers.core.config import Settings
from starseekers.core.errors import AuthRequired
from starseekers.models.entities import SessionUser
from starseekers.utils.time import expires_at

ALGORITHM = "HS256"
GH_CLAIM_ENCRYPTION = "A256GCM"


def _claim_key(secret: str) -> bytes:
    return hashlib.sha256(f"gh-claim:{secret}".encode("utf-8")).digest()


def seal_access_token(secret: str, access_token: str) -> str:
    """Encrypt the GitHub token so it is not readable from the JWT payload."""
    sealed = jwe.encrypt(
        access_token.encode("utf-8"),
        _claim_key(secret),
        algorithm="dir",
        encryption=GH_CLAIM_ENCRYPTION,
    )
    return sealed.decode("ascii") if isinstance(sealed, bytes) else sealed


def open_access_token(secret: str, sealed: str) -> str:
    try:
        return jwe.decrypt(sealed, _claim_key(secret)).decode("utf-8")
    except (JWEError, ValueError) as exc:
        raise AuthRequired("Sign-in required.") from exc


def create_session_token(
    settings: Settings,
    user_id: str | int,
    access_token: str,
    login: str | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.session_ttl_minutes)
    secret = settings.require("session_secret")
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "gh": seal_access_token(secret, access_token),
        "exp": expires_at(expires_delta),
    }
    if login:
        payload["login"] = login
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_session_token(settings: Settings, token: str) -> SessionUser:
    """Verify a session token and return its user; raises AuthRequired when invalid."""
    secret = settings.require("session_secret")
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise AuthRequired("Sign-in required.") from exc
    subject = claims.get("sub")
    if not subject:
        raise AuthRequired("Sign-in required.")
    sealed = claims.get("gh")
    access_token = open_access_token(secret, sealed) if sealed else None
    return SessionUser(id=str(subject), access_token=access_token, login=claims.get("login"))


__all__ = ["create_session_token", "decode_session_token", "seal_access_token", "open_access_token", "ALGORITHM"]
