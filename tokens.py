"""
Bearer token boundary.

Tokens are HS256 JWTs carrying ``email`` and ``user_type`` claims with a fixed
validity window. The booking core only ever sees the decoded ``Caller``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from config import Settings
from errors import UnauthorizedError

TOKEN_COOKIE = "token"


@dataclass(frozen=True)
class Caller:
    email: str
    role: str


def issue_token(settings: Settings, email: str, role: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "email": email,
        "user_type": role,
        "iat": now,
        "exp": now + timedelta(hours=settings.token_ttl_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: Optional[str]) -> Caller:
    if not token:
        raise UnauthorizedError("No token provided")
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise UnauthorizedError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise UnauthorizedError("Invalid token") from exc

    email = claims.get("email")
    role = claims.get("user_type")
    if not email or not role:
        raise UnauthorizedError("Invalid token")
    return Caller(email=email, role=role)


def _extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def get_caller(request: Request) -> Caller:
    return decode_token(request.app.state.settings, _extract_token(request))
