"""Token issuing and Google sign-in."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx
import jwt
from sqlalchemy.orm import Session

from drinkwise.config import Settings
from drinkwise.models import User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


class TokenError(Exception):
    """Bearer token is missing a claim, malformed or badly signed."""


class TokenExpired(TokenError):
    pass


class GoogleAuthError(Exception):
    pass


@dataclass(frozen=True)
class GoogleIdentity:
    sub: str
    email: str
    name: str | None = None
    picture: str | None = None


def issue_token(user_id: int, settings: Settings, *, now: datetime | None = None) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "iat": issued,
        "exp": issued + timedelta(days=settings.jwt_ttl_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, settings: Settings) -> int:
    """Return the user id carried by ``token``."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": True, "require": ["exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("Expired token") from exc
    except jwt.PyJWTError as exc:
        raise TokenError("Invalid token") from exc
    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise TokenError("Invalid token")
    return user_id


async def verify_google_id_token(id_token: str, settings: Settings) -> GoogleIdentity:
    """Validate a Google ID token with the ``tokeninfo`` endpoint."""
    if not settings.google_client_id:
        raise GoogleAuthError("Google sign-in is not configured")
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                settings.google_tokeninfo_url,
                params={"id_token": id_token},
                timeout=10,
            )
    except httpx.HTTPError as exc:
        logger.error("Google tokeninfo request failed: %s", exc)
        raise GoogleAuthError("Identity provider unavailable") from exc
    if resp.status_code != 200:
        raise GoogleAuthError("Invalid token")
    try:
        data = resp.json()
    except ValueError as exc:
        raise GoogleAuthError("Invalid token") from exc

    if data.get("aud") != settings.google_client_id:
        raise GoogleAuthError("Token audience mismatch")
    if data.get("iss") not in GOOGLE_ISSUERS:
        raise GoogleAuthError("Untrusted token issuer")
    if not data.get("sub") or not data.get("email"):
        raise GoogleAuthError("Invalid token")
    return GoogleIdentity(
        sub=str(data["sub"]),
        email=data["email"],
        name=data.get("name"),
        picture=data.get("picture"),
    )


def upsert_google_user(db: Session, identity: GoogleIdentity) -> User:
    user = db.query(User).filter(User.google_id == identity.sub).one_or_none()
    if user is None:
        user = User(
            google_id=identity.sub,
            email=identity.email,
            name=identity.name,
            picture=identity.picture,
        )
        db.add(user)
        logger.info("Registered new user for google_id=%s", identity.sub)
    else:
        user.email = identity.email
        user.name = identity.name or user.name
        user.picture = identity.picture or user.picture
    db.commit()
    db.refresh(user)
    return user
