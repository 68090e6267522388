from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .capabilities import ALL_CAPABILITIES, Principal
from .config import settings

ALGORITHM = "HS256"
AUDIENCE = "stockledger-clients"
ISSUER = "stockledger"


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenPayload(BaseModel):
    sub: str
    exp: datetime
    iat: datetime
    typ: str
    aud: str
    iss: str
    scope: str | None = None

    @property
    def capabilities(self) -> frozenset[str]:
        """Granted capabilities; names this service does not know are dropped."""
        if not self.scope:
            return frozenset()
        return frozenset(self.scope.split()) & ALL_CAPABILITIES

    def to_principal(self) -> Principal:
        return Principal(subject=self.sub, scheme="jwt", capabilities=self.capabilities)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def join_capabilities(capabilities: Iterable[str] | None) -> str | None:
    cleaned = sorted({item.strip() for item in (capabilities or []) if item and item.strip()})
    return " ".join(cleaned) or None


def _encode_token(subject: str, expires_delta: timedelta, token_type: str, scope: str | None = None) -> str:
    now = _now()
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "typ": token_type,
        "aud": AUDIENCE,
        "iss": ISSUER,
    }
    if scope:
        payload["scope"] = scope
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def issue_token_pair(subject: str, capabilities: Iterable[str] | None = None) -> TokenPair:
    """Mint an access/refresh pair for ``subject``.

    The capabilities travel in the standard ``scope`` claim, space separated,
    and are what the access gate checks on every ledger route.
    """
    scope = join_capabilities(capabilities)
    access_delta = timedelta(minutes=settings.JWT_ACCESS_TTL_MIN)
    refresh_delta = timedelta(days=settings.JWT_REFRESH_TTL_DAYS)
    return TokenPair(
        access_token=_encode_token(subject, access_delta, token_type="access", scope=scope),
        refresh_token=_encode_token(subject, refresh_delta, token_type="refresh", scope=scope),
        expires_in=int(access_delta.total_seconds()),
    )


def decode_token(token: str, *, verify_type: str | None = None) -> TokenPayload:
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    try:
        payload = TokenPayload.model_validate(decoded)
    except ValidationError as exc:
        raise ValueError("Invalid token payload") from exc
    if verify_type and payload.typ != verify_type:
        raise ValueError("Invalid token type")
    return payload


def refresh_access_token(refresh_token: str) -> TokenPair:
    payload = decode_token(refresh_token, verify_type="refresh")
    return issue_token_pair(payload.sub, payload.capabilities)
