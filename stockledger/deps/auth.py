from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.capabilities import ALL_CAPABILITIES, Principal
from ..core.config import settings
from ..core.security import decode_token
from ..middlewares import principal_ctx_var


def _unauthorized(detail: str = "Unauthorized") -> None:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _set_principal(request: Request, principal: Principal) -> Principal:
    label = f"{principal.scheme}:{principal.subject}"
    principal_ctx_var.set(label)
    request.state.principal = label
    return principal


async def require_principal(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> Principal:
    """Resolve the caller from an API key or a bearer token.

    The API key is the master credential and carries every capability. With
    no key configured and no credentials sent, the caller is anonymous and
    holds nothing, so only ungated routes will let it through.
    """

    api_key = settings.API_KEY
    provided_key = (x_api_key or "").strip()
    if api_key and provided_key and hmac.compare_digest(api_key, provided_key):
        return _set_principal(request, Principal(subject="api-key", scheme="api_key", capabilities=ALL_CAPABILITIES))

    if authorization:
        scheme, credentials = get_authorization_scheme_param(authorization)
        if scheme.lower() == "bearer" and credentials:
            try:
                payload = decode_token(credentials, verify_type="access")
            except ValueError as exc:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
            request.state.token_payload = payload
            return _set_principal(request, payload.to_principal())
        _unauthorized("Unsupported authorization scheme")

    if provided_key:
        _unauthorized("Invalid API key")
    if not api_key:
        return _set_principal(request, Principal(subject="anonymous", scheme="open"))
    _unauthorized("Authorization required")
