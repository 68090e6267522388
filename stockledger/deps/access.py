"""Capability-based access gate.

Routes declare the capabilities they need and whether holding ``any`` of
them or ``all`` of them is enough. The ledger engine itself never checks
permissions; everything is decided here before it is called.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

from fastapi import Depends, HTTPException, status

from ..core.capabilities import DEVICE_LOG_WRITE, Principal
from .auth import require_principal

logger = logging.getLogger(__name__)


class MatchMode(str, Enum):
    ANY = "any"
    ALL = "all"


def authorize(held: Iterable[str], required: Iterable[str], mode: MatchMode | str = MatchMode.ALL) -> bool:
    """Return True when ``held`` satisfies ``required`` under ``mode``.

    An empty requirement always passes.
    """
    needed = set(required)
    if not needed:
        return True
    owned = set(held)
    if MatchMode(mode) is MatchMode.ANY:
        return bool(needed & owned)
    return needed <= owned


def require_capabilities(*required: str, mode: MatchMode | str = MatchMode.ALL):
    """Dependency factory that yields the principal or answers 403.

    Usage::

        @router.delete("/{devicelog_id}")
        def reverse(principal: Principal = Depends(require_capabilities(DEVICE_DESTROY, DEVICE_LOG_DESTROY, mode="any"))):
            ...
    """
    match = MatchMode(mode)

    def checker(principal: Principal = Depends(require_principal)) -> Principal:
        if not authorize(principal.capabilities, required, match):
            missing = sorted(set(required) - set(principal.capabilities))
            logger.warning(
                "access.denied",
                extra={"extra_data": {"principal": principal.subject, "mode": match.value, "missing": missing}},
            )
            if match is MatchMode.ANY:
                detail = f"Requires one of: {', '.join(sorted(required))}"
            else:
                detail = f"Missing capabilities: {', '.join(missing)}"
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return principal

    return checker


def can_edit_log(principal: Principal, author_id: str) -> bool:
    """Provenance edits are open to the log's author or to elevated writers."""

    return principal.subject == author_id or DEVICE_LOG_WRITE in principal.capabilities
