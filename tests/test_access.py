"""Access gate decisions and the tokens that carry capabilities."""

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.capabilities import (
    DEVICE_DESTROY,
    DEVICE_LOG_DESTROY,
    DEVICE_LOG_WRITE,
    OWN_DEVICE_LOG_WRITE,
    Principal,
)
from stockledger.core.security import decode_token, issue_token_pair, refresh_access_token
from stockledger.deps.access import authorize, can_edit_log


def test_authorize_all_requires_every_capability():
    held = {DEVICE_DESTROY}

    assert authorize(held, [DEVICE_DESTROY], "all") is True
    assert authorize(held, [DEVICE_DESTROY, DEVICE_LOG_DESTROY], "all") is False


def test_authorize_any_requires_one_capability():
    held = {DEVICE_LOG_DESTROY}

    assert authorize(held, [DEVICE_DESTROY, DEVICE_LOG_DESTROY], "any") is True
    assert authorize(set(), [DEVICE_DESTROY, DEVICE_LOG_DESTROY], "any") is False


def test_authorize_empty_requirement_passes():
    assert authorize(set(), [], "all") is True
    assert authorize(set(), [], "any") is True


def test_authorize_rejects_unknown_mode():
    with pytest.raises(ValueError):
        authorize(set(), [DEVICE_DESTROY], "some")


def test_log_edit_allowed_for_author_or_elevated_writer():
    author = Principal(subject="user-1", scheme="jwt", capabilities=frozenset({OWN_DEVICE_LOG_WRITE}))
    stranger = Principal(subject="user-2", scheme="jwt", capabilities=frozenset({OWN_DEVICE_LOG_WRITE}))
    auditor = Principal(subject="user-3", scheme="jwt", capabilities=frozenset({DEVICE_LOG_WRITE}))

    assert can_edit_log(author, "user-1") is True
    assert can_edit_log(stranger, "user-1") is False
    assert can_edit_log(auditor, "user-1") is True


def test_token_carries_subject_and_capabilities():
    pair = issue_token_pair("user-5", [DEVICE_DESTROY, " ", DEVICE_LOG_DESTROY])

    payload = decode_token(pair.access_token, verify_type="access")

    assert payload.sub == "user-5"
    assert payload.capabilities == frozenset({DEVICE_DESTROY, DEVICE_LOG_DESTROY})


def test_refresh_keeps_capabilities():
    pair = issue_token_pair("user-6", [OWN_DEVICE_LOG_WRITE])

    refreshed = refresh_access_token(pair.refresh_token)

    payload = decode_token(refreshed.access_token, verify_type="access")
    assert payload.capabilities == frozenset({OWN_DEVICE_LOG_WRITE})


def test_refresh_token_cannot_be_used_for_access():
    pair = issue_token_pair("user-7")

    with pytest.raises(ValueError):
        decode_token(pair.refresh_token, verify_type="access")
    with pytest.raises(ValueError):
        decode_token("not-a-token")


def test_unknown_capabilities_in_a_token_grant_nothing():
    pair = issue_token_pair("user-8", [DEVICE_DESTROY, "org.everything.admin"])

    payload = decode_token(pair.access_token, verify_type="access")
    principal = payload.to_principal()

    assert payload.capabilities == frozenset({DEVICE_DESTROY})
    assert principal.subject == "user-8"
    assert principal.scheme == "jwt"
    assert principal.capabilities == frozenset({DEVICE_DESTROY})
