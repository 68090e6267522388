"""Domain errors raised by the ledger engine.

Every error carries the ordered list of step outcomes that happened before it
was raised, so callers can tell which half of a dual write landed
("Device updated successfully", "Error creating device log") and reconcile.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class StepOutcome(BaseModel):
    """Result of one write inside a ledger operation."""

    model_config = {"frozen": True}

    step: str
    ok: bool
    message: str


class LedgerError(Exception):
    code = "ledger_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        steps: list[StepOutcome] | None = None,
        device_id: str | None = None,
        devicelog_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.steps = list(steps or [])
        self.device_id = device_id
        self.devicelog_id = devicelog_id

    @property
    def messages(self) -> list[str]:
        return [step.message for step in self.steps]

    def details(self) -> dict[str, Any]:
        details: dict[str, Any] = {"steps": [step.model_dump() for step in self.steps]}
        if self.device_id:
            details["device_id"] = self.device_id
        if self.devicelog_id:
            details["devicelog_id"] = self.devicelog_id
        return details


class InvalidRequest(LedgerError):
    code = "invalid_request"
    status_code = 400


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404


class AggregateWriteFailed(LedgerError):
    """Creating or incrementing the device aggregate failed."""

    code = "aggregate_write_failed"


class LogWriteFailed(LedgerError):
    """The device log row could not be written or removed."""

    code = "log_write_failed"


class CascadeDeleteFailed(LedgerError):
    """The log was reversed but the emptied device could not be retired."""

    code = "cascade_delete_failed"


__all__ = [
    "StepOutcome",
    "LedgerError",
    "InvalidRequest",
    "NotFound",
    "AggregateWriteFailed",
    "LogWriteFailed",
    "CascadeDeleteFailed",
]
