"""Capability names and the principal that carries them."""

from __future__ import annotations

DEVICE_WRITE = "org.device.write"
DEVICE_DESTROY = "org.device.destroy"
OWN_DEVICE_LOG_WRITE = "own.device_log.write"
DEVICE_LOG_READ = "org.device_log.read"
DEVICE_LOG_WRITE = "org.device_log.write"
DEVICE_LOG_DESTROY = "org.device_log.destroy"

ALL_CAPABILITIES = frozenset(
    {
        DEVICE_WRITE,
        DEVICE_DESTROY,
        OWN_DEVICE_LOG_WRITE,
        DEVICE_LOG_READ,
        DEVICE_LOG_WRITE,
        DEVICE_LOG_DESTROY,
    }
)


class Principal:
    """The authenticated caller: an actor id plus the capabilities it holds."""

    def __init__(self, *, subject: str, scheme: str, capabilities: frozenset[str] = frozenset()) -> None:
        self.subject = subject
        self.scheme = scheme
        self.capabilities = frozenset(capabilities)

    @property
    def id(self) -> str:
        return self.subject

    def __repr__(self) -> str:
        return f"Principal(subject={self.subject!r}, scheme={self.scheme!r})"
