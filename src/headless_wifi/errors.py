"""Exception hierarchy shared by the Wi-Fi engine components."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .networks import Network


class WiFiError(RuntimeError):
    """Base class for Wi-Fi engine failures."""


class ValidationError(WiFiError, ValueError):
    """Raised when an SSID, password or security mode is malformed."""


class PersistenceError(WiFiError):
    """Raised when the network store cannot be written durably.

    The in-memory sequence that was meant to be persisted is kept on
    ``networks`` so callers can still report what was requested.
    """

    def __init__(self, message: str, networks: Sequence["Network"] = ()) -> None:
        super().__init__(message)
        self.networks = list(networks)


class CapabilityError(WiFiError):
    """Raised when an external wireless command fails."""

    def __init__(self, message: str, *, command: Sequence[str] | None = None) -> None:
        super().__init__(message)
        self.command = list(command) if command is not None else None


class CommandTimeout(CapabilityError):
    """Raised when an external wireless command exceeds its deadline."""


__all__ = [
    "WiFiError",
    "ValidationError",
    "PersistenceError",
    "CapabilityError",
    "CommandTimeout",
]
