"""Commit generated configuration and ask the supplicant to pick it up."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import CapabilityError
from .networks import write_atomic
from .radio import RadioBackend

DEFAULT_SUPPLICANT_PATH = Path("/etc/wpa_supplicant/wpa_supplicant.conf")

logger = logging.getLogger(__name__)


class ApplyOutcome(str, Enum):
    APPLIED = "applied"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """What happened to a requested configuration change.

    ``step`` names the stage that failed (``"write"`` or ``"reload"``) and is
    ``None`` on success.
    """

    outcome: ApplyOutcome
    step: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ApplyOutcome.APPLIED

    def to_dict(self) -> dict[str, object | None]:
        return {"outcome": self.outcome.value, "step": self.step, "error": self.error}


class ConnectionApplier:
    """Write the configuration file, then reload the supplicant."""

    def __init__(
        self,
        backend: RadioBackend,
        path: Path | str = DEFAULT_SUPPLICANT_PATH,
        *,
        mode: int = 0o600,
    ) -> None:
        self._backend = backend
        self._path = Path(path)
        self._mode = mode

    @property
    def path(self) -> Path:
        return self._path

    async def apply(self, config_text: str) -> ApplyResult:
        try:
            write_atomic(self._path, config_text, mode=self._mode)
        except OSError as exc:
            logger.warning("Unable to write %s: %s", self._path, exc)
            return ApplyResult(ApplyOutcome.FAILED, step="write", error=str(exc))
        logger.info("Wrote supplicant configuration to %s", self._path)
        result = await self.reload()
        if result.ok:
            return result
        return ApplyResult(ApplyOutcome.PARTIAL_FAILURE, step="reload", error=result.error)

    async def reload(self) -> ApplyResult:
        """Re-run only the reload step, e.g. after a partial failure."""

        try:
            await self._backend.reload()
        except CapabilityError as exc:
            logger.warning("Supplicant reload failed: %s", exc)
            return ApplyResult(ApplyOutcome.FAILED, step="reload", error=str(exc))
        return ApplyResult(ApplyOutcome.APPLIED)


__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "ConnectionApplier",
    "DEFAULT_SUPPLICANT_PATH",
]
