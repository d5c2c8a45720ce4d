"""Runtime settings for the Wi-Fi engine."""
from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping

from .applier import DEFAULT_SUPPLICANT_PATH
from .policy import DEFAULT_MINIMUM_IMPROVEMENT
from .radio import DEFAULT_COMMAND_TIMEOUT
from .supplicant import DEFAULT_COUNTRY, DEFAULT_CTRL_INTERFACE

ENV_PREFIX = "HEADLESS_WIFI_"
DEFAULT_DATA_DIR = Path("data")
DEFAULT_EVENT_LOG_PATH = Path("/var/log/wifi_config.log")

EngineMode = Literal["multi", "single"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Validated engine configuration.

    ``mode="single"`` reproduces the one-network device: the store keeps no
    history, every block gets priority 1 and auto-switching is disabled.
    """

    data_dir: Path = DEFAULT_DATA_DIR
    store_path: Path | None = None
    supplicant_path: Path = DEFAULT_SUPPLICANT_PATH
    interface: str = "wlan0"
    country: str = DEFAULT_COUNTRY
    ctrl_interface: str = DEFAULT_CTRL_INTERFACE
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    minimum_improvement: int = DEFAULT_MINIMUM_IMPROVEMENT
    mode: EngineMode = "multi"
    event_log_path: Path | None = DEFAULT_EVENT_LOG_PATH
    event_log_fallback: Path | None = None
    use_sudo: bool = False

    def __post_init__(self) -> None:
        data_dir = Path(self.data_dir)
        object.__setattr__(self, "data_dir", data_dir)
        store_path = Path(self.store_path) if self.store_path else data_dir / "networks.json"
        object.__setattr__(self, "store_path", store_path)
        object.__setattr__(self, "supplicant_path", Path(self.supplicant_path))
        fallback = (
            Path(self.event_log_fallback)
            if self.event_log_fallback
            else data_dir / "wifi_config.log"
        )
        object.__setattr__(self, "event_log_fallback", fallback)
        if self.event_log_path is not None:
            object.__setattr__(self, "event_log_path", Path(self.event_log_path))
        if not isinstance(self.interface, str) or not self.interface.strip():
            raise ValueError("Interface name must be a non-empty string")
        object.__setattr__(self, "interface", self.interface.strip())
        country = self.country.strip().upper() if isinstance(self.country, str) else ""
        if len(country) != 2 or not country.isalpha():
            raise ValueError("Country must be a two-letter ISO 3166 code")
        object.__setattr__(self, "country", country)
        timeout = float(self.command_timeout)
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError("Command timeout must be a positive number of seconds")
        object.__setattr__(self, "command_timeout", timeout)
        improvement = int(self.minimum_improvement)
        if not 0 <= improvement <= 100:
            raise ValueError("Minimum improvement must be between 0 and 100 percent")
        object.__setattr__(self, "minimum_improvement", improvement)
        if self.mode not in ("multi", "single"):
            raise ValueError("Mode must be 'multi' or 'single'")

    @property
    def keeps_history(self) -> bool:
        return self.mode == "multi"

    @property
    def fixed_priority(self) -> int | None:
        return 1 if self.mode == "single" else None

    @property
    def auto_switch_enabled(self) -> bool:
        return self.mode == "multi"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Build settings from ``HEADLESS_WIFI_*`` environment variables."""

        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        def _number(name: str, parser, fallback):
            raw = _get(name)
            if raw is None:
                return fallback
            try:
                return parser(raw)
            except ValueError:
                logger.warning("Invalid %s%s value %r; ignoring", ENV_PREFIX, name, raw)
                return fallback

        def _flag(name: str, fallback: bool) -> bool:
            raw = _get(name)
            if raw is None:
                return fallback
            return raw.lower() in {"1", "true", "yes", "on"}

        mode = (_get("MODE") or "multi").lower()
        if mode not in ("multi", "single"):
            logger.warning("Invalid %sMODE value %r; using multi", ENV_PREFIX, mode)
            mode = "multi"
        event_log = _get("EVENT_LOG")
        if event_log is None:
            event_log_path: Path | None = DEFAULT_EVENT_LOG_PATH
        elif event_log.lower() == "none":
            event_log_path = None
        else:
            event_log_path = Path(event_log)
        store = _get("STORE_PATH")
        fallback_log = _get("EVENT_LOG_FALLBACK")
        return cls(
            data_dir=Path(_get("DATA_DIR") or DEFAULT_DATA_DIR),
            store_path=Path(store) if store else None,
            supplicant_path=Path(_get("SUPPLICANT_PATH") or DEFAULT_SUPPLICANT_PATH),
            interface=_get("INTERFACE") or "wlan0",
            country=_get("COUNTRY") or DEFAULT_COUNTRY,
            ctrl_interface=_get("CTRL_INTERFACE") or DEFAULT_CTRL_INTERFACE,
            command_timeout=_number("COMMAND_TIMEOUT", float, DEFAULT_COMMAND_TIMEOUT),
            minimum_improvement=_number(
                "MINIMUM_IMPROVEMENT", int, DEFAULT_MINIMUM_IMPROVEMENT
            ),
            mode=mode,  # type: ignore[arg-type]
            event_log_path=event_log_path,
            event_log_fallback=Path(fallback_log) if fallback_log else None,
            use_sudo=_flag("USE_SUDO", False),
        )


__all__ = ["ENV_PREFIX", "EngineMode", "EngineSettings"]
