"""Access to the wireless radio through the Linux wireless-tools commands."""

from __future__ import annotations

import asyncio
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from .errors import CapabilityError, CommandTimeout

DEFAULT_COMMAND_TIMEOUT = 10.0

_CELL_RE = re.compile(r"^Cell\s+\d+\s+-\s+Address:")
_ESSID_RE = re.compile(r'ESSID:"(.*)"')
_QUALITY_RE = re.compile(r"Quality[=:]\s*(\d+)\s*/\s*(\d+)")
_SIGNAL_RE = re.compile(r"Signal level[=:]\s*(-?\d+)\s*dBm")
_HEX_ESCAPE_RE = re.compile(r"\\x([0-9A-Fa-f]{2})")

logger = logging.getLogger(__name__)


def quality_percent(current: int | None, maximum: int | None) -> int:
    """Convert a ``current/max`` link quality fraction into 0-100.

    Halves round up, so 1/8 reads as 13 rather than 12.
    """

    if not maximum or maximum <= 0 or current is None:
        return 0
    percent = math.floor(current * 100 / maximum + 0.5)
    return max(0, min(100, percent))


@dataclass(frozen=True, slots=True)
class ScanResult:
    """One access point observed during a scan."""

    ssid: str
    quality_current: int = 0
    quality_max: int = 0
    signal_level: int | None = None
    encrypted: bool = False

    @property
    def quality_percent(self) -> int:
        return quality_percent(self.quality_current, self.quality_max)

    def to_dict(self) -> dict[str, object | None]:
        return {
            "ssid": self.ssid,
            "quality_current": self.quality_current,
            "quality_max": self.quality_max,
            "quality_percent": self.quality_percent,
            "signal_level": self.signal_level,
            "encrypted": self.encrypted,
        }


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Current association state of the wireless interface."""

    connected: bool
    ssid: str | None = None
    quality_percent: int = 0
    signal_level: int | None = None

    def to_dict(self) -> dict[str, object | None]:
        return {
            "connected": self.connected,
            "ssid": self.ssid,
            "quality_percent": self.quality_percent,
            "signal_level": self.signal_level,
        }


DISCONNECTED = ConnectionStatus(connected=False)


def _decode_essid(raw: str) -> str:
    """Undo the ``\\xNN`` escaping iwlist applies to non-printable bytes."""

    if "\\x" not in raw:
        return raw
    chunks: list[bytes] = []
    position = 0
    for match in _HEX_ESCAPE_RE.finditer(raw):
        chunks.append(raw[position:match.start()].encode("utf-8"))
        chunks.append(bytes([int(match.group(1), 16)]))
        position = match.end()
    chunks.append(raw[position:].encode("utf-8"))
    return b"".join(chunks).decode("utf-8", errors="replace")


def parse_iwlist_scan(output: str) -> list[ScanResult]:
    """Parse ``iwlist <iface> scan`` output, strongest access point first.

    Cells without an ESSID are dropped. Equal qualities keep the order the
    driver reported them in.
    """

    results: list[ScanResult] = []
    current: dict[str, object] | None = None

    def commit() -> None:
        if current is None:
            return
        ssid = current.get("ssid")
        if not isinstance(ssid, str) or not ssid:
            return
        results.append(
            ScanResult(
                ssid=ssid,
                quality_current=int(current.get("quality_current", 0)),
                quality_max=int(current.get("quality_max", 0)),
                signal_level=current.get("signal_level"),  # type: ignore[arg-type]
                encrypted=bool(current.get("encrypted", False)),
            )
        )

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if _CELL_RE.match(line):
            commit()
            current = {}
            continue
        if current is None:
            continue
        essid_match = _ESSID_RE.search(line)
        if essid_match:
            current["ssid"] = _decode_essid(essid_match.group(1))
        quality_match = _QUALITY_RE.search(line)
        if quality_match:
            current["quality_current"] = int(quality_match.group(1))
            current["quality_max"] = int(quality_match.group(2))
        signal_match = _SIGNAL_RE.search(line)
        if signal_match:
            current["signal_level"] = int(signal_match.group(1))
        if line.startswith("Encryption key:"):
            current["encrypted"] = line.split(":", 1)[1].strip().lower() == "on"
    commit()
    return sorted(results, key=lambda result: result.quality_percent, reverse=True)


def parse_iwconfig_status(output: str) -> ConnectionStatus:
    """Parse ``iwconfig <iface>`` output into a :class:`ConnectionStatus`."""

    if "Not-Associated" in output:
        return DISCONNECTED
    essid_match = _ESSID_RE.search(output)
    if not essid_match or not essid_match.group(1):
        return DISCONNECTED
    quality_match = _QUALITY_RE.search(output)
    percent = 0
    if quality_match:
        percent = quality_percent(int(quality_match.group(1)), int(quality_match.group(2)))
    signal_match = _SIGNAL_RE.search(output)
    return ConnectionStatus(
        connected=True,
        ssid=_decode_essid(essid_match.group(1)),
        quality_percent=percent,
        signal_level=int(signal_match.group(1)) if signal_match else None,
    )


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:  # pragma: no cover - raced with process exit
        return
    await process.wait()


async def run_command(args: Sequence[str], *, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> str:
    """Run ``args`` without a shell and return stdout.

    The child is killed when the deadline passes or the caller is cancelled.
    """

    command = list(args)
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise CapabilityError(f"{command[0]} command unavailable", command=command) from exc
    except PermissionError as exc:
        raise CapabilityError(f"Permission denied running {command[0]}", command=command) from exc
    except OSError as exc:
        raise CapabilityError(f"Unable to run {command[0]}: {exc}", command=command) from exc
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as exc:
        await _terminate(process)
        raise CommandTimeout(
            f"{command[0]} timed out after {timeout:g}s", command=command
        ) from exc
    except asyncio.CancelledError:
        await _terminate(process)
        raise
    text = stdout.decode("utf-8", errors="replace")
    if process.returncode != 0:
        error_output = (
            stderr.decode("utf-8", errors="replace").strip()
            or text.strip()
            or f"{command[0]} exited with status {process.returncode}"
        )
        raise CapabilityError(error_output, command=command)
    return text


class RadioBackend(ABC):
    """Abstract interface for the radio capabilities the engine uses."""

    @abstractmethod
    async def scan(self) -> list[ScanResult]:  # pragma: no cover - interface only
        """Return visible access points, or an empty list when scanning fails."""

        raise NotImplementedError

    @abstractmethod
    async def get_status(self) -> ConnectionStatus:  # pragma: no cover - interface only
        """Return the association state; never raises."""

        raise NotImplementedError

    @abstractmethod
    async def reload(self) -> None:  # pragma: no cover - interface only
        """Ask the supplicant to re-read its configuration.

        Raises :class:`CapabilityError` on failure.
        """

        raise NotImplementedError


class WirelessToolsBackend(RadioBackend):
    """Drive ``iwlist``, ``iwconfig`` and ``wpa_cli`` for one interface."""

    def __init__(
        self,
        interface: str = "wlan0",
        *,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        use_sudo: bool = False,
    ) -> None:
        self._interface = interface
        self._timeout = timeout
        self._prefix = ["sudo", "-n"] if use_sudo else []

    @property
    def interface(self) -> str:
        return self._interface

    async def _run(self, args: Sequence[str]) -> str:
        return await run_command(args, timeout=self._timeout)

    async def scan(self) -> list[ScanResult]:
        try:
            output = await self._run([*self._prefix, "iwlist", self._interface, "scan"])
        except CapabilityError as exc:
            logger.warning("Wi-Fi scan on %s failed: %s", self._interface, exc)
            return []
        return parse_iwlist_scan(output)

    async def get_status(self) -> ConnectionStatus:
        try:
            output = await self._run(["iwconfig", self._interface])
        except CapabilityError as exc:
            logger.warning("Unable to read Wi-Fi status for %s: %s", self._interface, exc)
            return DISCONNECTED
        return parse_iwconfig_status(output)

    async def reload(self) -> None:
        output = await self._run(
            [*self._prefix, "wpa_cli", "-i", self._interface, "reconfigure"]
        )
        # wpa_cli exits 0 even when the daemon rejects the request.
        if output.strip().upper().startswith("FAIL"):
            raise CapabilityError(
                f"wpa_supplicant refused to reconfigure {self._interface}",
                command=["wpa_cli", "-i", self._interface, "reconfigure"],
            )


__all__ = [
    "ConnectionStatus",
    "DEFAULT_COMMAND_TIMEOUT",
    "DISCONNECTED",
    "RadioBackend",
    "ScanResult",
    "WirelessToolsBackend",
    "parse_iwconfig_status",
    "parse_iwlist_scan",
    "quality_percent",
    "run_command",
]
