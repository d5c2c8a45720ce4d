"""Orchestrates the store, generator, radio and applier behind one lock."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from .applier import ApplyResult, ConnectionApplier
from .config import EngineSettings
from .errors import PersistenceError, ValidationError, WiFiError
from .networks import (
    JSONFileBackend,
    LoadState,
    Network,
    NetworkStore,
    Security,
    StoreBackend,
    validate_network,
)
from .policy import DEFAULT_MINIMUM_IMPROVEMENT, SwitchDecision, decide
from .radio import ConnectionStatus, RadioBackend, ScanResult, WirelessToolsBackend
from .supplicant import DEFAULT_COUNTRY, DEFAULT_CTRL_INTERFACE, generate_config
from .system_log import EventLog

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NetworkChange:
    """Result of saving or forgetting a network."""

    networks: list[Network]
    apply: ApplyResult

    def to_dict(self) -> dict[str, object]:
        return {
            "networks": [network.to_dict(include_password=False) for network in self.networks],
            "apply": self.apply.to_dict(),
        }


@dataclass(slots=True)
class AutoSwitchResult:
    decision: SwitchDecision
    status: ConnectionStatus
    apply: ApplyResult | None = None

    def to_dict(self) -> dict[str, object | None]:
        return {
            "decision": self.decision.to_dict(),
            "status": self.status.to_dict(),
            "apply": self.apply.to_dict() if self.apply else None,
        }


class WiFiEngine:
    """High-level Wi-Fi operations for the device."""

    def __init__(
        self,
        store: NetworkStore,
        backend: RadioBackend,
        applier: ConnectionApplier,
        *,
        event_log: EventLog | None = None,
        country: str = DEFAULT_COUNTRY,
        ctrl_interface: str = DEFAULT_CTRL_INTERFACE,
        minimum_improvement: int = DEFAULT_MINIMUM_IMPROVEMENT,
        fixed_priority: int | None = None,
        auto_switch_enabled: bool = True,
    ) -> None:
        self._store = store
        self._backend = backend
        self._applier = applier
        self._event_log = event_log
        self._country = country
        self._ctrl_interface = ctrl_interface
        self._minimum_improvement = minimum_improvement
        self._fixed_priority = fixed_priority
        self._auto_switch_enabled = auto_switch_enabled
        self._lock = asyncio.Lock()
        if store.load_state is LoadState.RESET:
            self._record(
                "store_loaded",
                None,
                "reset",
                store.load_error or "Saved networks could not be read",
            )

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        *,
        backend: RadioBackend | None = None,
        store_backend: StoreBackend | None = None,
        event_log: EventLog | None = None,
    ) -> "WiFiEngine":
        radio = backend or WirelessToolsBackend(
            settings.interface,
            timeout=settings.command_timeout,
            use_sudo=settings.use_sudo,
        )
        store = NetworkStore(
            store_backend or JSONFileBackend(settings.store_path),
            history=settings.keeps_history,
        )
        if event_log is None:
            event_log = EventLog(
                settings.event_log_path,
                fallback_path=settings.event_log_fallback,
            )
        return cls(
            store,
            radio,
            ConnectionApplier(radio, settings.supplicant_path),
            event_log=event_log,
            country=settings.country,
            ctrl_interface=settings.ctrl_interface,
            minimum_improvement=settings.minimum_improvement,
            fixed_priority=settings.fixed_priority,
            auto_switch_enabled=settings.auto_switch_enabled,
        )

    # ------------------------------ properties -----------------------------
    @property
    def store(self) -> NetworkStore:
        return self._store

    @property
    def event_log(self) -> EventLog | None:
        return self._event_log

    @property
    def auto_switch_enabled(self) -> bool:
        return self._auto_switch_enabled

    # ------------------------------ operations -----------------------------
    async def get_status(self) -> ConnectionStatus:
        return await self._backend.get_status()

    async def scan(self) -> list[ScanResult]:
        return await self._backend.scan()

    def list_networks(self) -> list[Network]:
        return self._store.list_networks()

    def render_config(self, networks: Sequence[Network], target_ssid: str | None) -> str:
        return generate_config(
            networks,
            target_ssid,
            country=self._country,
            ctrl_interface=self._ctrl_interface,
            fixed_priority=self._fixed_priority,
        )

    async def set_network(
        self,
        ssid: str,
        password: str | None,
        security: Security | str | None = None,
    ) -> NetworkChange:
        """Save ``ssid`` as the preferred network and apply the new config."""

        try:
            _, _, mode = validate_network(ssid, password, security)
        except ValidationError as exc:
            self._record("network_saved", ssid, "rejected", str(exc))
            raise
        async with self._lock:
            previous_state = self._store.load_state
            try:
                networks = await asyncio.to_thread(self._store.upsert, ssid, password, mode)
            except PersistenceError as exc:
                self._record("network_saved", ssid, "failed", str(exc))
                raise
            self._record(
                "network_saved",
                ssid,
                "saved",
                f"Saved {ssid}; {len(networks)} network(s) known.",
                metadata={
                    "security": mode.value,
                    "previous_store_state": previous_state.value
                    if previous_state is LoadState.RESET
                    else None,
                },
            )
            result = await self._apply(networks, ssid)
        return NetworkChange(networks=networks, apply=result)

    async def forget_network(self, ssid: str) -> NetworkChange:
        async with self._lock:
            known = await asyncio.to_thread(self._store.refresh)
            if all(network.ssid != ssid for network in known):
                raise WiFiError(f"Unknown network: {ssid}")
            try:
                networks = await asyncio.to_thread(self._store.delete, ssid)
            except PersistenceError as exc:
                self._record("network_forgotten", ssid, "failed", str(exc))
                raise
            self._record("network_forgotten", ssid, "removed", f"Forgot {ssid}.")
            result = await self._apply(networks, None)
        return NetworkChange(networks=networks, apply=result)

    async def auto_switch(self) -> AutoSwitchResult:
        """Move to a clearly better saved network if one is visible."""

        if not self._auto_switch_enabled:
            raise WiFiError("Automatic switching is disabled in single-network mode")
        status = await self._backend.get_status()
        scan_results = await self._backend.scan()
        async with self._lock:
            saved = await asyncio.to_thread(self._store.refresh)
            decision = decide(
                saved,
                status,
                scan_results,
                minimum_improvement=self._minimum_improvement,
            )
            subject = decision.target.ssid if decision.target else None
            self._record(
                "switch_decision",
                subject,
                decision.reason.value,
                metadata={
                    "current_ssid": status.ssid,
                    "current_quality": status.quality_percent if status.connected else None,
                    "candidate_quality": decision.observation.quality_percent
                    if decision.observation
                    else None,
                    "visible": len(scan_results),
                },
            )
            if not decision.should_switch or decision.target is None:
                return AutoSwitchResult(decision=decision, status=status)
            result = await self._apply(saved, decision.target.ssid)
        return AutoSwitchResult(decision=decision, status=status, apply=result)

    async def reload(self) -> ApplyResult:
        """Retry only the supplicant reload, e.g. after a partial failure."""

        async with self._lock:
            result = await self._applier.reload()
            self._record(
                "config_reloaded",
                str(self._applier.path),
                result.outcome.value,
                result.error or "",
            )
        return result

    # ----------------------------- implementation --------------------------
    async def _apply(self, networks: Sequence[Network], target_ssid: str | None) -> ApplyResult:
        config_text = self.render_config(networks, target_ssid)
        result = await self._applier.apply(config_text)
        self._record(
            "config_applied",
            target_ssid,
            result.outcome.value,
            result.error or "",
            metadata={"step": result.step, "networks": len(networks)},
        )
        return result

    def _record(
        self,
        operation: str,
        subject: str | None,
        outcome: str,
        message: str = "",
        *,
        metadata: dict[str, object | None] | None = None,
    ) -> None:
        log_level = logging.WARNING if outcome in {"failed", "reset", "partial_failure"} else logging.INFO
        logger.log(log_level, "%s %s: %s %s", operation, subject or "-", outcome, message)
        if self._event_log is None:
            return
        try:
            self._event_log.record(operation, subject, outcome, message, metadata=metadata)
        except Exception as exc:  # pragma: no cover - event sink must never break operations
            logger.warning("Unable to record %s event: %s", operation, exc)


__all__ = ["AutoSwitchResult", "NetworkChange", "WiFiEngine"]
