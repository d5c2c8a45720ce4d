"""Decide whether the device should move to a better saved network."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .networks import Network
from .radio import ConnectionStatus, ScanResult

DEFAULT_MINIMUM_IMPROVEMENT = 20
# Below any achievable percentage so a disconnected radio always loses.
DISCONNECTED_BASELINE = -1


class SwitchReason(str, Enum):
    NO_SAVED_NETWORKS = "no_saved_networks"
    NO_CANDIDATE_FOUND = "no_candidate_found"
    CURRENT_SUFFICIENT = "current_sufficient"
    SWITCHING = "switching"


@dataclass(frozen=True, slots=True)
class SwitchDecision:
    should_switch: bool
    reason: SwitchReason
    target: Network | None = None
    observation: ScanResult | None = None

    def to_dict(self) -> dict[str, object | None]:
        return {
            "should_switch": self.should_switch,
            "reason": self.reason.value,
            "target": self.target.to_dict(include_password=False) if self.target else None,
            "observation": self.observation.to_dict() if self.observation else None,
        }


def decide(
    saved: Sequence[Network],
    status: ConnectionStatus,
    scan_results: Sequence[ScanResult],
    minimum_improvement: int = DEFAULT_MINIMUM_IMPROVEMENT,
) -> SwitchDecision:
    """Pick the strongest visible saved network, with hysteresis when connected."""

    if not saved:
        return SwitchDecision(False, SwitchReason.NO_SAVED_NETWORKS)
    baseline = status.quality_percent if status.connected else DISCONNECTED_BASELINE
    by_ssid = {network.ssid: network for network in saved}
    best: ScanResult | None = None
    for result in scan_results:
        if result.ssid not in by_ssid:
            continue
        if result.quality_percent <= baseline:
            continue
        if best is None or result.quality_percent > best.quality_percent:
            best = result
    if best is None:
        return SwitchDecision(False, SwitchReason.NO_CANDIDATE_FOUND)
    target = by_ssid[best.ssid]
    if status.connected and best.quality_percent - baseline < minimum_improvement:
        return SwitchDecision(
            False, SwitchReason.CURRENT_SUFFICIENT, target=target, observation=best
        )
    return SwitchDecision(True, SwitchReason.SWITCHING, target=target, observation=best)


__all__ = [
    "DEFAULT_MINIMUM_IMPROVEMENT",
    "DISCONNECTED_BASELINE",
    "SwitchDecision",
    "SwitchReason",
    "decide",
]
