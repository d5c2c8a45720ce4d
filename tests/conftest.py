from __future__ import annotations

from pathlib import Path

import pytest

from headless_wifi.applier import ConnectionApplier
from headless_wifi.engine import WiFiEngine
from headless_wifi.errors import CapabilityError
from headless_wifi.networks import MemoryBackend, NetworkStore
from headless_wifi.radio import ConnectionStatus, RadioBackend, ScanResult
from headless_wifi.system_log import EventLog


class FakeRadioBackend(RadioBackend):
    def __init__(self) -> None:
        self.status = ConnectionStatus(connected=False)
        self.results: list[ScanResult] = []
        self.reload_error: str | None = None
        self.reload_calls = 0
        self.scan_calls = 0

    async def scan(self) -> list[ScanResult]:
        self.scan_calls += 1
        return list(self.results)

    async def get_status(self) -> ConnectionStatus:
        return self.status

    async def reload(self) -> None:
        self.reload_calls += 1
        if self.reload_error is not None:
            raise CapabilityError(self.reload_error)


@pytest.fixture
def radio() -> FakeRadioBackend:
    return FakeRadioBackend()


@pytest.fixture
def store_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def supplicant_path(tmp_path: Path) -> Path:
    return tmp_path / "etc" / "wpa_supplicant.conf"


@pytest.fixture
def event_log() -> EventLog:
    return EventLog(None, fallback_path=None)


@pytest.fixture
def engine(
    radio: FakeRadioBackend,
    store_backend: MemoryBackend,
    supplicant_path: Path,
    event_log: EventLog,
) -> WiFiEngine:
    return WiFiEngine(
        NetworkStore(store_backend),
        radio,
        ConnectionApplier(radio, supplicant_path),
        event_log=event_log,
    )
