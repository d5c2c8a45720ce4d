import asyncio
import stat
from pathlib import Path

from headless_wifi.applier import ApplyOutcome, ConnectionApplier


def test_apply_writes_and_reloads(radio, supplicant_path: Path) -> None:
    applier = ConnectionApplier(radio, supplicant_path)

    result = asyncio.run(applier.apply("update_config=1\n"))

    assert result.outcome is ApplyOutcome.APPLIED
    assert result.ok
    assert supplicant_path.read_text(encoding="utf-8") == "update_config=1\n"
    assert stat.S_IMODE(supplicant_path.stat().st_mode) == 0o600
    assert radio.reload_calls == 1


def test_reload_failure_is_a_partial_failure(radio, supplicant_path: Path) -> None:
    radio.reload_error = "wpa_cli: connection refused"
    applier = ConnectionApplier(radio, supplicant_path)

    result = asyncio.run(applier.apply("update_config=1\n"))

    assert result.outcome is ApplyOutcome.PARTIAL_FAILURE
    assert result.step == "reload"
    assert result.error == "wpa_cli: connection refused"
    assert supplicant_path.exists()


def test_write_failure_skips_reload(radio, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    applier = ConnectionApplier(radio, blocker / "wpa_supplicant.conf")

    result = asyncio.run(applier.apply("update_config=1\n"))

    assert result.outcome is ApplyOutcome.FAILED
    assert result.step == "write"
    assert radio.reload_calls == 0


def test_reload_can_be_retried_alone(radio, supplicant_path: Path) -> None:
    applier = ConnectionApplier(radio, supplicant_path)
    radio.reload_error = "busy"
    assert asyncio.run(applier.reload()).outcome is ApplyOutcome.FAILED

    radio.reload_error = None
    result = asyncio.run(applier.reload())

    assert result.ok
    assert result.to_dict() == {"outcome": "applied", "step": None, "error": None}
    assert not supplicant_path.exists()
