import json
from pathlib import Path

import pytest

from headless_wifi.system_log import EventLog


def test_record_appends_json_line(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "wifi_config.log"
    log = EventLog(path, fallback_path=None)

    entry = log.record("network_saved", "Home", "saved", metadata={"security": "WPA2", "x": None})

    lines = path.read_text(encoding="utf-8").splitlines()
    payload = json.loads(lines[0])
    assert payload["operation"] == "network_saved"
    assert payload["subject"] == "Home"
    assert payload["outcome"] == "saved"
    assert payload["metadata"] == {"security": "WPA2"}
    assert payload["timestamp"] == pytest.approx(entry.timestamp)


def test_unwritable_primary_falls_back(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    fallback = tmp_path / "fallback.log"
    log = EventLog(blocker / "wifi_config.log", fallback_path=fallback)

    log.record("config_applied", "Home", "applied")

    assert json.loads(fallback.read_text(encoding="utf-8"))["outcome"] == "applied"


def test_unwritable_everywhere_keeps_memory_only(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    log = EventLog(blocker / "a.log", fallback_path=blocker / "b.log")

    log.record("config_applied", "Home", "applied")

    assert [entry.operation for entry in log.tail()] == ["config_applied"]


def test_tail_filters_and_limits() -> None:
    log = EventLog(None, fallback_path=None)
    for index in range(5):
        log.record("network_saved", f"net{index}", "saved")
    log.record("switch_decision", None, "no_candidate_found")

    assert [entry.subject for entry in log.tail(2, operation="network_saved")] == ["net3", "net4"]
    assert log.tail(1)[0].operation == "switch_decision"


def test_entries_restored_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "wifi_config.log"
    EventLog(path, fallback_path=None).record("network_saved", "Home", "saved")
    with path.open("a", encoding="utf-8") as handle:
        handle.write("not json\n")

    restored = EventLog(path, fallback_path=None)

    assert [entry.subject for entry in restored.tail()] == ["Home"]


def test_max_entries_must_be_positive() -> None:
    with pytest.raises(ValueError):
        EventLog(None, fallback_path=None, max_entries=0)


def test_undecodable_log_does_not_block_startup(tmp_path: Path) -> None:
    path = tmp_path / "wifi_config.log"
    path.write_bytes(b'{"operation": "network_saved\xff"}\n')

    log = EventLog(path, fallback_path=None)
    log.record("config_applied", "Home", "applied")

    assert [entry.operation for entry in log.tail()] == ["config_applied"]
