import json

import pytest

from headless_wifi.cli import build_parser, run
from headless_wifi.radio import ScanResult


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_set_then_list_as_json(engine, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["--json", "set", "Home", "12345678"], engine=engine) == 0
    capsys.readouterr()

    assert run(["--json", "list"], engine=engine) == 0

    listing = json.loads(capsys.readouterr().out)
    assert [network["ssid"] for network in listing] == ["Home"]
    assert "password" not in listing[0]


def test_render_prints_configuration(engine, capsys: pytest.CaptureFixture[str]) -> None:
    run(["set", "Home", "12345678"], engine=engine)
    capsys.readouterr()

    assert run(["render", "--target", "Home"], engine=engine) == 0

    assert "network={" in capsys.readouterr().out


def test_partial_failure_exit_code(engine, radio) -> None:
    radio.reload_error = "refused"

    assert run(["set", "Home", "12345678"], engine=engine) == 2


def test_errors_are_reported(engine, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["set", "Home", "short"], engine=engine) == 1

    assert "error:" in capsys.readouterr().err


def test_scan_human_output(engine, radio, capsys: pytest.CaptureFixture[str]) -> None:
    radio.results = [ScanResult("Cafe", 70, 70, -40, False)]

    assert run(["scan"], engine=engine) == 0

    assert "ssid=Cafe" in capsys.readouterr().out


def test_set_without_password_saves_open_network(engine, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["--json", "set", "Cafe"], engine=engine) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["networks"][0]["security"] == "OPEN"
