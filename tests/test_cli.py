"""
Tests for the command-line entry point
"""

import pytest

from tcup import cli
from tcup.errors import StartupFailure


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda: None)


def test_parser_maps_flags():
    args = cli.build_parser().parse_args([
        "--in", "0.0.0.0:8443", "--out", "10.0.0.1:8125", "--token", "t",
        "--log", "60", "--forward-mode", "streaming", "--empty-body", "forward",
        "--no-latency", "--timing-unsafe-token",
    ])
    assert args.listen == "0.0.0.0:8443"
    assert args.out == "10.0.0.1:8125"
    assert args.stats_interval == 60
    assert args.forward_mode == "streaming"
    assert args.empty_body == "forward"
    assert args.track_latency is False
    assert args.token_constant_time is False


def test_unset_flags_are_none():
    args = cli.build_parser().parse_args([])
    assert all(value is None for value in vars(args).values())


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--help"])
    assert exc_info.value.code == 0
    assert "--token" in capsys.readouterr().out


def test_usage_error_exits_two():
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--forward-mode", "bursty"])
    assert exc_info.value.code == 2


def test_invalid_config_returns_one():
    assert cli.main(["--out", "nowhere"]) == 1


def test_missing_tls_material_returns_one(tmp_path, monkeypatch):
    def _no_serve(*args, **kwargs):
        raise AssertionError("uvicorn must not start")

    monkeypatch.setattr(cli.uvicorn, "run", _no_serve)
    code = cli.main(["--cert", str(tmp_path / "cert.pem"), "--key", str(tmp_path / "key.pem")])
    assert code == 1


def test_check_tls_material_rejects_garbage(tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("not a certificate")
    key.write_text("not a key")
    with pytest.raises(StartupFailure, match="cannot load TLS"):
        cli.check_tls_material(str(cert), str(key))
