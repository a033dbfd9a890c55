#!/usr/bin/env python3
"""
RDProbe - Tests for CLI helpers.
"""

import json
import sys
import types
from unittest.mock import patch

import pytest

from rdprobe import cli
from rdprobe.core.errors import DialFailure
from rdprobe.core.models import ServiceRDP
from rdprobe.utils.constants import DEFAULT_PROBE_TIMEOUT, DEFAULT_THREADS


def _settings(**overrides):
    base = {
        "probe_timeout": DEFAULT_PROBE_TIMEOUT,
        "failure_policy": "cache",
        "decoder": None,
        "threads": DEFAULT_THREADS,
        "rate_limit": 0.0,
        "exclude": [],
    }
    base.update(overrides)
    return base


class _CliDecoder:
    def detect_rdp(self, conn, timeout):
        if conn.address.startswith("10.0.0.9"):
            return "", False
        return "Windows Server 2019", True

    def detect_rdp_auth(self, conn, timeout):
        return ServiceRDP(dns_computer_name="dc01.corp.local"), True


@pytest.fixture
def cli_env(monkeypatch, stub_dialer):
    module = types.ModuleType("cli_test_decoders")
    module.Decoder = _CliDecoder
    monkeypatch.setitem(sys.modules, "cli_test_decoders", module)

    dialers = []

    def _make_dialer(rate_limit=0.0, exclude=()):
        dialer = stub_dialer()
        dialer.rate_limit = rate_limit
        dialer.exclude = list(exclude)
        dialers.append(dialer)
        return dialer

    with patch("rdprobe.cli.setup_logging"), patch(
        "rdprobe.cli.get_probe_settings", return_value=_settings()
    ), patch("rdprobe.cli.TCPDialer", side_effect=_make_dialer):
        yield dialers


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


def test_parse_arguments_defaults():
    args = cli.parse_arguments(["10.0.0.5"])
    assert args.targets == ["10.0.0.5"]
    assert args.port == "3389"
    assert args.auth is False
    assert args.timeout is None
    assert args.json is False


def test_resolve_settings_overrides():
    args = cli.parse_arguments(
        [
            "h",
            "--timeout",
            "2",
            "-j",
            "3",
            "--decoder",
            "m:D",
            "--retry-failures",
            "--rate-limit",
            "0.5",
            "--exclude",
            "10.0.0.1",
        ]
    )
    with patch("rdprobe.cli.get_probe_settings", return_value=_settings(exclude=["dc01"])):
        settings = cli.resolve_settings(args)
    assert settings["probe_timeout"] == 2.0
    assert settings["threads"] == 3
    assert settings["decoder"] == "m:D"
    assert settings["failure_policy"] == "retry"
    assert settings["rate_limit"] == 0.5
    assert settings["exclude"] == ["dc01", "10.0.0.1"]


@pytest.mark.parametrize(
    "extra", [["--timeout", "0"], ["--threads", "0"], ["--rate-limit", "-1"]]
)
def test_resolve_settings_rejects_bad_values(extra):
    args = cli.parse_arguments(["h"] + extra)
    with patch("rdprobe.cli.get_probe_settings", return_value=_settings()):
        with pytest.raises(ValueError):
            cli.resolve_settings(args)


def test_json_output_with_auth(cli_env, capsys):
    code = _run(
        ["10.0.0.5", "10.0.0.9", "--auth", "--json", "--decoder", "cli_test_decoders:Decoder"]
    )
    rows = json.loads(capsys.readouterr().out)

    assert code == cli.EXIT_OK
    assert rows[0]["host"] == "10.0.0.5"
    assert rows[0]["is_rdp"] is True
    assert rows[0]["os"] == "Windows Server 2019"
    assert rows[0]["auth"] is True
    assert rows[0]["service_info"]["dns_computer_name"] == "dc01.corp.local"
    assert rows[1] == {"host": "10.0.0.9", "port": 3389, "error": None, "is_rdp": False, "os": ""}
    # Presence and auth on the same target each dial once
    assert len(cli_env[0].calls) == 3


def test_table_output(cli_env, capsys):
    code = _run(["10.0.0.5:3390", "--decoder", "cli_test_decoders:Decoder"])
    out = capsys.readouterr().out
    assert code == cli.EXIT_OK
    assert "10.0.0.5:3390" in out
    assert "Windows Server 2019" in out


def test_probe_errors_set_exit_code(cli_env, capsys):
    with patch.object(_CliDecoder, "detect_rdp", side_effect=DialFailure("x:1", "refused")):
        code = _run(["10.0.0.5", "--json", "--decoder", "cli_test_decoders:Decoder"])
    rows = json.loads(capsys.readouterr().out)
    assert code == cli.EXIT_PROBE_ERRORS
    assert "refused" in rows[0]["error"]


def test_missing_decoder_is_usage_error(cli_env):
    assert _run(["10.0.0.5"]) == cli.EXIT_USAGE


def test_unloadable_decoder_is_usage_error(cli_env):
    assert _run(["10.0.0.5", "--decoder", "cli_test_decoders:Missing"]) == cli.EXIT_USAGE


def test_no_valid_targets_is_usage_error(cli_env):
    assert _run(["bad host", "--decoder", "cli_test_decoders:Decoder"]) == cli.EXIT_USAGE


def test_bad_port_spec_is_usage_error(cli_env):
    assert _run(["10.0.0.5", "-p", "rdp", "--decoder", "cli_test_decoders:Decoder"]) == (
        cli.EXIT_USAGE
    )


def test_save_defaults(cli_env):
    with patch("rdprobe.cli.update_persistent_defaults", return_value=True) as mock_update:
        _run(
            [
                "10.0.0.5",
                "--json",
                "--decoder",
                "cli_test_decoders:Decoder",
                "--timeout",
                "3",
                "--retry-failures",
                "--save-defaults",
            ]
        )
    kwargs = mock_update.call_args.kwargs
    assert kwargs["probe_timeout"] == 3.0
    assert kwargs["decoder"] == "cli_test_decoders:Decoder"
    assert kwargs["failure_policy"] == "retry"


def test_run_is_torn_down_after_probing(cli_env, capsys):
    with patch("rdprobe.cli.RDPProber.end_run") as mock_end:
        _run(["10.0.0.5", "--json", "--decoder", "cli_test_decoders:Decoder"])
    mock_end.assert_called_once()


def test_render_table_handles_errors_and_missing_auth():
    rows = [
        {"host": "a", "port": 1, "error": "refused"},
        {"host": "b", "port": 2, "error": None, "is_rdp": False, "os": ""},
        {"host": "c", "port": 3, "error": None, "is_rdp": True, "os": "W", "auth": False,
         "service_info": None},
    ]
    table = cli.render_table(rows, auth=True)
    assert table.row_count == 3
    assert len(table.columns) == 6
