"""Unit tests for the process entrypoint and its exit-code routing."""

from __future__ import annotations

import os

import pytest

from rib.config.loader import ConfigLoadError
from rib.config.schema import ConfigValidationError, ConfigValidationIssue
from rib.control_plane.controller import BuildError, WorkDirError
from rib.main import ExitCode, cli_entrypoint, exit_code_for
from rib.sandbox.errors import ProcessExitError


@pytest.fixture(autouse=True)
def _unprivileged(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("rib.ui.cli.os.geteuid", lambda: 1000)
    monkeypatch.setenv("PATH", os.environ.get("PATH", "/usr/bin:/bin"))


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ConfigLoadError("unreadable"), ExitCode.CONFIG_ERROR),
        (
            ConfigValidationError([ConfigValidationIssue("build.seqmin", "expected int")]),
            ExitCode.CONFIG_ERROR,
        ),
        (BuildError("stopped", script="10--x"), ExitCode.BUILD_FAILED),
        (WorkDirError("not initialized"), ExitCode.BUILD_FAILED),
        (ValueError("unexpected"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exit_code_for_known_errors(error: Exception, expected: ExitCode) -> None:
    assert exit_code_for(error) is expected


def test_exit_code_follows_the_raise_from_chain() -> None:
    try:
        try:
            raise ConfigLoadError("bad toml")
        except ConfigLoadError as exc:
            raise RuntimeError("wrapped") from exc
    except RuntimeError as wrapped:
        assert exit_code_for(wrapped) is ExitCode.CONFIG_ERROR


def test_exit_code_for_a_cyclic_chain_terminates() -> None:
    first = RuntimeError("first")
    second = RuntimeError("second")
    first.__cause__ = second
    second.__cause__ = first

    assert exit_code_for(first) is ExitCode.INTERNAL_ERROR


def test_help_exits_successfully(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["--help"]) == ExitCode.SUCCESS
    assert "usage:" in capsys.readouterr().out


def test_unknown_command_is_a_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["bogus"]) == 2
    assert "usage:" in capsys.readouterr().err


def test_interrupt_is_reported_as_a_failure(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def interrupted(argv: object) -> int:
        raise KeyboardInterrupt

    monkeypatch.setattr("rib.ui.cli.run_cli", interrupted)

    assert cli_entrypoint(["build", "."]) == ExitCode.BUILD_FAILED
    assert capsys.readouterr().err == "interrupted\n"


def test_uncaught_sandbox_errors_print_only_their_message(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def failing(argv: object) -> int:
        raise ProcessExitError(["10--fail"], 3)

    monkeypatch.setattr("rib.ui.cli.run_cli", failing)

    assert cli_entrypoint(["build", "."]) == ExitCode.BUILD_FAILED
    assert capsys.readouterr().err == "10--fail: exit status 3\n"


def test_unexpected_errors_print_a_traceback(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def broken(argv: object) -> int:
        raise ValueError("boom")

    monkeypatch.setattr("rib.ui.cli.run_cli", broken)

    assert cli_entrypoint([]) == ExitCode.INTERNAL_ERROR
    err = capsys.readouterr().err
    assert "Traceback" in err
    assert "ValueError: boom" in err
