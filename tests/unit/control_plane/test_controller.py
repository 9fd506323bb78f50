"""
rib — unit tests for the build controller

File: tests/unit/control_plane/test_controller.py

Purpose
- Drive ``init``/``build``/``shell``/``clean`` against temporary work
  directories with fake wrapper programs on the search path.

What this test file should cover
- Build order, shared environment across scripts and halting on failure.
- Flag handling at build level (ignore, skip) and the sequence threshold.
- The per-build log file under ``log/``.
- Work-directory initialization and cleaning rules.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from rib.config.schema import default_config
from rib.control_plane.controller import (
    SHELL_RC_LINES,
    BuildController,
    BuildError,
    WorkDirError,
    _shell_rc_file,
)
from rib.workspace.skeleton import is_rib_dir


def _controller(work_dir: Path, logger: logging.Logger, search_path: str = "") -> BuildController:
    return BuildController(
        work_dir,
        config=default_config(),
        logger=logger,
        environ={"PATH": search_path or "/usr/bin:/bin"},
    )


def _exporter(name: str, value: str) -> str:
    return f"#!/bin/sh\nprintf 'setenv\\037{name}\\037{value}\\0' >&3\n"


def test_build_runs_scripts_in_order_with_shared_environment(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, _ = captured_logger
    scripts = work_dir / "build.d"
    script_factory(scripts / "10--export", _exporter("GREETING", "hello"))
    script_factory(
        scripts / "20--consume",
        '#!/bin/sh\nprintf "%s\\n" "$GREETING" > "$RIB_DIR_DIST/greeting"\n',
    )

    report = _controller(work_dir, logger).build()

    assert report.executed == ("10--export", "20--consume")
    assert report.ignored_failures == ()
    assert report.environment == {"GREETING": "hello"}
    assert (work_dir / "dist" / "greeting").read_text(encoding="utf-8") == "hello\n"


def test_each_build_starts_with_an_empty_store(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, _ = captured_logger
    script_factory(work_dir / "build.d" / "10--check", '#!/bin/sh\n[ -z "$ONCE" ] || exit 9\n')
    script_factory(work_dir / "build.d" / "20--export", _exporter("ONCE", "1"))
    controller = _controller(work_dir, logger)

    controller.build()
    second = controller.build()

    assert second.environment == {"ONCE": "1"}


def test_build_halts_at_the_first_failure(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, handler = captured_logger
    scripts = work_dir / "build.d"
    script_factory(scripts / "10--ok", "#!/bin/sh\nexit 0\n")
    script_factory(scripts / "20--fail", "#!/bin/sh\nexit 2\n")
    script_factory(scripts / "30--never", '#!/bin/sh\ntouch "$RIB_DIR_DIST/never"\n')

    with pytest.raises(BuildError) as excinfo:
        _controller(work_dir, logger).build()

    assert excinfo.value.script == "20--fail"
    assert "exit status 2" in str(excinfo.value)
    assert not (work_dir / "dist" / "never").exists()
    assert any(m.startswith("Command failed:") for m in handler.messages(logging.ERROR))


def test_ignored_failures_do_not_halt_the_build(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, _ = captured_logger
    scripts = work_dir / "build.d"
    script_factory(scripts / "10-E-fail", "#!/bin/sh\nexit 1\n")
    script_factory(scripts / "20--after", '#!/bin/sh\ntouch "$RIB_DIR_DIST/after"\n')

    report = _controller(work_dir, logger).build()

    assert report.executed == ("10-E-fail", "20--after")
    assert report.ignored_failures == ("10-E-fail",)
    assert (work_dir / "dist" / "after").exists()


def test_skip_flag_and_sequence_threshold(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, handler = captured_logger
    scripts = work_dir / "build.d"
    script_factory(scripts / "05--early", "#!/bin/sh\nexit 1\n")
    script_factory(scripts / "10-S-skipped", "#!/bin/sh\nexit 1\n")
    script_factory(scripts / "20--late", "#!/bin/sh\nexit 0\n")
    (scripts / "README").write_text("not a script\n", encoding="utf-8")

    report = _controller(work_dir, logger).build(seqmin=10)

    assert report.executed == ("20--late",)
    warnings = handler.messages(logging.WARNING)
    assert "Skipping file '05--early': seqno=5 < seqmin=10" in warnings
    assert "Skipping file 'README': regex mismatch" in warnings


def test_seqmin_defaults_to_the_configured_value(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, _ = captured_logger
    script_factory(work_dir / "build.d" / "10--early", "#!/bin/sh\nexit 1\n")
    script_factory(work_dir / "build.d" / "50--late", "#!/bin/sh\nexit 0\n")
    config = default_config()
    config["build"]["seqmin"] = 50

    report = BuildController(work_dir, config=config, logger=logger).build()

    assert report.executed == ("50--late",)


def test_build_writes_script_output_to_the_build_log(
    work_dir: Path, script_factory, captured_logger
) -> None:
    logger, _ = captured_logger
    script_factory(work_dir / "build.d" / "10--hello", "#!/bin/sh\necho hello\necho oops >&2\n")

    _controller(work_dir, logger).build()

    content = (work_dir / "log" / "build.log").read_text(encoding="utf-8")
    assert " DEBUG [stdout] hello" in content
    assert " DEBUG [stderr] oops" in content
    assert " INFO Build duration: " in content
    assert (work_dir / "log" / "build.log").stat().st_mode & 0o777 == 0o600


def test_build_without_scripts_reports_nothing(work_dir: Path, captured_logger) -> None:
    logger, handler = captured_logger

    report = _controller(work_dir, logger).build()

    assert report.results == ()
    assert any(m.startswith("No build scripts found") for m in handler.messages(logging.WARNING))


def test_chroot_scripts_run_through_the_wrappers(
    work_dir: Path, script_factory, captured_logger, fake_search_path: str
) -> None:
    logger, _ = captured_logger
    script_factory(
        work_dir / "build.d" / "10-C-inside",
        "#!/bin/sh\nprintf 'setenv\\037TEMP\\037%s\\0' \"$VTEMP\" >&3\n",
    )

    report = _controller(work_dir, logger, fake_search_path).build()

    assert report.environment["TEMP"].startswith("/.volatile.")
    assert list((work_dir / "rootfs").iterdir()) == []


def test_missing_wrapper_fails_the_build(
    work_dir: Path, script_factory, captured_logger, tmp_path: Path
) -> None:
    logger, _ = captured_logger
    script_factory(work_dir / "build.d" / "10-R-root", "#!/bin/sh\nexit 0\n")
    config = default_config()
    config["wrappers"]["fakeroot"] = "rib-test-no-such-fakeroot"
    config["wrappers"]["extra_search_paths"] = []
    controller = BuildController(
        work_dir, config=config, logger=logger, environ={"PATH": str(tmp_path)}
    )

    with pytest.raises(BuildError, match="rib-test-no-such-fakeroot"):
        controller.build()


def test_commands_require_an_initialized_directory(tmp_path: Path, captured_logger) -> None:
    logger, _ = captured_logger
    controller = _controller(tmp_path, logger)

    with pytest.raises(WorkDirError, match="not initialized"):
        controller.build()
    with pytest.raises(WorkDirError, match="not initialized"):
        controller.clean()
    with pytest.raises(WorkDirError, match="invalid directory"):
        _controller(tmp_path / "missing", logger).build()


def test_init_creates_the_skeleton_once(tmp_path: Path, captured_logger) -> None:
    logger, _ = captured_logger
    target = tmp_path / "nested" / "image"
    controller = _controller(target, logger)

    assert controller.init() == target
    assert is_rib_dir(target)

    with pytest.raises(WorkDirError, match="already initialized"):
        controller.init()


def test_init_refuses_a_non_empty_directory(tmp_path: Path, captured_logger) -> None:
    logger, _ = captured_logger
    (tmp_path / "stray").write_text("", encoding="utf-8")

    with pytest.raises(WorkDirError, match="not empty"):
        _controller(tmp_path, logger).init()


def test_init_refuses_a_file(tmp_path: Path, captured_logger) -> None:
    logger, _ = captured_logger
    target = tmp_path / "file"
    target.write_text("", encoding="utf-8")

    with pytest.raises(WorkDirError, match="cannot create"):
        _controller(target, logger).init()


def test_clean_keeps_dist_and_log_unless_asked(work_dir: Path, captured_logger) -> None:
    logger, _ = captured_logger
    (work_dir / "rootfs" / "etc").mkdir()
    (work_dir / "tmp" / "scratch").write_text("x", encoding="utf-8")
    (work_dir / "fakeroot.save").write_text("state", encoding="utf-8")
    (work_dir / "dist" / "image.tar").write_text("x", encoding="utf-8")
    (work_dir / "log" / "build.log").write_text("x", encoding="utf-8")
    (work_dir / "build.d" / "10--keep").write_text("x", encoding="utf-8")
    controller = _controller(work_dir, logger)

    removed = controller.clean()

    assert [p.name for p in removed] == ["rootfs", "tmp", "fakeroot.save"]
    assert list((work_dir / "rootfs").iterdir()) == []
    assert list((work_dir / "tmp").iterdir()) == []
    assert (work_dir / "fakeroot.save").read_text(encoding="utf-8") == ""
    assert (work_dir / "dist" / "image.tar").exists()
    assert (work_dir / "build.d" / "10--keep").exists()

    controller.clean(all_targets=True)

    assert list((work_dir / "dist").iterdir()) == []
    assert list((work_dir / "log").iterdir()) == []
    assert (work_dir / "build.d" / "10--keep").exists()
    assert is_rib_dir(work_dir)


def test_shell_runs_commands_and_logs_failures(
    work_dir: Path, captured_logger, fake_search_path: str
) -> None:
    logger, handler = captured_logger
    controller = _controller(work_dir, logger, fake_search_path)

    result = controller.shell(["/bin/sh", "-c", "exit 0"])
    assert result is not None
    assert result.returncode == 0

    assert controller.shell(["/bin/sh", "-c", "exit 3"]) is None
    assert any(m.startswith("Shell command failed:") for m in handler.messages(logging.INFO))


def test_shell_rc_file_is_written_inside_rootfs_and_removed(work_dir: Path) -> None:
    rootfs = work_dir / "rootfs"

    with _shell_rc_file(rootfs) as rc_path:
        assert rc_path.parent == rootfs
        assert rc_path.name.startswith(".volatile.bashrc.")
        assert rc_path.read_text(encoding="utf-8").splitlines() == list(SHELL_RC_LINES)

    assert not rc_path.exists()
