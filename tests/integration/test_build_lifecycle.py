"""
rib — build lifecycle integration

File: tests/integration/test_build_lifecycle.py

Purpose
- Walk a work directory through init, several builds and cleaning with the
  queue-backed logging active, the way the CLI wires it.

Functional requirements
- Chroot layering uses the fake wrappers from ``conftest.py``.
- Every build appends to ``log/build.log``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from rib.config.schema import default_config
from rib.control_plane.controller import BuildController, BuildError
from rib.observability.logging import LoggingConfig, setup_logging, shutdown_logging


@pytest.fixture
def controller(tmp_path: Path, fake_search_path: str):
    handle = setup_logging(LoggingConfig(logger_name="rib"))
    work = tmp_path / "image"
    try:
        yield BuildController(
            work,
            config=default_config(),
            logger=handle.logger,
            logging_handle=handle,
            environ={"PATH": f"{fake_search_path}:/usr/bin:/bin"},
        )
    finally:
        shutdown_logging(handle)


def test_init_build_clean_rebuild(controller: BuildController, script_factory) -> None:
    work = controller.init()
    scripts = work / "build.d"
    script_factory(
        scripts / "10--prepare",
        "#!/bin/sh\n"
        'mkdir -p "$RIB_DIR_ROOTFS/etc"\n'
        "printf 'setenv\\037HOSTNAME\\037builder\\0' >&3\n",
    )
    script_factory(
        scripts / "20-C-configure",
        "#!/bin/sh\n"
        '[ "$RIB_EXEC_ENV" = "1" ] || exit 7\n'
        'printf "%s\\n" "$HOSTNAME" > "$(dirname "$0")/../etc/hostname"\n',
    )
    script_factory(
        scripts / "30--package",
        '#!/bin/sh\ncp "$RIB_DIR_ROOTFS/etc/hostname" "$RIB_DIR_DIST/hostname"\n',
    )
    script_factory(scripts / "40-S-disabled", "#!/bin/sh\nexit 1\n")

    report = controller.build()

    assert report.executed == ("10--prepare", "20-C-configure", "30--package")
    assert (work / "dist" / "hostname").read_text(encoding="utf-8") == "builder\n"
    assert sorted(p.name for p in (work / "rootfs").iterdir()) == ["etc"]

    controller.clean()
    assert not (work / "rootfs" / "etc").exists()
    assert (work / "dist" / "hostname").exists()

    report = controller.build()
    assert report.environment == {"HOSTNAME": "builder"}

    log_text = (work / "log" / "build.log").read_text(encoding="utf-8")
    assert log_text.count(" INFO Build duration: ") == 2
    assert "Executing command: " in log_text
    assert "fakechroot --environment debootstrap -- " in log_text


def test_failed_build_leaves_earlier_results_and_logs_the_failure(
    controller: BuildController, script_factory
) -> None:
    work = controller.init()
    script_factory(
        work / "build.d" / "10--first",
        '#!/bin/sh\ntouch "$RIB_DIR_DIST/first"\n',
    )
    script_factory(work / "build.d" / "20--broken", "#!/bin/sh\necho bad >&2\nexit 5\n")
    script_factory(
        work / "build.d" / "30--skipped",
        '#!/bin/sh\ntouch "$RIB_DIR_DIST/third"\n',
    )

    with pytest.raises(BuildError) as excinfo:
        controller.build()

    assert excinfo.value.script == "20--broken"
    assert (work / "dist" / "first").exists()
    assert not (work / "dist" / "third").exists()
    log_text = (work / "log" / "build.log").read_text(encoding="utf-8")
    assert "DEBUG [stderr] bad" in log_text
    assert " ERROR Command failed: " in log_text
    assert list((work / "tmp").iterdir()) == []
