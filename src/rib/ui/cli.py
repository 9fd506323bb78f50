"""Command-line interface router for rib."""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from rib.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
    resolve_config_path,
)
from rib.control_plane import BuildController, BuildError, WorkDirError
from rib.observability.logging import LoggingConfig, setup_logging, shutdown_logging
from rib.sandbox.arguments import default_search_path
from rib.ui.render import CLIRenderer, create_renderer

DEFAULT_WORK_DIR: Final[str] = "."


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="rib",
        description=(
            "rib — Root Image Build tool.\n\n"
            "Common workflows:\n"
            "  rib init image/          Create an empty work directory\n"
            "  rib -d image/ build      Run the scripts in image/build.d\n"
            "  rib -d image/ shell      Open a shell inside image/rootfs\n"
            "  rib -d image/ clean -a   Remove every generated artifact\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_common_options(parser, suppress_defaults=False)

    # Repeated on each subcommand so options work on either side of it; the
    # suppressed defaults keep values given before the subcommand.
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common, suppress_defaults=True)

    subparsers = parser.add_subparsers(dest="command", required=True)

    # init ----------------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init",
        parents=[common],
        help="Create empty rib directory",
        description=(
            "Create the work-directory skeleton in an empty directory.\n\n"
            "Examples:\n"
            "  rib init\n"
            "  rib init image/\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    init_parser.add_argument(
        "workdir",
        nargs="?",
        default=None,
        help="Work directory (overrides --dir).",
    )
    init_parser.set_defaults(handler=_cmd_init)

    # build ---------------------------------------------------------------
    build_parser_ = subparsers.add_parser(
        "build",
        parents=[common],
        help="Run build scripts",
        description=(
            "Run the scripts in build.d in file-name order, stopping at the first failure.\n\n"
            "Examples:\n"
            "  rib build\n"
            "  rib build --buildseq 40\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    build_parser_.add_argument(
        "--buildseq",
        "-s",
        type=int,
        default=None,
        help="Minimum sequence number (default: build.seqmin from config).",
    )
    build_parser_.add_argument("--json", action="store_true", help="Emit JSON output")
    build_parser_.set_defaults(handler=_cmd_build)

    # shell ---------------------------------------------------------------
    shell_parser = subparsers.add_parser(
        "shell",
        parents=[common],
        help="Run a shell or command inside rootfs",
        description=(
            "Run a command inside rootfs under fakechroot, fakeroot and chroot.\n"
            "Without arguments an interactive bash is started.\n\n"
            "Examples:\n"
            "  rib shell\n"
            "  rib shell /bin/ls -la /etc\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    shell_parser.add_argument(
        "shellargs",
        nargs=argparse.REMAINDER,
        help="Command and arguments.",
    )
    shell_parser.set_defaults(handler=_cmd_shell)

    # clean ---------------------------------------------------------------
    clean_parser = subparsers.add_parser(
        "clean",
        parents=[common],
        help="Clean rootfs, tmp and fakeroot.save",
        description=(
            "Remove rootfs, tmp and fakeroot.save, then restore the skeleton.\n\n"
            "Examples:\n"
            "  rib clean\n"
            "  rib clean --all\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    clean_parser.add_argument(
        "--all",
        "-a",
        dest="all_targets",
        action="store_true",
        default=False,
        help="Also clean dist and log directories.",
    )
    clean_parser.set_defaults(handler=_cmd_clean)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, rib.toml and RIB_ env.\n\n"
            "Examples:\n"
            "  rib config\n"
            "  rib config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def _add_common_options(parser: argparse.ArgumentParser, *, suppress_defaults: bool) -> None:
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_defaults else value

    parser.add_argument(
        "--dir",
        "-d",
        dest="work_dir",
        default=default(DEFAULT_WORK_DIR),
        help="Work directory (default: current working directory).",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=default(None),
        help="Path to rib TOML config (default: <work dir>/rib.toml if present).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=default(0),
        help="Log to stderr; repeat to add the caller to each line.",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        default=default(False),
        help="Print nothing.",
    )


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    if os.geteuid() == 0:
        print("Cannot run as root.", file=sys.stderr)
        return 1

    os.environ["PATH"] = default_search_path()

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    renderer = _get_renderer(namespace)
    try:
        result = handler(namespace)
    except CLIError as exc:
        renderer.error(f"error: {exc}")
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_init(args: argparse.Namespace) -> int:
    work_dir = Path(args.workdir) if args.workdir else _work_dir(args)
    controller = _controller(args, work_dir)
    try:
        controller.init()
    except WorkDirError as exc:
        raise CLIError(f"Failed to initialize '{work_dir}': {exc}") from exc

    _get_renderer(args).text(f"Initialized directory '{work_dir}'.")
    return 0


def _cmd_build(args: argparse.Namespace) -> int:
    controller = _controller(args, _work_dir(args))
    try:
        report = controller.build(args.buildseq)
    except (BuildError, WorkDirError) as exc:
        raise CLIError(f"Build failed: {exc}") from exc

    payload: dict[str, object] = {
        "command": "build",
        "work_dir": str(report.work_dir),
        "duration_ms": round(report.duration_ms, 3),
        "executed": list(report.executed),
        "ignored_failures": list(report.ignored_failures),
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Work directory", report.work_dir)
    renderer.table(
        ("SCRIPT", "STATUS", "DURATION"),
        [
            (
                result.name,
                "ok" if result.ignored_error is None else f"ignored ({result.ignored_error})",
                f"{result.duration_ms / 1000.0:.3f}s",
            )
            for result in report.results
        ],
    )
    renderer.kv("Build duration", f"{report.duration_ms / 1000.0:.3f}s")
    return 0


def _cmd_shell(args: argparse.Namespace) -> int:
    controller = _controller(args, _work_dir(args))
    try:
        controller.shell(list(args.shellargs or ()))
    except WorkDirError as exc:
        raise CLIError(f"Failed to execute shell: {exc}") from exc
    return 0


def _cmd_clean(args: argparse.Namespace) -> int:
    controller = _controller(args, _work_dir(args))
    try:
        removed = controller.clean(all_targets=_flag(args, "all_targets"))
    except WorkDirError as exc:
        raise CLIError(f"Failed to clean: {exc}") from exc

    renderer = _get_renderer(args)
    renderer.text("Removed:")
    renderer.items([str(path) for path in removed])
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    work_dir = _work_dir(args)
    config = _load_effective_config(args, work_dir)
    source = resolve_config_path(args.config_path, work_dir=work_dir)

    payload: dict[str, object] = {
        "command": "config",
        "source": str(source) if source.exists() else None,
        "config": config,
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Config file", payload["source"] or "(defaults)")
    renderer.text(dump_effective_config(config))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _controller(args: argparse.Namespace, work_dir: Path) -> BuildController:
    config = _load_effective_config(args, work_dir)
    handle = setup_logging(_logging_config(args, config))
    return BuildController(work_dir, config=config, logger=handle.logger, logging_handle=handle)


def _logging_config(args: argparse.Namespace, config: Mapping[str, Any]) -> LoggingConfig:
    section = config["logging"]
    verbose = int(getattr(args, "verbose", 0) or 0)
    quiet = _flag(args, "quiet")
    return LoggingConfig(
        level="DEBUG" if verbose >= 2 else section["level"],
        log_format=section["format"],
        log_to_stderr=not quiet and (verbose >= 1 or bool(section["to_stderr"])),
        include_caller=verbose >= 2,
    )


def _load_effective_config(args: argparse.Namespace, work_dir: Path) -> dict[str, Any]:
    try:
        return load_config(getattr(args, "config_path", None), work_dir=work_dir)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _work_dir(args: argparse.Namespace) -> Path:
    return Path(getattr(args, "work_dir", DEFAULT_WORK_DIR)).expanduser()


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(quiet=_flag(args, "quiet"))


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


__all__ = ["CLIError", "build_parser", "run_cli"]
