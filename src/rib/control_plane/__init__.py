"""Command layer: work-directory commands built on the sandbox runner."""

from rib.control_plane.controller import BuildController, BuildError, BuildReport, WorkDirError

__all__ = ["BuildController", "BuildError", "BuildReport", "WorkDirError"]
