"""Work-directory layout helpers."""

from rib.workspace.skeleton import (
    DIR_SKELETON,
    SkeletonEntry,
    clean_targets,
    is_rib_dir,
    make_skeleton,
    skeleton_environment,
)

__all__ = [
    "DIR_SKELETON",
    "SkeletonEntry",
    "clean_targets",
    "is_rib_dir",
    "make_skeleton",
    "skeleton_environment",
]
