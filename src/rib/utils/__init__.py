"""Utility exports for filesystem helpers."""

from rib.utils.fs import copy_file, ensure_dir, ensure_file, is_empty, real_path

__all__ = [
    "copy_file",
    "ensure_dir",
    "ensure_file",
    "is_empty",
    "real_path",
]
