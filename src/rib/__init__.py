"""
rib — Root Image Build tool

File: src/rib/__init__.py

Purpose
- Package root. Build a root filesystem image by running numbered scripts
  under chroot, fakeroot and fakechroot.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
