"""
rib — integration test package

File: tests/integration/__init__.py

Purpose
- Test package marker file for end-to-end command tests.

Functional requirements
- Must not import heavy modules at import time; keep test collection fast.
- Must not require root, the real chroot tools or network access.
"""
