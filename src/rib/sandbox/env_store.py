"""Environment variables carried from one build script to the next."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class PersistentEnvironmentStore:
    """
    Extra environment variables exported to every later script of a build run.

    The store is written only by the side-channel decoder of the running
    script and read by the sequencer after that decoder has been joined, so
    it carries no lock.
    """

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def setenv(self, key: str, value: str) -> None:
        self._values[key] = value

    def unsetenv(self, key: str) -> None:
        self._values.pop(key, None)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._values.items()))

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PersistentEnvironmentStore({self._values!r})"


__all__ = ["PersistentEnvironmentStore"]
