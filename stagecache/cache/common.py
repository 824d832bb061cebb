"""Shared helpers for byte store implementations."""
from __future__ import annotations


class SizeLimitManager:
    """Track stored bytes against a fixed quota.

    Attributes:
        max_size_bytes: Maximum allowed total size in bytes
    """

    def __init__(self, max_size_bytes: int):
        self.max_size_bytes = max_size_bytes
        self._current_size = 0

    def would_exceed_limit(self, entry_size: int, replaced_size: int = 0) -> bool:
        """Check whether storing ``entry_size`` bytes overflows the quota.

        Args:
            entry_size: Size of the value being written
            replaced_size: Size of the value it overwrites, if any
        """
        return (self._current_size - replaced_size + entry_size) > self.max_size_bytes

    def add_entry(self, entry_size: int) -> None:
        self._current_size += entry_size

    def remove_entry(self, entry_size: int) -> None:
        # Never drop below zero
        self._current_size = max(0, self._current_size - entry_size)

    def reset(self) -> None:
        self._current_size = 0

    @property
    def available_space(self) -> int:
        return max(0, self.max_size_bytes - self._current_size)

