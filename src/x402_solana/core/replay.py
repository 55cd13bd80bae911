"""
Replay protection: remembering which payment signatures were already spent.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Set

__all__ = ["InMemoryReplayGuard", "ReplayGuard"]


class ReplayGuard(ABC):
    """
    Store of consumed transaction signatures.

    ``mark_consumed`` must be an atomic check-and-set: when two callers race
    on the same signature exactly one of them gets ``True``.
    """

    @abstractmethod
    def is_consumed(self, signature: str) -> bool:
        """Whether ``signature`` has already unlocked a resource."""

    @abstractmethod
    def mark_consumed(self, signature: str) -> bool:
        """Record ``signature`` as spent. Returns ``False`` if it already was."""


class InMemoryReplayGuard(ReplayGuard):
    """
    Process-local guard backed by a set and a lock.

    Entries are lost on restart and not shared between processes.
    """

    def __init__(self) -> None:
        self._consumed: Set[str] = set()
        self._lock = threading.Lock()

    def is_consumed(self, signature: str) -> bool:
        with self._lock:
            return signature in self._consumed

    def mark_consumed(self, signature: str) -> bool:
        with self._lock:
            if signature in self._consumed:
                logging.warning("Replay rejected for signature %s", signature)
                return False
            self._consumed.add(signature)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)
