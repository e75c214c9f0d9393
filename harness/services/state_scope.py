"""
State Scope
Nestable snapshot/rollback over the ledger.

Features:
- Handles carry a monotonic sequence number and their nesting depth
- Rolling back a handle invalidates every handle opened after it
- A handle is consumed by its rollback and can never be reused
- async context manager for the open -> run -> rollback discipline

Usage:
    scope = StateScope(ledger)
    async with scope.scope("test case"):
        ...                               # mutations discarded on exit
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

from infrastructure.errors import InvalidHandle, SnapshotFailure
from infrastructure.ledger import Ledger

logger = logging.getLogger("StateScope")


@dataclass(frozen=True)
class ScopeHandle:
    """Opaque snapshot handle bound to one ledger checkpoint"""
    snapshot_id: str
    sequence: int
    depth: int
    label: Optional[str] = None


class StateScope:
    """Owns the ledger between snapshot() and rollback()"""

    def __init__(self, ledger: Ledger):
        self.ledger = ledger
        self._stack: List[ScopeHandle] = []
        self._sequence = 0

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def active(self) -> List[ScopeHandle]:
        return list(self._stack)

    async def snapshot(self, label: str = None) -> ScopeHandle:
        """Checkpoint the ledger and push a new handle."""
        try:
            snapshot_id = await self.ledger.snapshot()
        except SnapshotFailure:
            raise
        except Exception as e:
            raise SnapshotFailure("Ledger backend could not checkpoint", original_error=e)

        self._sequence += 1
        handle = ScopeHandle(
            snapshot_id=snapshot_id,
            sequence=self._sequence,
            depth=len(self._stack),
            label=label,
        )
        self._stack.append(handle)
        logger.debug(f"snapshot #{handle.sequence} depth={handle.depth} id={snapshot_id} {label or ''}")
        return handle

    async def rollback(self, handle: ScopeHandle) -> None:
        """Restore the ledger to `handle` and drop it plus every later handle."""
        if handle not in self._stack:
            if handle.sequence > self._sequence:
                reason = "handle was not issued by this scope"
            else:
                reason = "handle was already consumed or invalidated by an ancestor rollback"
            raise InvalidHandle(handle.snapshot_id, handle.sequence, reason)

        position = self._stack.index(handle)
        discarded = self._stack[position + 1:]

        # Stack is left intact until the backend answers
        try:
            reverted = await self.ledger.revert(handle.snapshot_id)
        except SnapshotFailure:
            raise
        except Exception as e:
            raise SnapshotFailure(f"Ledger backend could not revert to {handle.snapshot_id}", original_error=e)

        del self._stack[position:]
        if not reverted:
            raise InvalidHandle(handle.snapshot_id, handle.sequence, "ledger refused the revert")

        if discarded:
            logger.debug(f"rollback #{handle.sequence} invalidated {[h.sequence for h in discarded]}")
        logger.debug(f"rollback #{handle.sequence} depth={handle.depth}")

    @asynccontextmanager
    async def scope(self, label: str = None):
        """Open a handle, yield it, and always roll back on exit."""
        handle = await self.snapshot(label)
        try:
            yield handle
        finally:
            if handle in self._stack:
                await self.rollback(handle)
