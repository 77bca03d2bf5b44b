"""
Asynchronous, best-effort write-through to the persistence collaborator.

The engine pushes changes synchronously as they happen; the queue coalesces
them per record (last write wins) and hands batches to the repository when
flushed. The in-memory state stays the source of truth: a failed flush is
logged and retried on the next one, never surfaced to engine callers.
"""

import asyncio
import logging

from recall.domain.ports import RecordChange, RecordKind, SnapshotRepository

logger = logging.getLogger(__name__)


class WriteThroughQueue:
    def __init__(self, repository: SnapshotRepository):
        self._repo = repository
        self._pending: dict[tuple[RecordKind, str], RecordChange] = {}
        self._lock: asyncio.Lock | None = None
        self.failed_flushes = 0

    @property
    def pending(self) -> list[RecordChange]:
        return list(self._pending.values())

    def push(self, change: RecordChange) -> None:
        key = (change.kind, change.key)
        # Re-insert so the batch keeps the order of the latest writes
        self._pending.pop(key, None)
        self._pending[key] = change

    async def flush(self) -> bool:
        """
        Write all pending changes.

        Returns:
            True if everything pending was persisted (or nothing was pending).
        """
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if not self._pending:
                return True

            batch = list(self._pending.values())
            self._pending = {}
            try:
                await self._repo.apply(batch)
            except Exception as e:
                self.failed_flushes += 1
                logger.warning(f"Persistence flush failed for {len(batch)} change(s): {e}")
                self._requeue(batch)
                return False

            logger.debug(f"Flushed {len(batch)} change(s)")
            return True

    async def run(self, interval: float) -> None:
        """Flush every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            await self.flush()

    def _requeue(self, batch: list[RecordChange]) -> None:
        # Changes pushed while the batch was in flight are newer and win
        merged = {(c.kind, c.key): c for c in batch}
        for key, change in self._pending.items():
            merged.pop(key, None)
            merged[key] = change
        self._pending = merged
