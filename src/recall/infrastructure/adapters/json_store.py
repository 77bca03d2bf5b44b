"""
JSON File Repository — Infrastructure adapter for local-disk persistence.

Implements SnapshotRepository with a single JSON document. Writes go to a
temporary file that atomically replaces the previous document; blocking file
I/O runs in a worker thread so the event loop is never stalled.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from recall.domain.ports import RecordChange, SnapshotRepository

from ._document import apply_changes, empty_document

logger = logging.getLogger(__name__)


class JsonFileRepository(SnapshotRepository):
    """
    Persists engine records to ``path``.

    A document that cannot be parsed is moved aside (``<name>.corrupt``)
    rather than silently overwritten.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read)

    async def apply(self, changes: list[RecordChange]) -> None:
        if not changes:
            return
        await asyncio.to_thread(self._apply_sync, changes)

    # ------------------------------------------------------------------

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            backup = self.path.with_suffix(self.path.suffix + ".corrupt")
            logger.error(f"Could not parse {self.path}: {e}; moving it to {backup}")
            os.replace(self.path, backup)
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.path}: top-level value is not an object")
            return None
        return data

    def _apply_sync(self, changes: list[RecordChange]) -> None:
        document = self._read() or empty_document()
        self._write(apply_changes(document, changes))

    def _write(self, document: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
