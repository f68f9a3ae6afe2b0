"""
Whole-document JSON persistence on disk.

Writes go to a sibling temporary file first and are moved into place with
``os.replace``, so readers only ever see a complete document. File I/O runs
in a worker thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from warden.util.logger import get_logger

logger = get_logger("json_document_store")


class JsonDocumentStore:
    """Reads and writes one JSON document at ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    async def read(self) -> Any:
        """
        Return the parsed document, or None if the file does not exist.

        Raises:
            json.JSONDecodeError: The file exists but is not valid JSON.
            UnicodeDecodeError: The file is not UTF-8.
        """
        return await asyncio.to_thread(self._read_sync)

    async def write(self, document: Any) -> None:
        """Atomically replace the stored document."""
        await asyncio.to_thread(self._write_sync, document)

    def _read_sync(self) -> Any:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return json.loads(text)

    def _write_sync(self, document: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
        logger.debug("Wrote %s", self.path)
