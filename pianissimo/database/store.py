"""
pianissimo.database.store — Whole-Document JSON Store
======================================================

Holds the authoritative :class:`Document` in memory and mirrors it to a
single JSON file.  Every mutation rewrites the whole file.

Guarantees:
* Writers are serialized by a process-wide lock (read-modify-write of the
  full document).
* Saves go to a temp file in the same directory, are ``fsync``-ed, then
  ``os.replace``-d over the target — a crash leaves either the old or the
  new file, never a torn one.
* The in-memory document only changes after the file write succeeded.

A file that exists but cannot be parsed is moved aside to
``<name>.corrupt-<UTC timestamp>`` and replaced with the default document,
so the bad data stays on disk for inspection without blocking startup.
If the file cannot be moved aside (or the defaults cannot be written) the
store still starts, holding the defaults in memory only.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from pianissimo.constants import HISTORY_PAGE_SIZE
from pianissimo.database.models import Config, Document, HistoryRecord, default_document
from pianissimo.engine.errors import PersistenceError

logger = logging.getLogger(__name__)


class DocumentStore:
    """JSON-file backed store for config and spin history.

    Usage::

        store = DocumentStore("database.json")
        store.load()
        store.append_history(record)
        store.mutate_config(lambda cfg: Config(cost_per_spin=80, rewards=cfg.rewards))
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        self._document: Document = default_document()

    # -------------------------------------------------------------------
    # Reads (lock-free: the document is immutable and swapped atomically)
    # -------------------------------------------------------------------
    @property
    def document(self) -> Document:
        return self._document

    @property
    def config(self) -> Config:
        return self._document.config

    def recent_history(self, limit: int = HISTORY_PAGE_SIZE) -> list[HistoryRecord]:
        """Newest-first slice of the history log."""
        if limit <= 0:
            return []
        return list(reversed(self._document.history[-limit:]))

    # -------------------------------------------------------------------
    # Load / save
    # -------------------------------------------------------------------
    def load(self) -> Document:
        """Read the backing file, seeding or quarantining as needed."""
        with self._lock:
            if not self.path.exists():
                logger.info("No document at %s — seeding defaults", self.path)
                self.save(default_document())
                return self._document

            try:
                with open(self.path, encoding="utf-8") as fh:
                    raw = json.load(fh)
                document = Document.from_dict(raw)
            except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError):
                logger.exception("Document at %s is unreadable", self.path)
                self._document = default_document()
                if self._quarantine():
                    try:
                        self.save(self._document)
                    except PersistenceError:
                        logger.exception(
                            "Could not write defaults to %s; keeping them in memory", self.path,
                        )
                return self._document

            self._document = document
            logger.info(
                "Document loaded from %s (%d rewards, %d history rows)",
                self.path, len(document.config.rewards), len(document.history),
            )
            return document

    def save(self, document: Document) -> None:
        """Atomically replace the backing file with *document*.

        Raises
        ------
        PersistenceError
            If the file cannot be written.  The in-memory document is left
            untouched in that case.
        """
        with self._lock:
            payload = json.dumps(document.to_dict(), ensure_ascii=False, indent=4)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp",
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as fh:
                        fh.write(payload)
                        fh.flush()
                        os.fsync(fh.fileno())
                    os.replace(tmp_path, self.path)
                except BaseException:
                    try:
                        os.unlink(tmp_path)
                    except OSError:
                        pass
                    raise
            except OSError as exc:
                raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc
            self._document = document

    # -------------------------------------------------------------------
    # Read-modify-write helpers
    # -------------------------------------------------------------------
    def append_history(self, record: HistoryRecord) -> Document:
        with self._lock:
            document = self._document.with_record(record)
            self.save(document)
            return document

    def mutate_config(self, mutate: Callable[[Config], Config]) -> Config:
        """Apply *mutate* to the current config and persist the result."""
        with self._lock:
            config = mutate(self._document.config)
            self.save(self._document.with_config(config))
            return config

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _quarantine(self) -> bool:
        """Move the unreadable file aside.  False if it had to stay in place."""
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            os.replace(self.path, target)
        except OSError:
            logger.exception(
                "Could not move %s aside; running on in-memory defaults", self.path,
            )
            return False
        logger.error("Moved unreadable document to %s; starting from defaults", target)
        return True
