"""
Document store for the auto-tagging pipeline.

Defines the record-access capability the pipeline needs (get,
transactional merge-patch, change notifications) and an in-memory
implementation used by the CLI and the tests.
"""

import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from autotag.utils.errors import TransactionConflictError

Document = Dict[str, Any]
Patch = Dict[str, Any]
# (record_key, before, after); before is None for a newly created record
ChangeListener = Callable[[str, Optional[Document], Optional[Document]], None]
TransactionFn = Callable[[Optional[Document]], Optional[Patch]]


class DocumentStore(Protocol):
    """
    Record store with per-record atomic read-modify-write.

    Writes are merge-patches: only the named top-level fields change.
    """

    def get(self, key: str) -> Optional[Document]:
        ...

    def set(self, key: str, patch: Patch, merge: bool = True) -> Document:
        ...

    def transaction(self, key: str, fn: TransactionFn) -> Optional[Document]:
        """
        Run `fn` on a snapshot and commit its patch atomically.

        `fn` may run more than once: it is re-invoked on a fresh snapshot
        whenever another writer committed in between. Returning None (or
        an empty patch) commits nothing.

        Returns:
            The committed document, or None if nothing was written
        """
        ...

    def subscribe(self, listener: ChangeListener) -> None:
        ...


class InMemoryDocumentStore:
    """
    Thread-safe in-memory document store.

    Features:
    - Optimistic transactions: per-record versions, retry on conflict
    - Merge-patch writes (shallow, top-level fields)
    - Change notifications with before/after snapshots, delivered
      after the lock is released so listeners may write back
    """

    def __init__(self, max_attempts: int = 5):
        """
        Initialize document store.

        Args:
            max_attempts: Transaction attempts before giving up
        """
        self.max_attempts = max_attempts
        self._docs: Dict[str, Tuple[Document, int]] = {}
        self._lock = threading.RLock()
        self._listeners: List[ChangeListener] = []
        self.logger = logging.getLogger("store")

        # Statistics
        self._writes = 0
        self._conflicts = 0

    def get(self, key: str) -> Optional[Document]:
        """Return a deep copy of the record, or None."""
        with self._lock:
            entry = self._docs.get(key)
            return copy.deepcopy(entry[0]) if entry else None

    def set(self, key: str, patch: Patch, merge: bool = True) -> Document:
        """Write unconditionally (last writer wins per field when merging)."""
        with self._lock:
            before, _ = self._snapshot(key)
            after = self._commit(key, before, patch, merge)
        self._notify(key, before, after)
        return copy.deepcopy(after)

    def transaction(self, key: str, fn: TransactionFn) -> Optional[Document]:
        """Optimistic read-modify-write on one record."""
        for attempt in range(1, self.max_attempts + 1):
            with self._lock:
                snapshot, version = self._snapshot(key)

            # User code runs outside the lock on a private copy
            patch = fn(copy.deepcopy(snapshot))
            if not patch:
                return None

            with self._lock:
                current, current_version = self._snapshot(key)
                if current_version == version:
                    after = self._commit(key, current, patch, merge=True)
                    break
                self._conflicts += 1

            self.logger.debug(f"Transaction conflict on {key} (attempt {attempt})")
        else:
            raise TransactionConflictError(
                f"Transaction on {key} lost {self.max_attempts} races",
                record_key=key,
                attempts=self.max_attempts,
            )

        self._notify(key, current, after)
        return copy.deepcopy(after)

    def subscribe(self, listener: ChangeListener) -> None:
        """Register a listener called after every committed write."""
        with self._lock:
            self._listeners.append(listener)

    def delete(self, key: str) -> bool:
        """
        Remove a record.

        Returns:
            True if key was found and removed, False otherwise
        """
        with self._lock:
            entry = self._docs.pop(key, None)
        if entry is None:
            return False
        self._notify(key, entry[0], None)
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Write and conflict counters plus current size."""
        with self._lock:
            return {
                'writes': self._writes,
                'conflicts': self._conflicts,
                'size': len(self._docs),
            }

    def _snapshot(self, key: str) -> Tuple[Optional[Document], int]:
        entry = self._docs.get(key)
        if entry is None:
            return None, 0
        return entry[0], entry[1]

    def _commit(
        self,
        key: str,
        before: Optional[Document],
        patch: Patch,
        merge: bool,
    ) -> Document:
        # Caller holds the lock
        if merge and before is not None:
            after = dict(before)
            after.update(copy.deepcopy(patch))
        else:
            after = copy.deepcopy(patch)

        _, version = self._snapshot(key)
        self._docs[key] = (after, version + 1)
        self._writes += 1
        self.logger.debug(f"Committed {sorted(patch)} to {key} (v{version + 1})")
        return after

    def _notify(
        self,
        key: str,
        before: Optional[Document],
        after: Optional[Document],
    ) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(key, copy.deepcopy(before), copy.deepcopy(after))

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._docs


def create_document_store(config: Optional[Dict[str, Any]] = None) -> InMemoryDocumentStore:
    """
    Factory function to create a document store with configuration.

    Args:
        config: Optional `store` configuration section
    """
    if config is None:
        config = {}

    return InMemoryDocumentStore(max_attempts=config.get('max_attempts', 5))
