"""
LMDB-backed ordered key-value store used underneath the secondary index layer.

The adapter adds two things to a plain LMDB transaction:

  1. A transaction-scoped PendingWrites map. Every document ``set``/``delete``
     is applied to LMDB immediately (so reads inside the transaction see it)
     and noted in the map, last write per key wins.
  2. ``commit_with(before_commit)``. The map is detached, handed to the hook
     together with the still-open transaction, and only then is the LMDB
     transaction committed. Whatever the hook writes lands in the same
     atomic commit as the documents it was derived from.

TRANSACTION LIFECYCLE:
──────────────────────

    begin(write=True)
          │
          ▼
    set / delete ──────► LMDB txn.put / txn.delete
          │              PendingWrites.note(key, value | None)
          ▼
    commit_with(hook)
          │
          ├─ pending = detach()
          ├─ hook(txn, pending)  ── exception ──► abort, re-raise
          └─ LMDB commit

    discard() at any point aborts; leaving a ``with`` block without a
    commit discards as well.

Concurrency follows LMDB: one writer at a time, readers see the snapshot
taken when their transaction began. Nothing here retries or locks.
"""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import lmdb

from peridex_db.config import settings
from peridex_db.core.interface.kv_store_interface import BeforeCommit
from peridex_db.core.pending_writes import PendingWrites
from peridex_db.indexing.key_codec import is_index_key
from peridex_exception_model.exception import ReservedKeyException, ReadOnlyTransactionException, \
    TransactionClosedException

logger = logging.getLogger(__name__)


class LMDBIterator:
    """Forward cursor over a transaction, in unsigned byte order."""

    def __init__(self, txn: lmdb.Transaction, prefetch_values: bool = True):
        self._cursor = txn.cursor()
        # values are memory mapped, prefetching is a no-op for LMDB
        self._prefetch_values = prefetch_values
        self._valid = False

    def seek(self, key: bytes) -> None:
        self._valid = self._cursor.set_range(key)

    def rewind(self) -> None:
        self._valid = self._cursor.first()

    def valid(self) -> bool:
        return self._valid

    def valid_for_prefix(self, prefix: bytes) -> bool:
        return self._valid and self._cursor.key().startswith(prefix)

    def next(self) -> None:
        if self._valid:
            self._valid = self._cursor.next()

    def key(self) -> bytes:
        return self._cursor.key()

    def value(self) -> bytes:
        return self._cursor.value()

    def close(self) -> None:
        self._valid = False
        self._cursor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class LMDBTransaction:
    """A read-only or read-write transaction that records document writes."""

    def __init__(self, env: lmdb.Environment, write: bool = False):
        self._txn = env.begin(write=write)
        self._writable = write
        self._pending: Optional[PendingWrites] = PendingWrites() if write else None
        self._finished = False

    @property
    def writable(self) -> bool:
        return self._writable

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def pending(self) -> Optional[PendingWrites]:
        return self._pending

    def _check_open(self, operation: str) -> None:
        if self._finished:
            raise TransactionClosedException("Transaction already finished", operation)

    def _check_writable(self, operation: str) -> None:
        self._check_open(operation)
        if not self._writable:
            raise ReadOnlyTransactionException("Write attempted in a read-only transaction", operation)

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open("get")
        return self._txn.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        """Store a document and note it for the index builder."""
        self._check_writable("set")
        if is_index_key(key):
            raise ReservedKeyException("Document keys must not start with '^'", key)
        self._txn.put(key, value)
        if self._pending is not None:
            self._pending.note(key, value)

    def delete(self, key: bytes) -> None:
        """Delete a document and note the deletion; absent keys are fine."""
        self._check_writable("delete")
        if is_index_key(key):
            raise ReservedKeyException("Document keys must not start with '^'", key)
        self._txn.delete(key)
        if self._pending is not None:
            self._pending.note(key, None)

    def set_internal(self, key: bytes, value: bytes) -> None:
        self._check_writable("set_internal")
        self._txn.put(key, value)

    def delete_internal(self, key: bytes) -> None:
        self._check_writable("delete_internal")
        self._txn.delete(key)

    def new_iterator(self, prefetch_values: bool = True) -> LMDBIterator:
        self._check_open("new_iterator")
        return LMDBIterator(self._txn, prefetch_values)

    def commit(self) -> None:
        self._check_open("commit")
        self._finished = True
        self._txn.commit()

    def commit_with(self, before_commit: BeforeCommit) -> None:
        """Run ``before_commit`` over the detached pending writes, then commit.

        On any exception from the hook the transaction is aborted and the
        exception propagates unchanged.
        """
        self._check_writable("commit_with")
        pending, self._pending = self._pending, None
        try:
            before_commit(self, pending)
        except Exception:
            self.discard()
            raise
        self.commit()

    def discard(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._txn.abort()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.discard()


class LMDBStore:
    """
    LMDB environment wrapper exposing the store contract the index layer needs.
    """

    def __init__(self, path: Union[str, Path, None] = None, map_size: Optional[int] = None,
                 sync: Optional[bool] = None):
        self._path = Path(path if path is not None else settings.data_path)
        self._path.mkdir(parents=True, exist_ok=True)
        self._env = lmdb.open(
            str(self._path),
            map_size=map_size or settings.map_size,
            sync=settings.sync if sync is None else sync,
            max_dbs=0,
        )
        logger.info(f"Opened LMDB store at {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def begin(self, write: bool = False) -> LMDBTransaction:
        return LMDBTransaction(self._env, write)

    def view(self, fn: Callable[[LMDBTransaction], Any]) -> Any:
        with self.begin(write=False) as txn:
            return fn(txn)

    def update(self, fn: Callable[[LMDBTransaction], Any]) -> Any:
        """Run ``fn`` in a write transaction and commit without index building."""
        with self.begin(write=True) as txn:
            result = fn(txn)
            txn.commit()
            return result

    def update_with(self, fn: Callable[[LMDBTransaction], Any], before_commit: BeforeCommit) -> Any:
        """Run ``fn`` in a write transaction and commit through ``before_commit``."""
        with self.begin(write=True) as txn:
            result = fn(txn)
            txn.commit_with(before_commit)
            return result

    def backup(self, path: Union[str, Path], compact: bool = True) -> Path:
        """Write a consistent copy of the environment into directory ``path``."""
        target = Path(path)
        target.mkdir(parents=True, exist_ok=True)
        self._env.copy(str(target), compact=compact)
        logger.info(f"Backed up LMDB store {self._path} to {target}")
        return target

    def stats(self) -> Dict[str, int]:
        stat = self._env.stat()
        info = self._env.info()
        return {
            "entries": stat["entries"],
            "depth": stat["depth"],
            "leaf_pages": stat["leaf_pages"],
            "map_size": info["map_size"],
            "last_txnid": info["last_txnid"],
        }

    def close(self) -> None:
        self._env.close()
        logger.info(f"Closed LMDB store at {self._path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
