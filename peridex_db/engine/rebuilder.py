"""
Versioned index rebuild.

Every document carries a stamp in a reserved internal index recording the
database version under which it was last indexed:

    derived value = hex(uint64_be(version)) + ":" + primary key

The Rebuilder owns that stamp index. Registering ``rebuilder.index`` with
the index builder makes every ordinary commit restamp the documents it
writes. ``rebuild`` then finds the documents still stamped with an older
version and re-sets each one to its own current value, so the builder
re-derives every index for it, the stamp included.

    for v in 0 .. db_version-1:
        repeat
            write txn: query stamps with prefix hex(v), up to batch_size
                       re-set each document unchanged, or delete it
                       when only its stale entries are left
            commit through the index builder
        until a batch finds nothing

Batches are short transactions. A failing batch aborts ``rebuild``; earlier
batches stay committed and a later call resumes where this one stopped.
"""
import logging
from typing import Optional

from peridex_data_model.index_packets import IndexEntry
from peridex_data_model.query_packet import IndexQuery
from peridex_db.config import settings
from peridex_db.core import metrics
from peridex_db.core.interface.kv_store_interface import BeforeCommit, KVStore, KVTransaction
from peridex_db.indexing.index_definition import FunctionIndex
from peridex_db.indexing.query_index import query_index
from peridex_exception_model.exception import IndexDefinitionException, RebuildStalledException

logger = logging.getLogger(__name__)

_STAMP_SEPARATOR = b":"
_STAMP_CEILING = "\uffff".encode('utf-8')


def version_header(version: int) -> bytes:
    """16 lowercase hex characters of the big-endian uint64 ``version``."""
    return version.to_bytes(8, byteorder='big').hex().encode('ascii')


class Rebuilder:

    def __init__(self, store: KVStore, db_version: int, batch_size: Optional[int] = None,
                 index_name: Optional[str] = None):
        if store is None:
            raise IndexDefinitionException("store must be provided")
        if db_version < 0:
            raise IndexDefinitionException(f"database version must not be negative: {db_version}")
        self._store = store
        self._db_version = db_version
        self._batch_size = batch_size if batch_size and batch_size > 0 else settings.rebuild_batch_size
        self._index_name = index_name or settings.version_index_name
        self._header = version_header(db_version)
        self._index = FunctionIndex(self._index_name, self._stamp)

    def _stamp(self, key: bytes, value: bytes):
        return [IndexEntry(self._header + _STAMP_SEPARATOR + key)]

    @property
    def index(self) -> FunctionIndex:
        """The stamp index; it must be registered with the index builder."""
        return self._index

    @property
    def header(self) -> bytes:
        return self._header

    @property
    def db_version(self) -> int:
        return self._db_version

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def stamped_version(self, txn: KVTransaction, key: bytes) -> Optional[int]:
        """Version a document was last indexed under, or ``None`` if unstamped."""
        results, _ = query_index(
            IndexQuery(index=self._index_name, prefix=bytes(key) + b"^", limit=1), txn, forward=True)
        if not results:
            return None
        header, _, _ = results[0].derived_value.partition(_STAMP_SEPARATOR)
        return int(header, 16)

    def rebuild(self, index_builder: BeforeCommit) -> int:
        """Re-index every document stamped with a version below ``db_version``.

        Returns:
            Number of documents touched.

        Raises:
            RebuildStalledException: a batch found the same documents again,
                meaning ``index_builder`` does not restamp them.
            Exception: any store or index error, unchanged.
        """
        touched = 0
        for version in range(self._db_version):
            start = version_header(version)
            previous_first = None
            while True:
                try:
                    found = self._store.update_with(
                        lambda txn: self._touch_batch(txn, start), index_builder)
                except Exception:
                    logger.error(f"Rebuild batch for version {version} failed", exc_info=True)
                    raise
                if not found:
                    break
                if found[0] == previous_first:
                    raise RebuildStalledException(
                        "rebuild made no progress; is the stamp index registered with the builder?",
                        version, found[0])
                previous_first = found[0]
                touched += len(found)
                metrics.rebuild_batch_counter.inc()
                metrics.rebuild_document_counter.inc(len(found))
                logger.info(f"Rebuilt {len(found)} documents stamped with version {version}")
        return touched

    def _touch_batch(self, txn: KVTransaction, start: bytes):
        results, _ = query_index(IndexQuery(
            index=self._index_name,
            limit=self._batch_size,
            start=start,
            prefix=start,
            end=self._header + _STAMP_SEPARATOR + _STAMP_CEILING,
        ), txn)
        keys = []
        for result in results:
            value = txn.get(result.key)
            if value is None:
                # document deleted without the builder; drop its leftover entries
                logger.warning(f"Removing index entries of missing document {result.key!r}")
                txn.delete(result.key)
            else:
                txn.set(result.key, value)
            keys.append(result.key)
        return keys
