"""
Emit: keep one index's entries for one document in step with its value.

EMIT FLOW:
┌─────────────────────────────────────────────────────────────────────────┐
│  emit(txn, index, key, value)        (inside an open write transaction) │
├─────────────────────────────────────────────────────────────────────────┤
│                                                                         │
│  1. SCAN     ^<hash>>^<key>^...   collect (forward key, back-pointer)   │
│                                                                         │
│  2. DELETE   forward key + the reverse key it points at                 │
│              (absent keys are not an error)                             │
│                                                                         │
│  3. value is None? ──YES──► done, document fully removed from index     │
│         │                                                               │
│         NO                                                              │
│         ▼                                                               │
│  4. DERIVE   index.derive_entries(key, value)                           │
│              exception ──► propagate, nothing new written               │
│                                                                         │
│  5. ENCODE   build every ForwardKey/ReverseKey first                    │
│              KeyEncodingException ──► propagate, nothing new written    │
│                                                                         │
│  6. WRITE    forward key -> reverse key                                 │
│              reverse key -> payload                                     │
└─────────────────────────────────────────────────────────────────────────┘

Deletions from step 2 are not restored when a later step fails; the caller
discards the transaction and nothing of it reaches the store.
"""
import logging
from typing import List, Optional, Tuple

from peridex_db.core import metrics
from peridex_db.core.interface.index_definition_interface import IndexDefinitionInterface
from peridex_db.core.interface.kv_store_interface import KVTransaction
from peridex_db.indexing.key_codec import ForwardKey, forward_scan_prefix

logger = logging.getLogger(__name__)


def emit(txn: KVTransaction, index: IndexDefinitionInterface, key: bytes, value: Optional[bytes]) -> None:
    """Re-derive ``index`` entries of document ``key`` from ``value``.

    Args:
        txn: Open write transaction; nothing is committed here.
        index: Index definition to apply.
        key: Primary key of the document.
        value: Current document value, or ``None`` when it was deleted.

    Raises:
        KeyEncodingException: ``key`` or a derived value cannot be encoded.
        Exception: anything raised by the index function or the store,
            unchanged.
    """
    key = bytes(key)
    removed = _delete_stale_entries(txn, index, key)

    if value is None:
        logger.debug(f"Removed {removed} entries of {key!r} from index {index.name}")
        metrics.emit_counter.labels(index=index.name).inc()
        return

    entries = index.derive_entries(key, value)

    planned: List[Tuple[bytes, bytes, bytes]] = []
    for entry in entries:
        forward = ForwardKey(index.hash, key, entry.derived_value)
        planned.append((forward.encode(), forward.reverse().encode(), entry.payload))

    for forward_key, reverse_key, payload in planned:
        txn.set_internal(forward_key, reverse_key)
        txn.set_internal(reverse_key, payload)

    logger.debug(f"Indexed {key!r} in {index.name}: removed {removed}, wrote {len(planned)}")
    metrics.emit_counter.labels(index=index.name).inc()
    metrics.entries_written_counter.labels(index=index.name).inc(len(planned))


def _delete_stale_entries(txn: KVTransaction, index: IndexDefinitionInterface, key: bytes) -> int:
    prefix = forward_scan_prefix(index.hash, key)

    stale: List[Tuple[bytes, bytes]] = []
    with txn.new_iterator(prefetch_values=True) as it:
        it.seek(prefix)
        while it.valid_for_prefix(prefix):
            stale.append((bytes(it.key()), bytes(it.value())))
            it.next()

    for forward_key, reverse_key in stale:
        txn.delete_internal(forward_key)
        txn.delete_internal(reverse_key)

    if stale:
        metrics.entries_deleted_counter.labels(index=index.name).inc(len(stale))
    return len(stale)
