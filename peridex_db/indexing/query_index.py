"""
Range, prefix and count queries over one secondary index.

A query runs in three independent stages over the index partition:

    FILTER  seek to max(^start, ^prefix), walk while the key has the
            ^prefix, stop once the key sorts after ^end
       │
       ▼
    SKIP    drop the first ``skip`` filtered matches
       │
       ▼
    LIMIT   keep at most ``limit`` (settings.default_query_limit when <= 0)

Count queries stop after FILTER: they count every match, ignore skip and
limit and never read a value.

Reverse partition keys carry ``^<primary key>`` after the derived value, so a
derived value equal to ``end`` sorts after the encoded end bound and is not
returned.
"""
import itertools
import logging
from typing import Iterator, List, Tuple

from peridex_data_model.checksum_util import _concat_bytes
from peridex_data_model.query_packet import IndexQuery, QueryResult
from peridex_db.config import settings
from peridex_db.core import metrics
from peridex_db.core.interface.kv_store_interface import KVIterator, KVTransaction
from peridex_db.indexing.key_codec import INDEX_SPACE, ForwardKey, ReverseKey, index_hash, partition_prefix
from peridex_exception_model.exception import NoIndexNameProvidedException

logger = logging.getLogger(__name__)


def query_index(query: IndexQuery, txn: KVTransaction, forward: bool = False) -> Tuple[List[QueryResult], int]:
    """Scan an index and return ``(results, count)``.

    Args:
        query: What to scan; see ``IndexQuery``.
        txn: Any open transaction.
        forward: Scan the forward partition instead. Start, end and prefix
            then apply to the primary key and each result's ``value`` is the
            back-pointer to its reverse entry.

    Returns:
        The materialized results and their number, or an empty list and the
        number of matches for count queries.

    Raises:
        NoIndexNameProvidedException: ``query.index`` is empty.
    """
    if not query.index:
        raise NoIndexNameProvidedException()

    metrics.query_counter.labels(index=query.index).inc()
    with metrics.query_latency.time():
        seek_key, prefix, end = _bounds(query, forward)

        with txn.new_iterator(prefetch_values=not query.count) as it:
            matches = _filtered_keys(it, seek_key, prefix, end)

            if query.count:
                count = sum(1 for _ in matches)
                logger.debug(f"Counted {count} matches in index {query.index}")
                return [], count

            limit = query.limit if query.limit > 0 else settings.default_query_limit
            decode = ForwardKey.decode if forward else ReverseKey.decode
            results = []
            for raw_key in itertools.islice(matches, query.skip, query.skip + limit):
                decoded = decode(raw_key)
                results.append(QueryResult(
                    key=decoded.primary_key,
                    value=bytes(it.value()),
                    derived_value=decoded.derived_value,
                ))

    logger.debug(f"Query on index {query.index} returned {len(results)} results")
    return results, len(results)


def _bounds(query: IndexQuery, forward: bool):
    partition = partition_prefix(index_hash(query.index), forward=forward)
    start_key = _concat_bytes([partition, INDEX_SPACE, query.start])
    if query.prefix:
        prefix = _concat_bytes([partition, INDEX_SPACE, query.prefix])
    else:
        prefix = partition
    end = _concat_bytes([partition, INDEX_SPACE, query.end]) if query.end else b""
    return max(start_key, prefix), prefix, end


def _filtered_keys(it: KVIterator, seek_key: bytes, prefix: bytes, end: bytes) -> Iterator[bytes]:
    """Yield matching keys, leaving ``it`` positioned on each while suspended."""
    it.seek(seek_key)
    while it.valid_for_prefix(prefix):
        key = bytes(it.key())
        if end and key > end:
            return
        yield key
        it.next()
