from typing import Any, Callable, Optional, Protocol, runtime_checkable

from peridex_db.core.pending_writes import PendingWrites


@runtime_checkable
class KVIterator(Protocol):
    """
    Forward iterator over a transaction's view of the keyspace.

    Keys are visited in unsigned byte-lexicographic order. The iterator is
    positioned by ``seek`` and advanced by ``next``; ``key``/``value`` read
    the current item and are only meaningful while ``valid`` is true.
    """
    def seek(self, key: bytes) -> None:
        ...

    def valid(self) -> bool:
        ...

    def valid_for_prefix(self, prefix: bytes) -> bool:
        ...

    def next(self) -> None:
        ...

    def key(self) -> bytes:
        ...

    def value(self) -> bytes:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "KVIterator":
        ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        ...


@runtime_checkable
class KVTransaction(Protocol):
    """
    Interface for a read-only or read-write transaction on the store.

    ``set``/``delete`` are document mutations: they are recorded in the
    transaction's pending writes so the index builder can re-derive indexes
    before commit. ``set_internal``/``delete_internal`` write to the index
    keyspace and are never recorded.
    """
    @property
    def writable(self) -> bool:
        ...

    def get(self, key: bytes) -> Optional[bytes]:
        ...

    def set(self, key: bytes, value: bytes) -> None:
        ...

    def delete(self, key: bytes) -> None:
        ...

    def set_internal(self, key: bytes, value: bytes) -> None:
        ...

    def delete_internal(self, key: bytes) -> None:
        ...

    def new_iterator(self, prefetch_values: bool = True) -> KVIterator:
        ...

    def commit(self) -> None:
        ...

    def commit_with(self, before_commit: "BeforeCommit") -> None:
        ...

    def discard(self) -> None:
        ...


# Called with the transaction and its detached pending writes right before
# the underlying commit.
BeforeCommit = Callable[[KVTransaction, PendingWrites], None]


@runtime_checkable
class KVStore(Protocol):
    """
    Interface for the ordered transactional key-value store the index layer
    runs on.
    """
    def begin(self, write: bool = False) -> KVTransaction:
        ...

    def view(self, fn: Callable[[KVTransaction], Any]) -> Any:
        ...

    def update(self, fn: Callable[[KVTransaction], Any]) -> Any:
        ...

    def update_with(self, fn: Callable[[KVTransaction], Any], before_commit: BeforeCommit) -> Any:
        ...

    def close(self) -> None:
        ...
