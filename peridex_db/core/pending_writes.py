from typing import Dict, Iterator, Optional, Tuple


class PendingWrites:
    """
    Transaction-scoped record of document mutations awaiting commit.

    Holds one entry per primary key: the value of the last ``set`` for that
    key, or ``None`` when the last mutation was a ``delete``. Iteration
    follows first-touch order, but consumers must not rely on it; applying the
    entries in any order yields the same stored state.
    """

    def __init__(self):
        self._entries: Dict[bytes, Optional[bytes]] = {}

    def note(self, key: bytes, value: Optional[bytes]) -> None:
        self._entries[bytes(key)] = None if value is None else bytes(value)

    def get(self, key: bytes) -> Optional[bytes]:
        return self._entries.get(bytes(key))

    def items(self) -> Iterator[Tuple[bytes, Optional[bytes]]]:
        return iter(list(self._entries.items()))

    def keys(self):
        return list(self._entries.keys())

    def deletions(self):
        return [k for k, v in self._entries.items() if v is None]

    def __contains__(self, key) -> bool:
        return bytes(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.keys())

    def __repr__(self):
        return f"PendingWrites({len(self._entries)} keys)"
