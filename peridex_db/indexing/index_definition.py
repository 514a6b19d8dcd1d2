import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterator, List, Optional

from peridex_data_model.index_packets import IndexEntry
from peridex_db.indexing import key_codec
from peridex_exception_model.exception import IndexDefinitionException, IndexHashCollisionException, \
    KeyEncodingException

logger = logging.getLogger(__name__)

IndexFunc = Callable[[bytes, bytes], Optional[List[IndexEntry]]]


class BaseIndex(ABC):
    """
    A named secondary index.

    Subclasses implement ``derive_entries``. The name is validated and hashed
    once here; an unusable definition fails at construction, not on first
    write.
    """

    def __init__(self, name: str):
        if not name:
            raise IndexDefinitionException("index name must be provided")
        self._name = name
        try:
            self._hash = key_codec.index_hash(name)
        except (ValueError, KeyEncodingException) as e:
            raise IndexDefinitionException(f"cannot hash index name: {e}", name) from e

    @property
    def name(self) -> str:
        return self._name

    @property
    def hash(self) -> bytes:
        return self._hash

    @abstractmethod
    def derive_entries(self, key: bytes, value: bytes) -> List[IndexEntry]:
        ...

    def __repr__(self):
        return f"{type(self).__name__}(name={self._name!r}, hash={self._hash.decode('ascii')})"


class FunctionIndex(BaseIndex):
    """
    Index whose entries come from a plain callable ``fn(key, value)``.

    The callable may return ``IndexEntry`` objects, bare derived values or
    ``(derived_value, payload)`` pairs, or ``None`` for no entries.
    """

    def __init__(self, name: str, index_fn: IndexFunc):
        super().__init__(name)
        if index_fn is None:
            raise IndexDefinitionException("index function must be provided", name)
        if not callable(index_fn):
            raise IndexDefinitionException("index function must be callable", name)
        self._index_fn = index_fn

    def derive_entries(self, key: bytes, value: bytes) -> List[IndexEntry]:
        return IndexEntry.many(self._index_fn(key, value))


class IndexRegistry:
    """Lookup table of the index definitions active in a process, by name."""

    def __init__(self, indexes: Optional[List[BaseIndex]] = None):
        self._indexes: Dict[str, BaseIndex] = {}
        for index in indexes or []:
            self.register(index)

    def register(self, index: BaseIndex) -> BaseIndex:
        """Add ``index``, replacing a definition already registered under its name.

        Raises:
            IndexHashCollisionException: a different name already owns the
                same hash, so both indexes would share one keyspace.
        """
        for other in self._indexes.values():
            if other.hash == index.hash and other.name != index.name:
                raise IndexHashCollisionException(
                    "index names hash to the same keyspace", index.name, other.name)
        if index.name in self._indexes:
            logger.warning(f"Replacing index definition {index.name}")
        self._indexes[index.name] = index
        return index

    def unregister(self, name: str) -> Optional[BaseIndex]:
        return self._indexes.pop(name, None)

    def get(self, name: str) -> Optional[BaseIndex]:
        return self._indexes.get(name)

    def names(self) -> List[str]:
        return list(self._indexes.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._indexes

    def __iter__(self) -> Iterator[BaseIndex]:
        return iter(list(self._indexes.values()))

    def __len__(self) -> int:
        return len(self._indexes)
