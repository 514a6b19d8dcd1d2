"""Data classes representing entries produced by index definitions."""

from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union

from peridex_data_model.checksum_util import _to_bytes

BytesLike = Union[str, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class IndexEntry:
    """One derived entry produced by an index function for a document.

    Attributes:
        derived_value: Sort key the document is reachable under in the index.
        payload: Optional bytes stored on the reverse entry and returned by
            queries, so callers can avoid re-reading the document.

    ``str`` values are accepted and stored UTF-8 encoded.
    """
    derived_value: bytes
    payload: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, 'derived_value', _to_bytes(self.derived_value))
        object.__setattr__(self, 'payload', _to_bytes(self.payload))

    @classmethod
    def of(cls, item: Union["IndexEntry", BytesLike, Tuple[BytesLike, BytesLike]]) -> "IndexEntry":
        """Coerce the shorthand forms index functions may return.

        Accepts an ``IndexEntry``, a bare derived value, or a
        ``(derived_value, payload)`` pair.
        """
        if isinstance(item, cls):
            return item
        if isinstance(item, tuple):
            derived_value, payload = item
            return cls(derived_value, payload)
        return cls(item)

    @classmethod
    def many(cls, items: Iterable) -> List["IndexEntry"]:
        if items is None:
            return []
        return [cls.of(item) for item in items]
