"""Data structures for representing index queries and their results."""

from dataclasses import dataclass

from peridex_data_model.checksum_util import _to_bytes


@dataclass
class IndexQuery:
    """A query against one secondary index.

    Attributes:
        index: Name of the index to scan. Required at query time.
        start: Derived value (or primary key for forward scans) to seek to.
        end: Upper bound compared against the encoded key; derived values
            equal to or sorting after ``end`` are not returned.
        prefix: Only derived values starting with ``prefix`` match.
        skip: Number of leading matches to drop.
        limit: Maximum number of results; ``<= 0`` means the default limit.
        count: Return only the number of matches, ignoring skip and limit.
    """

    index: str = ""
    start: bytes = b""
    end: bytes = b""
    prefix: bytes = b""
    skip: int = 0
    limit: int = 0
    count: bool = False

    def __post_init__(self):
        self.start = _to_bytes(self.start)
        self.end = _to_bytes(self.end)
        self.prefix = _to_bytes(self.prefix)
        self.skip = max(int(self.skip or 0), 0)
        self.limit = int(self.limit or 0)


@dataclass
class QueryResult:
    """A single match returned by an index query.

    Attributes:
        key: Primary key of the matched document.
        value: Payload stored with the reverse entry. For forward scans this
            is the back-pointer to the reverse entry.
        derived_value: The derived value the document matched under.
    """

    key: bytes
    value: bytes
    derived_value: bytes
