"""
Key layout of secondary index entries inside the shared keyspace.

Every index key starts with the namespace byte ``^`` so it sorts apart from
ordinary document keys. The index name never appears in a key; a fixed-width
hash of it does.

    forward (k2x)   ^<hash>>^<primary key>^<derived value>   -> reverse key
    reverse (x2k)   ^<hash><^<derived value>^<primary key>   -> payload

A forward key's value is the exact reverse key it belongs to, so a
document's entries can be dropped without re-running its index function.
Splitting either key on ``^`` gives exactly four segments; that positional
layout is part of the on-disk format and must not change without a
migration. Primary keys and derived values therefore may not contain ``^``
and are rejected when an entry is built.
"""
from dataclasses import dataclass
from typing import Optional

from peridex_data_model.checksum_util import get_checksum_func, _concat_bytes
from peridex_db.config import settings
from peridex_exception_model.exception import KeyEncodingException

INDEX_SPACE = b"^"
FORWARD_TAG = b">"
REVERSE_TAG = b"<"

_RESERVED = (INDEX_SPACE, FORWARD_TAG, REVERSE_TAG)


def index_hash(name: str, algorithm: Optional[str] = None) -> bytes:
    """Keyspace discriminator for an index name."""
    func = get_checksum_func(algorithm or settings.index_hash_algorithm)
    digest = func(name.encode('utf-8')).encode('ascii')
    if not digest or any(r in digest for r in _RESERVED):
        raise KeyEncodingException("Index hash contains reserved bytes", index_name=name)
    return digest


def is_index_key(key: bytes) -> bool:
    return bytes(key).startswith(INDEX_SPACE)


def partition_prefix(hash_: bytes, forward: bool = False) -> bytes:
    tag = FORWARD_TAG if forward else REVERSE_TAG
    return _concat_bytes([INDEX_SPACE, hash_, tag])


def forward_scan_prefix(hash_: bytes, primary_key: bytes) -> bytes:
    """Prefix shared by all forward entries of one document under one index."""
    check_primary_key(primary_key)
    return _concat_bytes([partition_prefix(hash_, forward=True), INDEX_SPACE, primary_key, INDEX_SPACE])


def check_primary_key(primary_key: bytes) -> None:
    if not primary_key:
        raise KeyEncodingException("Primary key must not be empty")
    if INDEX_SPACE in primary_key:
        raise KeyEncodingException("Primary key contains the reserved delimiter '^'", record_key=primary_key)


def check_derived_value(derived_value: bytes, primary_key: Optional[bytes] = None) -> None:
    if INDEX_SPACE in derived_value:
        raise KeyEncodingException(
            f"Derived value {derived_value!r} contains the reserved delimiter '^'", record_key=primary_key)


def _split(raw: bytes, tag: bytes):
    raw = bytes(raw)
    parts = raw.split(INDEX_SPACE)
    if len(parts) != 4 or parts[0] != b"" or not parts[1].endswith(tag) or len(parts[1]) < 2:
        raise KeyEncodingException("Malformed index key", record_key=raw)
    return parts[1][:-1], parts[2], parts[3]


@dataclass(frozen=True)
class ReverseKey:
    """Reverse entry key: scanned by range queries."""
    index_hash: bytes
    derived_value: bytes
    primary_key: bytes

    def __post_init__(self):
        check_primary_key(self.primary_key)
        check_derived_value(self.derived_value, self.primary_key)

    def encode(self) -> bytes:
        return _concat_bytes([
            partition_prefix(self.index_hash), INDEX_SPACE,
            self.derived_value, INDEX_SPACE, self.primary_key,
        ])

    @classmethod
    def decode(cls, raw: bytes) -> "ReverseKey":
        hash_, derived_value, primary_key = _split(raw, REVERSE_TAG)
        return cls(hash_, derived_value, primary_key)


@dataclass(frozen=True)
class ForwardKey:
    """Forward entry key: one per derived value of a document."""
    index_hash: bytes
    primary_key: bytes
    derived_value: bytes

    def __post_init__(self):
        check_primary_key(self.primary_key)
        check_derived_value(self.derived_value, self.primary_key)

    def encode(self) -> bytes:
        return _concat_bytes([
            partition_prefix(self.index_hash, forward=True), INDEX_SPACE,
            self.primary_key, INDEX_SPACE, self.derived_value,
        ])

    @classmethod
    def decode(cls, raw: bytes) -> "ForwardKey":
        hash_, primary_key, derived_value = _split(raw, FORWARD_TAG)
        return cls(hash_, primary_key, derived_value)

    def reverse(self) -> ReverseKey:
        return ReverseKey(self.index_hash, self.derived_value, self.primary_key)
