"""Exception types raised by the secondary index layer.

Every exception keeps the human readable ``message`` plus the contextual
fields that were supplied, and renders them as ``message (field=value, ...)``.
Fields that were not supplied are left out of the rendered string.
"""
from typing import Any, Optional


class PeridexException(Exception):
    """Common base for all index layer exceptions."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def _details(self):
        return []

    def __str__(self):
        details = [f"{name}={value}" for name, value in self._details() if value is not None]
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class IndexDefinitionException(PeridexException):
    """Raised at construction time when an index definition is unusable."""

    def __init__(self, message: str, index_name: Optional[str] = None):
        super().__init__(message)
        self.index_name = index_name

    def _details(self):
        return [("index_name", self.index_name)]


class IndexHashCollisionException(PeridexException):
    """Two different index names hash to the same keyspace discriminator."""

    def __init__(self, message: str, index_name: Optional[str] = None, existing_name: Optional[str] = None):
        super().__init__(message)
        self.index_name = index_name
        self.existing_name = existing_name

    def _details(self):
        return [("index_name", self.index_name), ("existing_name", self.existing_name)]


class NoIndexNameProvidedException(PeridexException):
    def __init__(self, message: str = "no index name provided"):
        super().__init__(message)


class KeyEncodingException(PeridexException):
    """A key segment cannot be encoded, or a raw key cannot be decoded."""

    def __init__(self, message: str, index_name: Optional[str] = None, record_key: Optional[Any] = None):
        super().__init__(message)
        self.index_name = index_name
        self.record_key = record_key

    def _details(self):
        return [("index_name", self.index_name), ("record_key", self.record_key)]


class ReservedKeyException(PeridexException):
    """A document key falls into the keyspace reserved for index entries."""

    def __init__(self, message: str, record_key: Optional[Any] = None):
        super().__init__(message)
        self.record_key = record_key

    def _details(self):
        return [("record_key", self.record_key)]


class ReadOnlyTransactionException(PeridexException):
    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation

    def _details(self):
        return [("operation", self.operation)]


class TransactionClosedException(PeridexException):
    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation

    def _details(self):
        return [("operation", self.operation)]


class RebuildStalledException(PeridexException):
    """A rebuild batch made no progress: the builder did not restamp documents."""

    def __init__(self, message: str, version: Optional[int] = None, record_key: Optional[Any] = None):
        super().__init__(message)
        self.version = version
        self.record_key = record_key

    def _details(self):
        return [("version", self.version), ("record_key", self.record_key)]
