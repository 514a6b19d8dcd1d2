from typing import List, Protocol, runtime_checkable

from peridex_data_model.index_packets import IndexEntry


@runtime_checkable
class IndexDefinitionInterface(Protocol):
    """
    Interface for a named secondary index definition.

    ``hash`` is the fixed-width discriminator embedded in every stored key
    of the index; it is derived from ``name`` once and never changes.
    ``derive_entries`` must be a pure function of its arguments.
    """
    @property
    def name(self) -> str:
        ...

    @property
    def hash(self) -> bytes:
        ...

    def derive_entries(self, key: bytes, value: bytes) -> List[IndexEntry]:
        ...
