import logging
from typing import Optional

from peridex_db.core.interface.kv_store_interface import KVTransaction
from peridex_db.core.pending_writes import PendingWrites
from peridex_db.indexing.emit import emit
from peridex_db.indexing.index_definition import IndexRegistry

logger = logging.getLogger(__name__)


class IndexBuilder:
    """
    Before-commit hook that re-derives every registered index for the
    documents written in a transaction.

    Pass an instance to ``txn.commit_with`` or ``store.update_with``. The
    registry is read at call time, so indexes registered later take effect
    on the next commit.
    """

    def __init__(self, registry: Optional[IndexRegistry] = None, logger_: Optional[logging.Logger] = None):
        self._registry = registry if registry is not None else IndexRegistry()
        self._logger = logger_ or logger

    @property
    def registry(self) -> IndexRegistry:
        return self._registry

    def __call__(self, txn: KVTransaction, pending: Optional[PendingWrites]) -> None:
        if not pending:
            return
        self._logger.debug(
            f"Building {len(self._registry)} indexes for {len(pending)} writes "
            f"({len(pending.deletions())} deletions)")
        for key, value in pending.items():
            for index in self._registry:
                emit(txn, index, key, value)
