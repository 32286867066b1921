"""Transaction session batching several operations into one transaction.

A session is either inactive (no operation list at all) or active, in
which case the list may be empty. Commands that would normally submit a
transaction consult :meth:`TransactionSession.is_valid` and stage their
operation here instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from .errors import NoSessionError, SessionInProgressError

logger = logging.getLogger(__name__)


@dataclass
class PendingOperation:
    operation: Any
    log_message: str


class TransactionSession:
    def __init__(self) -> None:
        self.ops: Optional[List[PendingOperation]] = None

    def begin_session(self) -> None:
        if self.ops is not None:
            raise SessionInProgressError()
        self.ops = []
        logger.debug("Transaction session started")

    def add_operation(self, operation: Any, log_message: str) -> None:
        if self.ops is None:
            raise NoSessionError()
        self.ops.append(PendingOperation(operation, log_message))

    def get_operations(self) -> List[PendingOperation]:
        if self.ops is None:
            raise NoSessionError()
        return list(self.ops)

    def end_session(self) -> None:
        if self.ops is None:
            raise NoSessionError()
        logger.debug("Transaction session ended with %d operations", len(self.ops))
        self.ops = None

    def is_valid(self) -> bool:
        return self.ops is not None
