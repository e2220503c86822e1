"""
Transaction scope around a driver session.

State machine:

    IDLE --begin()--> STARTED --commit()--> COMMITTED
                              --abort()---> ABORTED

COMMITTED and ABORTED are terminal. Any further use raises
TransactionClosedError instead of silently running outside the transaction.

Usage:
    ```python
    async with TransactionScope(client) as scope:
        await insert_one_with_session(db, "member", member, scope)
        await insert_one_with_session(db, "transaction", trx, scope)
    # committed here; aborted if any step raised
    ```

Transactions need a replica set or sharded cluster.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from pymongo.errors import PyMongoError

from .errors import TransactionClosedError, TransactionError

if TYPE_CHECKING:
    from types import TracebackType

    from pymongo import AsyncMongoClient
    from pymongo.asynchronous.client_session import AsyncClientSession

logger = logging.getLogger("docquery.transaction")


class TransactionState(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    COMMITTED = "committed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.COMMITTED, TransactionState.ABORTED)


class TransactionScope:
    """
    One unit of work over a single driver session.

    The scope is a resource handle: pass it to every ``*_with_session``
    write of the unit of work, then commit, or abort on the first failure.
    """

    def __init__(self, client: AsyncMongoClient, **transaction_options: Any):
        self._client = client
        self._options = transaction_options
        self._session: AsyncClientSession | None = None
        self._state = TransactionState.IDLE

    def __repr__(self) -> str:
        return f"TransactionScope(state={self._state.value})"

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.STARTED

    @property
    def session(self) -> AsyncClientSession:
        """The live session; only available while STARTED."""
        self._ensure_started()
        assert self._session is not None
        return self._session

    def _ensure_started(self) -> None:
        if self._state.is_terminal:
            raise TransactionClosedError(f"Transaction already {self._state.value}")
        if self._state is TransactionState.IDLE:
            raise TransactionError("Transaction not started. Call 'await scope.begin()' first.")

    async def begin(self) -> TransactionScope:
        if self._state.is_terminal:
            raise TransactionClosedError(f"Transaction already {self._state.value}")
        if self._state is TransactionState.STARTED:
            raise TransactionError("Transaction already started")

        try:
            self._session = self._client.start_session()
            await self._session.start_transaction(**self._options)
        except PyMongoError as e:
            logger.error(f"[TRX] Failed to start transaction: {e}")
            await self._end_session()
            raise TransactionError(f"Failed to start transaction: {e}") from e

        self._state = TransactionState.STARTED
        logger.debug("[TRX] Transaction started")
        return self

    async def commit(self) -> None:
        self._ensure_started()
        assert self._session is not None
        try:
            await self._session.commit_transaction()
        except PyMongoError as e:
            logger.error(f"[TRX] Commit failed, aborting: {e}")
            await self._abort_quietly()
            raise TransactionError(f"Failed to commit transaction: {e}") from e
        else:
            self._state = TransactionState.COMMITTED
            logger.debug("[TRX] Transaction committed")
        finally:
            await self._end_session()

    async def abort(self) -> None:
        self._ensure_started()
        assert self._session is not None
        try:
            await self._session.abort_transaction()
        except PyMongoError as e:
            logger.error(f"[TRX] Abort failed: {e}")
            raise TransactionError(f"Failed to abort transaction: {e}") from e
        finally:
            self._state = TransactionState.ABORTED
            await self._end_session()
        logger.debug("[TRX] Transaction aborted")

    async def _abort_quietly(self) -> None:
        """Abort after a failed commit; the commit error is what gets raised."""
        assert self._session is not None
        self._state = TransactionState.ABORTED
        if not self._session.in_transaction:
            return
        try:
            await self._session.abort_transaction()
        except PyMongoError as e:
            logger.warning(f"[TRX] Abort after failed commit also failed: {e}")

    async def _end_session(self) -> None:
        if self._session is None:
            return
        session, self._session = self._session, None
        try:
            await session.end_session()
        except PyMongoError as e:
            logger.warning(f"[TRX] Failed to end session: {e}")

    async def __aenter__(self) -> TransactionScope:
        return await self.begin()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._state is not TransactionState.STARTED:
            # Already closed inside the block (explicit commit/abort, or a
            # failed write that aborted the scope).
            return
        if exc_type is None:
            await self.commit()
        else:
            logger.info(f"[TRX] Aborting on {exc_type.__name__}")
            await self.abort()


__all__ = ["TransactionScope", "TransactionState"]
