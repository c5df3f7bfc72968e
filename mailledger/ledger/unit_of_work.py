"""Transaction scope for ledger work."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mailledger.ledger import base
from mailledger.ledger.models import LedgerEntry
from mailledger.ledger.repositories import LedgerRepository


class UnitOfWork:
    """
    Binds a LedgerRepository to one session for the length of a block.

        async with UnitOfWork() as uow:
            outcome = await uow.ledger.insert_if_absent(**fields)

    When the unit of work opens its own session it commits on a clean exit
    and always closes the session. A session passed in by the caller (the
    request-scoped one from ``get_db``, or a test session) is only rolled
    back on error; committing and closing it stays with the caller.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        self._session = session
        self._owns_session = session is None
        self.ledger: LedgerRepository = None  # type: ignore

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside 'async with'")
        return self._session

    async def __aenter__(self) -> "UnitOfWork":
        if self._owns_session:
            # resolved per call so a patched session factory takes effect
            self._session = base.AsyncSessionLocal()
        self.ledger = LedgerRepository(LedgerEntry, self.session)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is not None:
                await self.rollback()
            elif self._owns_session:
                await self.commit()
        finally:
            if self._owns_session:
                await self.session.close()
                self._session = None

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
