"""FastAPI router for ledger inspection."""

from decimal import Decimal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from mailledger.ledger.base import get_db
from mailledger.ledger.unit_of_work import UnitOfWork

router = APIRouter(prefix="/ledger", tags=["ledger"])


class BalanceResponse(BaseModel):
    total_income: Decimal
    total_expense: Decimal
    total_balance: Decimal
    transaction_count: int


@router.get("/balance", response_model=BalanceResponse, status_code=status.HTTP_200_OK)
async def get_balance(db: AsyncSession = Depends(get_db)):
    """Income, expense and balance totals across the ledger."""
    async with UnitOfWork(session=db) as uow:
        summary = await uow.ledger.balance_summary()
    return BalanceResponse(**summary)
