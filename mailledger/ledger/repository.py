"""Generic async repository over one mapped model."""

import operator
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mailledger.ledger.base import Base

ModelType = TypeVar("ModelType", bound=Base)

# Suffixes accepted in filter keys, e.g. ``amount__lt=0``.
_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "lte": operator.le,
    "gt": operator.gt,
    "gte": operator.ge,
}


class BaseRepository(Generic[ModelType]):
    """
    Shared reads and inserts for a single model.

    Repositories flush but never commit; the UnitOfWork that opened the
    session decides when the transaction ends.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, **values: Any) -> ModelType:
        """Add a row and flush so database defaults (id, created_at) are loaded."""
        row = self.model(**values)
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[ModelType]:
        query = select(self.model).order_by(self.model.id).offset(offset).limit(limit)  # type: ignore[attr-defined]
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_field(self, field_name: str, value: Any) -> Optional[ModelType]:
        column = getattr(self.model, field_name)
        result = await self.session.execute(select(self.model).where(column == value).limit(1))
        return result.scalars().first()

    async def filter(self, **conditions: Any) -> List[ModelType]:
        """
        Rows matching every condition.

        Keys are column names with an optional ``__ne``, ``__lt``, ``__lte``,
        ``__gt`` or ``__gte`` suffix; a bare name compares for equality.
        Unknown suffixes raise ValueError.
        """
        result = await self.session.execute(self._where(select(self.model), conditions))
        return list(result.scalars().all())

    async def count(self, **conditions: Any) -> int:
        query = self._where(select(func.count()).select_from(self.model), conditions)
        result = await self.session.execute(query)
        return result.scalar_one()

    def _where(self, query: Select, conditions: dict) -> Select:
        for key, value in conditions.items():
            column_name, _, suffix = key.partition("__")
            compare = _OPERATORS.get(suffix or "eq")
            if compare is None:
                raise ValueError(f"Unknown filter operator: {suffix}")
            query = query.where(compare(getattr(self.model, column_name), value))
        return query
