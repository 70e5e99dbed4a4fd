"""Shared persistence helpers for the tenant-scoped services.

Soft-deleted rows are invisible unless a caller asks for them, and every
query that names an organization is restricted to it.
"""

from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseService(Generic[ModelType]):
    """CRUD over one model class, bound to one session.

    Services flush but never commit; the request (or test) that owns the
    session decides when the unit of work ends.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    def _scoped(
        self,
        query: Select,
        organization_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> Select:
        if organization_id is not None:
            query = query.where(self.model.organization_id == organization_id)
        if not include_deleted:
            query = query.where(self.model.is_deleted.is_(False))
        return query

    def _filtered(self, query: Select, filters: Optional[dict[str, Any]]) -> Select:
        for field, value in (filters or {}).items():
            column = getattr(self.model, field)
            query = query.where(column.in_(value) if isinstance(value, (list, tuple, set)) else column == value)
        return query

    async def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[ModelType]:
        result = await self.db.execute(
            self._scoped(select(self.model).where(self.model.id == id), include_deleted=include_deleted)
        )
        return result.scalar_one_or_none()

    async def get_by_id_and_org(
        self,
        id: str,
        organization_id: str,
        include_deleted: bool = False,
    ) -> Optional[ModelType]:
        """Fetch a row only if it belongs to the organization."""
        query = self._scoped(select(self.model).where(self.model.id == id), organization_id, include_deleted)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list(
        self,
        organization_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
        order_by: str = "created_at",
        order_desc: bool = True,
        include_deleted: bool = False,
        filters: Optional[dict[str, Any]] = None,
    ) -> tuple[Sequence[ModelType], int]:
        """One page of rows plus the total matching count.

        ``filters`` maps column names to a value (equality) or a list of
        values (membership). Unknown column names raise AttributeError.
        """
        where = self._filtered(self._scoped(select(self.model), organization_id, include_deleted), filters)

        sort = getattr(self.model, order_by)
        page = await self.db.execute(
            where.order_by(sort.desc() if order_desc else sort.asc()).offset(offset).limit(limit)
        )
        total = await self.db.scalar(select(func.count()).select_from(where.subquery()))
        return page.scalars().all(), total or 0

    async def count(self, organization_id: str, filters: Optional[dict[str, Any]] = None) -> int:
        """Live rows owned by the organization."""
        where = self._filtered(self._scoped(select(self.model), organization_id), filters)
        return await self.db.scalar(select(func.count()).select_from(where.subquery())) or 0

    async def create(self, data: dict[str, Any]) -> ModelType:
        instance = self.model(**data)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def update(
        self,
        id: str,
        data: dict[str, Any],
        organization_id: Optional[str] = None,
    ) -> Optional[ModelType]:
        """Apply the non-None values in ``data``. Returns None when the row is not visible."""
        instance = await self._visible(id, organization_id)
        if instance is None:
            return None

        for key, value in data.items():
            if value is not None:
                setattr(instance, key, value)

        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def soft_delete(self, id: str, organization_id: Optional[str] = None) -> bool:
        instance = await self._visible(id, organization_id)
        if instance is None:
            return False
        instance.soft_delete()
        await self.db.flush()
        return True

    async def _visible(self, id: str, organization_id: Optional[str]) -> Optional[ModelType]:
        if organization_id is None:
            return await self.get_by_id(id)
        return await self.get_by_id_and_org(id, organization_id)
