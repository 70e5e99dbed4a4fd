"""Tenant object store: the persistence collaborator behaviors talk to.

ObjectStore is the only code path that writes DomainObject rows. Behaviors
never receive it directly: they read through ObjectLookup and write through
LiveEffects (behaviors/effects.py), which is never constructed for a dry run.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.domain_object import DomainObject
from services.base import BaseService

logger = logging.getLogger(__name__)

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def _matches(obj: DomainObject, name: Optional[str], properties: dict[str, Any]) -> bool:
    if name is not None and (obj.name or "").lower() != name.lower():
        return False
    props = obj.properties or {}
    return all(props.get(key) == value for key, value in properties.items())


class ObjectStore(BaseService[DomainObject]):
    """Tenant-scoped CRUD over the generic objects table."""

    def __init__(self, db: AsyncSession):
        super().__init__(DomainObject, db)

    async def _objects_of_type(self, organization_id: str, object_type: str) -> Sequence[DomainObject]:
        query = select(DomainObject).where(DomainObject.type == object_type)
        result = await self.db.execute(
            self._scoped(query, organization_id).order_by(DomainObject.created_at.asc())
        )
        return result.scalars().all()

    async def get_object(
        self,
        organization_id: str,
        object_id: str,
        object_type: Optional[str] = None,
    ) -> Optional[DomainObject]:
        """Get one object, optionally asserting its type."""
        obj = await self.get_by_id_and_org(object_id, organization_id)
        if obj is None or (object_type and obj.type != object_type):
            return None
        return obj

    async def find_one(
        self,
        organization_id: str,
        object_type: str,
        name: Optional[str] = None,
        **properties: Any,
    ) -> Optional[DomainObject]:
        """Find the oldest object of a type matching name and property values."""
        for obj in await self._objects_of_type(organization_id, object_type):
            if _matches(obj, name, properties):
                return obj
        return None

    async def count_objects(self, organization_id: str, object_type: str, **properties: Any) -> int:
        """Count objects of a type whose properties match."""
        objects = await self._objects_of_type(organization_id, object_type)
        return sum(1 for obj in objects if _matches(obj, None, properties))

    async def find_by_idempotency_key(
        self,
        organization_id: str,
        idempotency_key: str,
    ) -> Optional[DomainObject]:
        query = select(DomainObject).where(DomainObject.idempotency_key == idempotency_key)
        result = await self.db.execute(self._scoped(query, organization_id))
        return result.scalars().first()

    async def create_object(
        self,
        organization_id: str,
        object_type: str,
        name: str,
        properties: Optional[dict[str, Any]] = None,
        status: Optional[str] = None,
        subtype: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> DomainObject:
        """Create an object, or return the existing one for a repeated idempotency key."""
        if idempotency_key:
            existing = await self.find_by_idempotency_key(organization_id, idempotency_key)
            if existing is not None:
                logger.info(
                    "Idempotent create returned existing object",
                    extra={"object_id": existing.id, "object_type": object_type},
                )
                return existing

        return await self.create({
            "organization_id": organization_id,
            "type": object_type,
            "subtype": subtype,
            "name": name,
            "status": status,
            "properties": properties or {},
            "idempotency_key": idempotency_key,
            "created_by_run_id": run_id,
        })

    async def next_sequence_number(
        self,
        organization_id: str,
        object_type: str,
        number_field: str,
        prefix: str,
        width: int = 4,
    ) -> str:
        """Next `<PREFIX>-<year>-<seq>` number for a tenant.

        The sequence continues from the highest trailing number already
        issued for this object type.
        """
        sequence = 0
        for obj in await self._objects_of_type(organization_id, object_type):
            match = _TRAILING_DIGITS.search(str((obj.properties or {}).get(number_field, "")))
            if match:
                sequence = max(sequence, int(match.group(1)))

        year = datetime.now(timezone.utc).year
        return f"{prefix}-{year}-{str(sequence + 1).zfill(width)}"


class ObjectLookup:
    """Read-only view of an ObjectStore handed to behaviors.

    Reads are allowed in dry runs; writes are only reachable via LiveEffects.
    """

    def __init__(self, store: ObjectStore):
        self._store = store

    async def get(self, organization_id: str, object_id: str, object_type: Optional[str] = None):
        return await self._store.get_object(organization_id, object_id, object_type)

    async def find_one(self, organization_id: str, object_type: str, name: Optional[str] = None, **properties):
        return await self._store.find_one(organization_id, object_type, name=name, **properties)

    async def count(self, organization_id: str, object_type: str, **properties) -> int:
        return await self._store.count_objects(organization_id, object_type, **properties)
