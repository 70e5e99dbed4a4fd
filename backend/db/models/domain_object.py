"""Generic tenant object store row.

Contacts, CRM organizations, products, events, transactions, tickets and
invoices all live in one table, distinguished by `type`. Type-specific
fields go in `properties`.
"""

from typing import Optional

from sqlalchemy import JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from db.base import BaseModel, TenantMixin


class DomainObject(TenantMixin, BaseModel):
    """A tenant-owned domain record.

    Attributes:
        organization_id: Owning tenant
        type: Object type (see core.constants.ObjectType)
        subtype: Optional finer classification
        name: Display name
        status: Type-specific status string
        properties: Type-specific fields
        idempotency_key: Set when created by a run that carried an idempotency key
        created_by_run_id: Workflow run that created the object, if any
    """

    __tablename__ = "domain_objects"
    __table_args__ = (
        Index("ix_domain_objects_org_type", "organization_id", "type"),
        Index("ix_domain_objects_org_idempotency", "organization_id", "idempotency_key"),
    )

    type: Mapped[str] = mapped_column(nullable=False)
    subtype: Mapped[Optional[str]] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(nullable=False, default="")
    status: Mapped[Optional[str]] = mapped_column(nullable=True)
    properties: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    idempotency_key: Mapped[Optional[str]] = mapped_column(nullable=True)
    created_by_run_id: Mapped[Optional[str]] = mapped_column(nullable=True)
