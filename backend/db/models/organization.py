"""Tenant model."""

from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import PlanTier
from core.webhook_signing import generate_webhook_secret
from db.base import BaseModel


class Organization(BaseModel):
    """A tenant. Every workflow, run and domain object belongs to exactly one.

    ``plan_tier`` drives core.licensing; ``callback_secret`` signs the
    trigger callbacks sent on this organization's behalf.
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(nullable=False)
    slug: Mapped[str] = mapped_column(nullable=False, unique=True)
    plan_tier: Mapped[str] = mapped_column(nullable=False, default=PlanTier.FREE.value)
    is_active: Mapped[bool] = mapped_column(default=True)
    callback_secret: Mapped[str] = mapped_column(nullable=False, default=generate_webhook_secret)

    workflows: Mapped[list["Workflow"]] = relationship(
        "Workflow",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="noload",
    )
