"""Side-effect gateways for behaviors.

Every write a behavior performs (creating an object, drawing a sequence
number, sending an email) goes through an Effects instance chosen once per
invocation from the `dryRun` flag:

- LiveEffects writes through the ObjectStore and sends mail.
- SimulatedEffects performs no I/O and returns synthetic, clearly marked
  identifiers of the same shape, recording what it would have done.
"""

import itertools
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from core.constants import DRY_RUN_MARKER
from notifications.channels import BaseChannel, Notification, NotificationChannel


class ExternalCallError(Exception):
    """An outbound call (SMTP, HTTP) reported failure."""


@dataclass(frozen=True)
class CreatedObject:
    """What a behavior gets back from create_object()."""

    id: str
    type: str
    name: str
    properties: dict[str, Any] = field(default_factory=dict)
    simulated: bool = False


def is_dry_run_id(value: Any) -> bool:
    """True for identifiers and numbers synthesized by SimulatedEffects."""
    if not isinstance(value, str):
        return False
    return value.startswith(f"{DRY_RUN_MARKER}_") or f"-{DRY_RUN_MARKER.upper()}-" in value


class Effects(ABC):
    """Interface behaviors use for anything that changes the outside world."""

    dry_run: bool = False

    @abstractmethod
    async def create_object(
        self,
        object_type: str,
        name: str,
        properties: Optional[dict[str, Any]] = None,
        status: Optional[str] = None,
    ) -> CreatedObject:
        ...

    @abstractmethod
    async def next_number(self, object_type: str, number_field: str, prefix: str, width: int = 4) -> str:
        """Next human-facing document number, e.g. INV-2026-0001."""
        ...

    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str) -> str:
        """Send an email and return its message id. Raises ExternalCallError."""
        ...


class LiveEffects(Effects):
    """Production gateway: persists through the ObjectStore, sends real mail.

    With an idempotency key, each object a behavior creates is keyed by
    `<key>:<behaviorId>:<objectType>`, so re-running the same trigger returns
    the objects created the first time instead of duplicating them.
    """

    dry_run = False

    def __init__(
        self,
        store,
        tenant_id: str,
        run_id: str,
        behavior_id: str,
        mailer: Optional[BaseChannel] = None,
        idempotency_key: Optional[str] = None,
    ):
        self._store = store
        self._mailer = mailer
        self.tenant_id = tenant_id
        self.run_id = run_id
        self.behavior_id = behavior_id
        self.idempotency_key = idempotency_key

    def _object_key(self, object_type: str) -> Optional[str]:
        if not self.idempotency_key:
            return None
        return f"{self.idempotency_key}:{self.behavior_id}:{object_type}"

    async def create_object(self, object_type, name, properties=None, status=None) -> CreatedObject:
        obj = await self._store.create_object(
            self.tenant_id,
            object_type,
            name=name,
            properties=properties or {},
            status=status,
            idempotency_key=self._object_key(object_type),
            run_id=self.run_id,
        )
        return CreatedObject(
            id=obj.id,
            type=obj.type,
            name=obj.name,
            properties=dict(obj.properties or {}),
        )

    async def next_number(self, object_type, number_field, prefix, width=4) -> str:
        key = self._object_key(object_type)
        if key:
            existing = await self._store.find_by_idempotency_key(self.tenant_id, key)
            if existing is not None and (existing.properties or {}).get(number_field):
                return existing.properties[number_field]
        return await self._store.next_sequence_number(
            self.tenant_id, object_type, number_field, prefix, width=width
        )

    async def send_email(self, to, subject, body) -> str:
        if self._mailer is None:
            raise ExternalCallError("No mail channel configured")
        result = await self._mailer.send(Notification(
            title=subject,
            message=body,
            channel=NotificationChannel.EMAIL,
            recipient=to,
            organization_id=self.tenant_id,
        ))
        if not result.success:
            raise ExternalCallError(result.error or "Email delivery failed")
        return result.delivery_id


class SimulatedEffects(Effects):
    """Dry-run gateway: no I/O, deterministic-shape synthetic results."""

    dry_run = True

    def __init__(self):
        self._counter = itertools.count(1)
        self.operations: list[dict[str, Any]] = []

    def _tick(self) -> tuple[int, int]:
        return int(time.time() * 1000), next(self._counter)

    def make_id(self, kind: str) -> str:
        epoch_ms, n = self._tick()
        return f"{DRY_RUN_MARKER}_{kind}_{epoch_ms}_{n}"

    async def create_object(self, object_type, name, properties=None, status=None) -> CreatedObject:
        created = CreatedObject(
            id=self.make_id(object_type),
            type=object_type,
            name=name,
            properties=dict(properties or {}),
            simulated=True,
        )
        self.operations.append({
            "operation": "create_object",
            "type": object_type,
            "id": created.id,
            "name": name,
            "status": status,
        })
        return created

    async def next_number(self, object_type, number_field, prefix, width=4) -> str:
        epoch_ms, n = self._tick()
        number = f"{prefix}-{DRY_RUN_MARKER.upper()}-{epoch_ms}-{n}"
        self.operations.append({"operation": "next_number", "type": object_type, "number": number})
        return number

    async def send_email(self, to, subject, body) -> str:
        message_id = self.make_id("email")
        self.operations.append({"operation": "send_email", "to": to, "subject": subject, "id": message_id})
        return message_id
