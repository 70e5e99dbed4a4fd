"""Booking behaviors: capacity check, transaction and ticket creation."""

from typing import Any, Mapping

from behaviors.base import BaseBehavior, BehaviorResult
from core.constants import BillingMethod, ObjectType
from workflow.contracts import ContextSlot


def _quantity(config: Mapping[str, Any], context: Mapping[str, Any]) -> int:
    return int(context.get("quantity") or config.get("quantity") or 1)


class CapacityCheckBehavior(BaseBehavior):
    """Verify that an event still has room for the requested quantity.

    Capacity and registrations come from the context when the trigger
    supplies them, otherwise from the event object and its issued tickets.

    Config:
        maxCapacity: Fallback capacity when neither context nor event has one
        quantity: Seats requested (default: context quantity or 1)
    """

    behavior_type = "capacity-check"
    display_name = "Capacity Check"
    description = "Fail when the event has fewer free slots than requested"
    inputs = (
        ContextSlot("eventId", (str,)),
        ContextSlot("maxCapacity", (int,), required=False),
        ContextSlot("currentRegistrations", (int,), required=False),
        ContextSlot("quantity", (int,), required=False),
    )
    outputs = (
        ContextSlot("capacityAvailable", (bool,)),
        ContextSlot("availableSlots", (int,)),
        ContextSlot("maxCapacity", (int,)),
        ContextSlot("currentRegistrations", (int,)),
    )

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        event_id = context["eventId"]
        quantity = _quantity(config, context)

        max_capacity = context.get("maxCapacity")
        if max_capacity is None:
            event = await self.lookup.get(tenant_id, event_id, ObjectType.EVENT.value)
            if event is None:
                return BehaviorResult.fail(f"Event {event_id} not found")
            max_capacity = (event.properties or {}).get("maxCapacity", config.get("maxCapacity"))
            if max_capacity is None:
                return BehaviorResult.fail(f"Event {event_id} has no maxCapacity configured")

        current = context.get("currentRegistrations")
        if current is None:
            current = await self.lookup.count(tenant_id, ObjectType.TICKET.value, eventId=event_id)

        max_capacity, current = int(max_capacity), int(current)
        available = max(max_capacity - current, 0)
        data = {
            "capacityAvailable": available >= quantity,
            "availableSlots": available,
            "maxCapacity": max_capacity,
            "currentRegistrations": current,
        }

        if available == 0:
            return BehaviorResult.fail("Event is at full capacity", data=data)
        if available < quantity:
            return BehaviorResult.fail(
                f"Only {available} slot(s) left, {quantity} requested", data=data
            )

        return BehaviorResult.ok(data, message=f"{available} of {max_capacity} slots available")


class CreateTransactionBehavior(BaseBehavior):
    """Record the purchase of a product.

    Config:
        productId: Product to sell (falls back to context productId)
        currency: Currency when the product has none (default: EUR)
    """

    behavior_type = "create-transaction"
    display_name = "Create Transaction"
    description = "Create a transaction priced from the product"
    inputs = (
        ContextSlot("productId", (str,), required=False),
        ContextSlot("crmContactId", (str,), required=False),
        ContextSlot("billingMethod", (str,), required=False),
        ContextSlot("quantity", (int,), required=False),
    )
    outputs = (
        ContextSlot("transactionId", (str,)),
        ContextSlot("productId", (str,)),
        ContextSlot("amountCents", (int,)),
        ContextSlot("currency", (str,)),
        ContextSlot("paymentStatus", (str,)),
    )

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        product_id = config.get("productId") or context.get("productId")
        if not product_id:
            return BehaviorResult.fail("productId is required in config or context")

        product = await self.lookup.get(tenant_id, product_id, ObjectType.PRODUCT.value)
        if product is None:
            return BehaviorResult.fail(f"Product {product_id} not found")

        props = product.properties or {}
        quantity = _quantity(config, context)
        amount_cents = int(props.get("priceCents", 0)) * quantity
        currency = props.get("currency") or config.get("currency", "EUR")
        billing_method = context.get("billingMethod") or BillingMethod.CUSTOMER_PAYMENT.value
        payment_status = (
            "awaiting_employer_invoice"
            if billing_method == BillingMethod.EMPLOYER_INVOICE.value
            else "pending"
        )

        created = await self.effects.create_object(
            ObjectType.TRANSACTION.value,
            name=f"{product.name} x{quantity}",
            properties={
                "productId": product_id,
                "crmContactId": context.get("crmContactId"),
                "quantity": quantity,
                "amountCents": amount_cents,
                "currency": currency,
                "billingMethod": billing_method,
            },
            status=payment_status,
        )

        return BehaviorResult.ok(
            {
                "transactionId": created.id,
                "productId": product_id,
                "amountCents": amount_cents,
                "currency": currency,
                "paymentStatus": payment_status,
            },
            message=f"Transaction created for {product.name}",
        )


class CreateTicketBehavior(BaseBehavior):
    """Issue a ticket for a product.

    When the run concerns an event, the ticket is only issued after a
    capacity check has succeeded earlier in the run.

    Config:
        requireCapacityCheck: Demand capacityAvailable for event tickets (default: True)
        prefix: Ticket number prefix (default: TKT)
    """

    behavior_type = "create-ticket"
    display_name = "Create Ticket"
    description = "Issue a numbered ticket"
    inputs = (
        ContextSlot("productId", (str,)),
        ContextSlot("eventId", (str,), required=False),
        ContextSlot("capacityAvailable", (bool,), required=False),
        ContextSlot("crmContactId", (str,), required=False),
        ContextSlot("transactionId", (str,), required=False),
    )
    outputs = (
        ContextSlot("ticketId", (str,)),
        ContextSlot("ticketNumber", (str,)),
    )

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        event_id = context.get("eventId")
        if (
            event_id
            and config.get("requireCapacityCheck", True)
            and context.get("capacityAvailable") is not True
        ):
            return BehaviorResult.fail(
                f"Capacity for event {event_id} has not been confirmed; ticket not issued"
            )

        number = await self.effects.next_number(
            ObjectType.TICKET.value, "ticketNumber", config.get("prefix", "TKT"), width=5
        )
        created = await self.effects.create_object(
            ObjectType.TICKET.value,
            name=number,
            properties={
                "ticketNumber": number,
                "productId": context["productId"],
                "eventId": event_id,
                "crmContactId": context.get("crmContactId"),
                "transactionId": context.get("transactionId"),
            },
            status="issued",
        )

        return BehaviorResult.ok(
            {"ticketId": created.id, "ticketNumber": created.properties.get("ticketNumber", number)},
            message=f"Ticket {number} issued",
        )


BOOKING_BEHAVIOR_TYPES = {
    "capacity-check": CapacityCheckBehavior,
    "create-transaction": CreateTransactionBehavior,
    "create-ticket": CreateTicketBehavior,
}
