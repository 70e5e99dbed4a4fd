"""CRM behaviors."""

from behaviors.base import BaseBehavior, BehaviorResult
from core.constants import ObjectType
from workflow.contracts import ContextSlot


class ContactLookupBehavior(BaseBehavior):
    """Find the CRM contact for the customer's email, creating it if missing."""

    behavior_type = "contact-lookup"
    display_name = "Contact Lookup"
    description = "Resolve or create the CRM contact for the customer"
    inputs = (ContextSlot("customerData", (dict,)),)
    outputs = (
        ContextSlot("crmContactId", (str,)),
        ContextSlot("contactCreated", (bool,)),
    )

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        customer = context["customerData"]
        email = (customer.get("email") or "").strip().lower()
        if not email:
            return BehaviorResult.fail("customerData.email is required")

        existing = await self.lookup.find_one(tenant_id, ObjectType.CRM_CONTACT.value, email=email)
        if existing is not None:
            return BehaviorResult.ok(
                {"crmContactId": existing.id, "contactCreated": False},
                message="Existing contact found",
            )

        first_name = customer.get("firstName")
        last_name = customer.get("lastName")
        name = " ".join(part for part in (first_name, last_name) if part) or email

        contact = await self.effects.create_object(
            ObjectType.CRM_CONTACT.value,
            name=name,
            properties={
                "email": email,
                "firstName": first_name,
                "lastName": last_name,
                "phone": customer.get("phone"),
                "source": "workflow",
            },
            status="active",
        )
        return BehaviorResult.ok(
            {"crmContactId": contact.id, "contactCreated": True},
            message=f"Contact created for {email}",
        )


CRM_BEHAVIOR_TYPES = {
    "contact-lookup": ContactLookupBehavior,
}
