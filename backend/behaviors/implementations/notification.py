"""Notification behaviors."""

from behaviors.base import BaseBehavior, BehaviorResult
from behaviors.effects import ExternalCallError
from workflow.contracts import ContextSlot

DEFAULT_SUBJECT = "Your registration is confirmed"


class ConfirmationEmailBehavior(BaseBehavior):
    """Email the customer a confirmation listing what the run produced.

    Config:
        subject: Email subject
        greeting: First line of the body (default: "Hello {firstName},")
    """

    behavior_type = "send-confirmation-email"
    display_name = "Send Confirmation Email"
    description = "Send a confirmation email to the customer"
    inputs = (
        ContextSlot("customerData", (dict,)),
        ContextSlot("ticketNumber", (str,), required=False),
        ContextSlot("invoiceNumber", (str,), required=False),
        ContextSlot("dueDate", (str,), required=False),
    )
    outputs = (
        ContextSlot("emailSent", (bool,)),
        ContextSlot("emailMessageId", (str,)),
    )

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        customer = context["customerData"]
        email = customer.get("email")
        if not email:
            return BehaviorResult.fail("customerData.email is required")

        body = self._render_body(config, context, customer)
        try:
            message_id = await self.effects.send_email(
                email, config.get("subject", DEFAULT_SUBJECT), body
            )
        except ExternalCallError as e:
            return BehaviorResult.fail(f"Confirmation email failed: {e}")

        return BehaviorResult.ok(
            {"emailSent": True, "emailMessageId": message_id},
            message=f"Confirmation sent to {email}",
        )

    @staticmethod
    def _render_body(config, context, customer) -> str:
        greeting = config.get("greeting", "Hello {firstName},")
        lines = [greeting.format(firstName=customer.get("firstName") or "there"), ""]
        lines.append("Thank you, your registration has been received.")
        if context.get("ticketNumber"):
            lines.append(f"Ticket number: {context['ticketNumber']}")
        if context.get("invoiceNumber"):
            lines.append(
                f"Invoice {context['invoiceNumber']} has been sent to your employer"
                + (f", due {context['dueDate']}." if context.get("dueDate") else ".")
            )
        return "\n".join(lines)


NOTIFICATION_BEHAVIOR_TYPES = {
    "send-confirmation-email": ConfirmationEmailBehavior,
}
