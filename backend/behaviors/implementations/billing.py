"""Billing behaviors: employer detection and employer invoices."""

from datetime import datetime, timedelta, timezone

from behaviors.base import BaseBehavior, BehaviorResult
from core.constants import BillingMethod, ObjectType
from workflow.contracts import ContextSlot


class EmployerDetectionBehavior(BaseBehavior):
    """Decide whether a registration is billed to the customer's employer.

    The employer named in the form responses is resolved to a CRM
    organization, first through the configured mapping, then by name.

    Config:
        employerField: Form response key holding the employer (default: employer)
        employerMapping: {employer name: crm organization id}
        autoCreateOrganization: Create unknown employers in the CRM (default: False)
    """

    behavior_type = "employer-detection"
    display_name = "Employer Detection"
    description = "Resolve the billing method from the customer's employer"
    inputs = (ContextSlot("formResponses", (dict,)),)
    outputs = (
        ContextSlot("billingMethod", (str,)),
        ContextSlot("employerName", (str, type(None))),
        ContextSlot("crmOrganizationId", (str, type(None))),
        ContextSlot("organizationCreated", (bool,)),
    )

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        field = config.get("employerField", "employer")
        employer = context["formResponses"].get(field)
        employer = employer.strip() if isinstance(employer, str) else None

        if not employer:
            return BehaviorResult.ok(
                self._outcome(BillingMethod.CUSTOMER_PAYMENT, None, None),
                message="No employer given; customer pays",
            )

        mapping = config.get("employerMapping") or {}
        organization_id = mapping.get(employer) or mapping.get(employer.lower())
        if not organization_id:
            organization = await self.lookup.find_one(
                tenant_id, ObjectType.CRM_ORGANIZATION.value, name=employer
            )
            organization_id = organization.id if organization else None

        created = False
        if not organization_id and config.get("autoCreateOrganization", False):
            organization = await self.effects.create_object(
                ObjectType.CRM_ORGANIZATION.value,
                name=employer,
                properties={"source": self.behavior_type},
                status="active",
            )
            organization_id, created = organization.id, True

        if not organization_id:
            return BehaviorResult.ok(
                self._outcome(BillingMethod.CUSTOMER_PAYMENT, employer, None),
                message=f"Employer '{employer}' is not a known billing organization",
            )

        return BehaviorResult.ok(
            self._outcome(BillingMethod.EMPLOYER_INVOICE, employer, organization_id, created),
            message=f"Billing to employer '{employer}'",
        )

    @staticmethod
    def _outcome(method: BillingMethod, employer, organization_id, created: bool = False) -> dict:
        return {
            "billingMethod": method.value,
            "employerName": employer,
            "crmOrganizationId": organization_id,
            "organizationCreated": created,
        }


class InvoiceGenerationBehavior(BaseBehavior):
    """
    Generate an invoice addressed to the employer organization.

    Only runs when the billing method is employer invoicing; otherwise the
    behavior is skipped (which counts as success).

    Config:
        billingMethod: Billing method that enables this behavior (default: employer_invoice)
        paymentTermsDays: Days until the invoice is due (default: 30)
        prefix: Invoice number prefix (default: INV)
        currency: Currency when neither context nor transaction has one (default: EUR)
        amountCents: Amount invoiced when the transaction cannot be found (default: 0)
    """

    behavior_type = "generate-invoice"
    display_name = "Generate Invoice"
    description = "Create an employer invoice for the transaction"
    inputs = (
        ContextSlot("crmOrganizationId", (str,)),
        ContextSlot("transactionId", (str,)),
        ContextSlot("amountCents", (int,), required=False),
        ContextSlot("crmContactId", (str,), required=False),
    )
    outputs = (
        ContextSlot("invoiceId", (str,)),
        ContextSlot("invoiceNumber", (str,)),
        ContextSlot("invoiceAmountCents", (int,)),
        ContextSlot("dueDate", (str,)),
    )

    def gate(self, config, context):
        required = config.get("billingMethod", BillingMethod.EMPLOYER_INVOICE.value)
        actual = context.get("billingMethod")
        if actual != required:
            return f"billingMethod is {actual!r}; invoice generation requires {required!r}"
        return None

    async def execute(self, run_id, tenant_id, config, context) -> BehaviorResult:
        transaction_id = context["transactionId"]
        amount_cents = context.get("amountCents")
        currency = context.get("currency") or config.get("currency", "EUR")

        if amount_cents is None:
            transaction = await self.lookup.get(tenant_id, transaction_id, ObjectType.TRANSACTION.value)
            if transaction is None:
                self.log.warning("Transaction not found; invoicing configured amount", transaction_id=transaction_id)
                amount_cents = int(config.get("amountCents", 0))
            else:
                props = transaction.properties or {}
                amount_cents = int(props.get("amountCents", 0))
                currency = props.get("currency") or currency

        terms = int(config.get("paymentTermsDays", 30))
        due_date = (datetime.now(timezone.utc) + timedelta(days=terms)).date().isoformat()

        number = await self.effects.next_number(
            ObjectType.INVOICE.value, "invoiceNumber", config.get("prefix", "INV")
        )
        invoice = await self.effects.create_object(
            ObjectType.INVOICE.value,
            name=number,
            properties={
                "invoiceNumber": number,
                "crmOrganizationId": context["crmOrganizationId"],
                "crmContactId": context.get("crmContactId"),
                "transactionIds": [transaction_id],
                "amountCents": amount_cents,
                "currency": currency,
                "paymentTermsDays": terms,
                "dueDate": due_date,
            },
            status="draft",
        )

        return BehaviorResult.ok(
            {
                "invoiceId": invoice.id,
                "invoiceNumber": invoice.properties.get("invoiceNumber", number),
                "invoiceAmountCents": int(invoice.properties.get("amountCents", amount_cents)),
                "dueDate": invoice.properties.get("dueDate", due_date),
            },
            message=f"Invoice {number} generated",
        )


BILLING_BEHAVIOR_TYPES = {
    "employer-detection": EmployerDetectionBehavior,
    "generate-invoice": InvoiceGenerationBehavior,
}
