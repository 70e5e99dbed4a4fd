"""Constants and enums for the workflow behavior engine."""

from enum import Enum


class WorkflowStatus(str, Enum):
    """Workflow lifecycle status. Only active workflows answer triggers."""

    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class RunStatus(str, Enum):
    """Status of one Run Report entry."""

    SUCCESS = "success"
    ERROR = "error"


class PlanTier(str, Enum):
    """Licensing tiers a tenant can be on."""

    FREE = "free"
    PRO = "pro"
    AGENCY = "agency"
    ENTERPRISE = "enterprise"


class BillingMethod(str, Enum):
    """How a registration is paid for."""

    CUSTOMER_PAYMENT = "customer_payment"
    EMPLOYER_INVOICE = "employer_invoice"


class ObjectType(str, Enum):
    """Domain object types kept in the tenant object store."""

    PRODUCT = "product"
    EVENT = "event"
    CRM_CONTACT = "crm_contact"
    CRM_ORGANIZATION = "crm_organization"
    TRANSACTION = "transaction"
    TICKET = "ticket"
    INVOICE = "invoice"


# Context keys the trigger endpoint copies into its response envelope
TRIGGER_RESPONSE_KEYS = ("transactionId", "ticketId", "invoiceId")

# Marker embedded in every id or number synthesized during a dry run
DRY_RUN_MARKER = "dryrun"
