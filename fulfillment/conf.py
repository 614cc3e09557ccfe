"""
Engine settings, read from ``settings.FULFILLMENT`` with defaults.
"""
from django.conf import settings

DEFAULTS = {
    # Attempts at a free ORD-/INV- number before giving up.
    "NUMBER_MAX_ATTEMPTS": 5,
    # Default payment term for invoices created without a due date.
    "INVOICE_DUE_DAYS": 30,
    "OUTBOX_BATCH_SIZE": 100,
    # Outbox events failing this many times are left for an operator.
    "OUTBOX_MAX_RETRIES": 5,
}


def get_setting(name: str):
    overrides = getattr(settings, "FULFILLMENT", {})
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
