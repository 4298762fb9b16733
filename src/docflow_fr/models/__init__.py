"""Modèles Pydantic des documents commerciaux et de leurs lignes."""

from docflow_fr.models.documents import (
    Amendment,
    BaseDocument,
    CreditNote,
    Invoice,
    Quote,
)
from docflow_fr.models.enums import AuditAction, DeliveryChannel, DocumentType
from docflow_fr.models.events import StatusChange
from docflow_fr.models.lines import (
    AmendmentLine,
    CreditNoteLine,
    DocumentLine,
    InvoiceLine,
    QuoteLine,
)

__all__ = [
    "Amendment",
    "AmendmentLine",
    "AuditAction",
    "BaseDocument",
    "CreditNote",
    "CreditNoteLine",
    "DeliveryChannel",
    "DocumentLine",
    "DocumentType",
    "Invoice",
    "InvoiceLine",
    "Quote",
    "QuoteLine",
    "StatusChange",
]
