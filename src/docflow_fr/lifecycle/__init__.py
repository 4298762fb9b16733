"""Cycle de vie des documents commerciaux.

FR: Machines à états des devis, avenants, factures et avoirs, et
    hiérarchie d'exceptions associée. Les gardes entre documents sont dans
    ``docflow_fr.lifecycle.guards`` et l'orchestration des transitions dans
    ``docflow_fr.lifecycle.workflow``.
EN: State machines for quotes, amendments, invoices and credit notes, and
    their exception hierarchy.
"""

from docflow_fr.lifecycle.errors import (
    CreditNoteCeilingExceededError,
    CrossDocumentViolationError,
    DocumentError,
    GuardViolationError,
    ImmutabilityError,
    InvalidAmountError,
    TransitionNotAllowedError,
)
from docflow_fr.lifecycle.statuses import (
    STATUS_METADATA,
    TERMINAL_STATUSES,
    TRANSITIONS,
    AmendmentStatus,
    CreditNoteStatus,
    DocumentStatus,
    InvoiceStatus,
    QuoteStatus,
    StatusInfo,
    check_transition,
)

__all__ = [
    "AmendmentStatus",
    "CreditNoteCeilingExceededError",
    "CreditNoteStatus",
    "CrossDocumentViolationError",
    "DocumentError",
    "DocumentStatus",
    "GuardViolationError",
    "ImmutabilityError",
    "InvalidAmountError",
    "InvoiceStatus",
    "QuoteStatus",
    "STATUS_METADATA",
    "StatusInfo",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "TransitionNotAllowedError",
    "check_transition",
]
