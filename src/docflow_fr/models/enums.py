"""Énumérations du moteur documentaire.

FR: Types de documents, canaux d'envoi et actions d'audit. Les statuts de
    cycle de vie sont définis avec leur graphe de transitions dans
    ``docflow_fr.lifecycle.statuses``.
EN: Document types, delivery channels and audit actions. Lifecycle
    statuses live next to their transition graph.
"""

from enum import StrEnum


class DocumentType(StrEnum):
    """Type de document commercial / Commercial document type."""

    QUOTE = "quote"
    """Devis / Quote"""

    AMENDMENT = "amendment"
    """Avenant au devis / Quote amendment"""

    INVOICE = "invoice"
    """Facture / Invoice"""

    CREDIT_NOTE = "credit_note"
    """Avoir / Credit note"""


class DeliveryChannel(StrEnum):
    """Canal d'envoi d'un document / Delivery channel."""

    EMAIL = "email"
    """Courriel / E-mail"""

    POSTAL = "postal"
    """Courrier postal / Postal mail"""

    HAND = "hand"
    """Remise en main propre / Hand delivery"""

    PLATFORM = "platform"
    """Plateforme de dématérialisation / E-invoicing platform"""


class AuditAction(StrEnum):
    """Action enregistrée dans le journal d'audit.

    FR: Une entrée par transition validée (et par recalcul modifiant les
        totaux d'un brouillon).
    EN: One entry per committed transition (and per total-changing
        recalculation of a draft).
    """

    CREATE = "create"
    RECALCULATE = "recalculate"
    SEND = "send"
    RESEND = "resend"
    ISSUE = "issue"
    SIGN = "sign"
    REFUSE = "refuse"
    REJECT = "reject"
    EXPIRE = "expire"
    CANCEL = "cancel"
    MARK_PAID = "mark_paid"
    MARK_OVERDUE = "mark_overdue"
    REFUND = "refund"
