"""Machines à états des quatre documents commerciaux.

FR: Chaque type de document (devis, avenant, facture, avoir) possède un
    ensemble fermé de statuts, un graphe de transitions autorisées et des
    métadonnées d'affichage (libellé, couleur). Les statuts terminaux sont
    dérivés du graphe : un statut sans transition sortante est final.
    Un document est modifiable uniquement en brouillon ; tout autre statut,
    annulation comprise, est « émis » et donc figé.
EN: Each document type has a closed status set, an allowed-transition
    graph and display metadata. Terminal statuses are derived from the
    graph. A document is modifiable only in DRAFT; every other status,
    cancelled included, counts as emitted.
"""

from __future__ import annotations

from enum import StrEnum
from typing import NamedTuple

from docflow_fr.lifecycle.errors import TransitionNotAllowedError


class DocumentStatus(StrEnum):
    """Base commune des statuts de documents.

    FR: Fournit les prédicats partagés, calculés à partir du graphe de
        transitions du type concret.
    EN: Provides shared predicates computed from the concrete type's graph.
    """

    def allowed_transitions(self) -> list[DocumentStatus]:
        """Statuts cibles atteignables depuis ce statut."""
        return TRANSITIONS[type(self)].get(self, [])

    def can_transition_to(self, target: DocumentStatus) -> bool:
        """Vérifie si la transition vers le statut cible est autorisée."""
        return target in self.allowed_transitions()

    def is_modifiable(self) -> bool:
        """Seul un brouillon est modifiable / Only a draft is modifiable."""
        return self.name == "DRAFT"

    def is_emitted(self) -> bool:
        """Tout statut autre que brouillon est émis (annulé compris)."""
        return not self.is_modifiable()

    def is_final(self) -> bool:
        """Statut terminal : aucune transition sortante."""
        return not self.allowed_transitions()

    def is_cancelled(self) -> bool:
        return self.name == "CANCELLED"

    def can_be_cancelled(self) -> bool:
        return self.can_transition_to(type(self)["CANCELLED"])

    def can_be_deleted(self) -> bool:
        """Jamais : archivage légal de 10 ans / Never: 10-year legal archiving."""
        return False

    @property
    def label(self) -> str:
        return STATUS_METADATA[type(self)][self].label

    @property
    def color(self) -> str:
        return STATUS_METADATA[type(self)][self].color


class QuoteStatus(DocumentStatus):
    """Statut d'un devis / Quote status."""

    DRAFT = "draft"
    """Brouillon / Draft"""

    SENT = "sent"
    """Envoyé au client / Sent to the customer"""

    SIGNED = "signed"
    """Signé : engagement contractuel / Signed: contractual commitment"""

    REFUSED = "refused"
    """Refusé par le client / Refused by the customer"""

    EXPIRED = "expired"
    """Date de validité dépassée / Validity date passed"""

    CANCELLED = "cancelled"
    """Annulé / Cancelled"""

    def can_be_sent(self) -> bool:
        """Envoi initial ou renvoi d'un devis déjà envoyé ou signé."""
        return self in (QuoteStatus.DRAFT, QuoteStatus.SENT, QuoteStatus.SIGNED)

    def can_be_signed(self) -> bool:
        return self == QuoteStatus.SENT

    def can_be_refused(self) -> bool:
        return self == QuoteStatus.SENT

    def can_expire(self) -> bool:
        return self.can_transition_to(QuoteStatus.EXPIRED)

    def is_signed(self) -> bool:
        return self == QuoteStatus.SIGNED

    def is_contractual(self) -> bool:
        """Un devis signé engage les parties / A signed quote is binding."""
        return self == QuoteStatus.SIGNED

    def can_generate_invoice(self) -> bool:
        return self == QuoteStatus.SIGNED

    def can_receive_amendment(self) -> bool:
        return self == QuoteStatus.SIGNED


class AmendmentStatus(DocumentStatus):
    """Statut d'un avenant / Amendment status."""

    DRAFT = "draft"
    """Brouillon / Draft"""

    SENT = "sent"
    """Envoyé au client / Sent to the customer"""

    SIGNED = "signed"
    """Signé / Signed"""

    REJECTED = "rejected"
    """Rejeté par le client / Rejected by the customer"""

    CANCELLED = "cancelled"
    """Annulé / Cancelled"""

    def can_be_sent(self) -> bool:
        return self in (AmendmentStatus.DRAFT, AmendmentStatus.SENT, AmendmentStatus.SIGNED)

    def can_be_signed(self) -> bool:
        return self == AmendmentStatus.SENT

    def can_be_rejected(self) -> bool:
        return self == AmendmentStatus.SENT

    def is_signed(self) -> bool:
        return self == AmendmentStatus.SIGNED

    def is_contractual(self) -> bool:
        return self == AmendmentStatus.SIGNED


class InvoiceStatus(DocumentStatus):
    """Statut d'une facture / Invoice status."""

    DRAFT = "draft"
    """Brouillon / Draft"""

    ISSUED = "issued"
    """Émise (numérotée, figée) / Issued (numbered, frozen)"""

    SENT = "sent"
    """Envoyée au client / Sent to the customer"""

    PAID = "paid"
    """Payée / Paid"""

    OVERDUE = "overdue"
    """Échéance dépassée sans paiement / Past due"""

    CANCELLED = "cancelled"
    """Annulée (brouillon, ou émise intégralement créditée) / Cancelled"""

    def can_be_issued(self) -> bool:
        return self == InvoiceStatus.DRAFT

    def can_be_sent(self) -> bool:
        return self in (
            InvoiceStatus.DRAFT,
            InvoiceStatus.ISSUED,
            InvoiceStatus.SENT,
            InvoiceStatus.OVERDUE,
        )

    def can_be_marked_paid(self) -> bool:
        return self.can_transition_to(InvoiceStatus.PAID)

    def can_become_overdue(self) -> bool:
        return self.can_transition_to(InvoiceStatus.OVERDUE)

    def can_create_credit_note(self) -> bool:
        """Un avoir ne porte que sur une facture émise et non annulée."""
        return self.is_emitted() and self != InvoiceStatus.CANCELLED

    def is_paid(self) -> bool:
        return self == InvoiceStatus.PAID


class CreditNoteStatus(DocumentStatus):
    """Statut d'un avoir / Credit note status."""

    DRAFT = "draft"
    """Brouillon / Draft"""

    ISSUED = "issued"
    """Émis / Issued"""

    SENT = "sent"
    """Envoyé au client / Sent to the customer"""

    REFUNDED = "refunded"
    """Remboursé / Refunded"""

    CANCELLED = "cancelled"
    """Annulé / Cancelled"""

    def can_be_issued(self) -> bool:
        return self == CreditNoteStatus.DRAFT

    def can_be_sent(self) -> bool:
        return self in (CreditNoteStatus.ISSUED, CreditNoteStatus.SENT)

    def can_be_refunded(self) -> bool:
        return self.can_transition_to(CreditNoteStatus.REFUNDED)

    def counts_against_invoice(self) -> bool:
        """Un avoir émis et non annulé consomme le plafond de la facture."""
        return self.is_emitted() and self != CreditNoteStatus.CANCELLED


# ---------------------------------------------------------------------------
# Graphes de transitions autorisées
# ---------------------------------------------------------------------------

QUOTE_TRANSITIONS: dict[QuoteStatus, list[QuoteStatus]] = {
    QuoteStatus.DRAFT: [
        QuoteStatus.SENT,
        QuoteStatus.CANCELLED,
        QuoteStatus.EXPIRED,
    ],
    QuoteStatus.SENT: [
        QuoteStatus.SIGNED,
        QuoteStatus.REFUSED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    ],
    # Terminaux
    QuoteStatus.SIGNED: [],
    QuoteStatus.REFUSED: [],
    QuoteStatus.EXPIRED: [],
    QuoteStatus.CANCELLED: [],
}

AMENDMENT_TRANSITIONS: dict[AmendmentStatus, list[AmendmentStatus]] = {
    AmendmentStatus.DRAFT: [
        AmendmentStatus.SENT,
        AmendmentStatus.CANCELLED,
    ],
    AmendmentStatus.SENT: [
        AmendmentStatus.SIGNED,
        AmendmentStatus.REJECTED,
        AmendmentStatus.CANCELLED,
    ],
    # Terminaux
    AmendmentStatus.SIGNED: [],
    AmendmentStatus.REJECTED: [],
    AmendmentStatus.CANCELLED: [],
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: [
        InvoiceStatus.ISSUED,
        InvoiceStatus.SENT,
        InvoiceStatus.CANCELLED,
    ],
    # Annulation d'une facture émise : uniquement si intégralement créditée
    InvoiceStatus.ISSUED: [
        InvoiceStatus.SENT,
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.SENT: [
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.OVERDUE: [
        InvoiceStatus.PAID,
        InvoiceStatus.CANCELLED,
    ],
    # Terminaux
    InvoiceStatus.PAID: [],
    InvoiceStatus.CANCELLED: [],
}

CREDIT_NOTE_TRANSITIONS: dict[CreditNoteStatus, list[CreditNoteStatus]] = {
    CreditNoteStatus.DRAFT: [
        CreditNoteStatus.ISSUED,
        CreditNoteStatus.CANCELLED,
    ],
    CreditNoteStatus.ISSUED: [
        CreditNoteStatus.SENT,
        CreditNoteStatus.REFUNDED,
    ],
    CreditNoteStatus.SENT: [
        CreditNoteStatus.REFUNDED,
    ],
    # Terminaux
    CreditNoteStatus.REFUNDED: [],
    CreditNoteStatus.CANCELLED: [],
}

TRANSITIONS: dict[type[DocumentStatus], dict[DocumentStatus, list[DocumentStatus]]] = {
    QuoteStatus: QUOTE_TRANSITIONS,
    AmendmentStatus: AMENDMENT_TRANSITIONS,
    InvoiceStatus: INVOICE_TRANSITIONS,
    CreditNoteStatus: CREDIT_NOTE_TRANSITIONS,
}

# ---------------------------------------------------------------------------
# Métadonnées des statuts
# ---------------------------------------------------------------------------


class StatusInfo(NamedTuple):
    """Métadonnées d'affichage d'un statut."""

    label: str
    color: str


# Métadonnées indexées par type : les membres StrEnum de types différents
# partageant une valeur ("draft") sont égaux entre eux.
STATUS_METADATA: dict[type[DocumentStatus], dict[DocumentStatus, StatusInfo]] = {
    QuoteStatus: {
        QuoteStatus.DRAFT: StatusInfo("Brouillon", "secondary"),
        QuoteStatus.SENT: StatusInfo("Envoyé", "info"),
        QuoteStatus.SIGNED: StatusInfo("Signé", "primary"),
        QuoteStatus.REFUSED: StatusInfo("Refusé", "danger"),
        QuoteStatus.EXPIRED: StatusInfo("Expiré", "warning"),
        QuoteStatus.CANCELLED: StatusInfo("Annulé", "dark"),
    },
    AmendmentStatus: {
        AmendmentStatus.DRAFT: StatusInfo("Brouillon", "warning"),
        AmendmentStatus.SENT: StatusInfo("Envoyé", "info"),
        AmendmentStatus.SIGNED: StatusInfo("Signé", "success"),
        AmendmentStatus.REJECTED: StatusInfo("Rejeté", "danger"),
        AmendmentStatus.CANCELLED: StatusInfo("Annulé", "dark"),
    },
    InvoiceStatus: {
        InvoiceStatus.DRAFT: StatusInfo("Brouillon", "secondary"),
        InvoiceStatus.ISSUED: StatusInfo("Émise", "primary"),
        InvoiceStatus.SENT: StatusInfo("Envoyée", "info"),
        InvoiceStatus.PAID: StatusInfo("Payée", "success"),
        InvoiceStatus.OVERDUE: StatusInfo("En retard", "danger"),
        InvoiceStatus.CANCELLED: StatusInfo("Annulée", "dark"),
    },
    CreditNoteStatus: {
        CreditNoteStatus.DRAFT: StatusInfo("Brouillon", "secondary"),
        CreditNoteStatus.ISSUED: StatusInfo("Émis", "primary"),
        CreditNoteStatus.SENT: StatusInfo("Envoyé", "info"),
        CreditNoteStatus.REFUNDED: StatusInfo("Remboursé", "success"),
        CreditNoteStatus.CANCELLED: StatusInfo("Annulé", "dark"),
    },
}

# Statuts terminaux (aucune transition sortante), par type
TERMINAL_STATUSES: dict[type[DocumentStatus], frozenset[DocumentStatus]] = {
    status_type: frozenset(status for status, targets in graph.items() if not targets)
    for status_type, graph in TRANSITIONS.items()
}


def check_transition(current: DocumentStatus, target: DocumentStatus) -> None:
    """Lève une erreur si la transition n'est pas dans le graphe.

    Raises:
        TransitionNotAllowedError: Transition absente du graphe.
    """
    if type(current) is not type(target) or not current.can_transition_to(target):
        allowed = [s.value for s in current.allowed_transitions()]
        msg = (
            f"Transition non autorisée : {current.value} → {target.value}. "
            f"Transitions possibles : {allowed}"
        )
        raise TransitionNotAllowedError(msg)
