"""Gardes entre documents.

FR: Contrôles portant sur plusieurs documents à la fois : un avenant exige
    un devis signé, un avoir exige une facture émise et non annulée et ne
    peut porter le cumul des avoirs au-delà du TTC de la facture, une
    facture ne peut être générée qu'une fois par devis signé.
    Les fonctions ``validate_*`` retournent la liste des erreurs ; les
    fonctions ``ensure_*`` lèvent une exception si elle n'est pas vide.
EN: Checks spanning several documents. ``validate_*`` functions return
    the list of errors; ``ensure_*`` functions raise when it is not empty.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from docflow_fr.lifecycle.errors import (
    CreditNoteCeilingExceededError,
    CrossDocumentViolationError,
    GuardViolationError,
)
from docflow_fr.lifecycle.statuses import QuoteStatus
from docflow_fr.pricing.money import ZERO

if TYPE_CHECKING:
    from docflow_fr.models.documents import Amendment, CreditNote, Invoice, Quote
    from docflow_fr.models.lines import AmendmentLine, CreditNoteLine

logger = logging.getLogger(__name__)


def _raise(error_type: type[GuardViolationError], message: str, errors: list[str]) -> None:
    logger.warning("%s : %s", message, "; ".join(errors))
    raise error_type(f"{message} : {'; '.join(errors)}", reasons=errors)


# ---------------------------------------------------------------------------
# Avenants
# ---------------------------------------------------------------------------


def validate_quote_accepts_amendment(quote: Quote) -> list[str]:
    """Un avenant ne peut être rattaché qu'à un devis signé."""
    if quote.status != QuoteStatus.SIGNED:
        return [
            f"Le devis {quote.number or quote.id} doit être signé pour recevoir un avenant "
            f"(statut actuel : {quote.status.label})."
        ]
    return []


def ensure_quote_accepts_amendment(quote: Quote) -> None:
    errors = validate_quote_accepts_amendment(quote)
    if errors:
        _raise(CrossDocumentViolationError, "Création d'avenant refusée", errors)


def ensure_source_line_belongs(
    line: AmendmentLine | CreditNoteLine,
    document: Quote | Invoice,
) -> None:
    """La ligne source (devis amendé, facture créditée) doit appartenir au document lié."""
    if line.source_line is None:
        return
    if all(candidate.id != line.source_line.id for candidate in document.lines):
        _raise(
            CrossDocumentViolationError,
            "Ligne refusée",
            [
                f"La ligne source {line.source_line.id} n'appartient pas au document "
                f"{document.number or document.id}."
            ],
        )


def validate_amendment_quote_for_signature(
    amendment: Amendment,
    today: date | None = None,
) -> list[str]:
    """Le devis d'un avenant doit être signé et sa validité non dépassée."""
    quote = amendment.quote
    errors: list[str] = []
    if quote.status != QuoteStatus.SIGNED:
        errors.append(
            f"Le devis {quote.number or quote.id} n'est pas signé "
            f"(statut actuel : {quote.status.label})."
        )
    if quote.is_expired(today):
        errors.append(f"Le devis {quote.number or quote.id} a expiré le {quote.valid_until}.")
    return errors


# ---------------------------------------------------------------------------
# Avoirs
# ---------------------------------------------------------------------------


def validate_invoice_accepts_credit_note(invoice: Invoice) -> list[str]:
    """Un avoir ne porte que sur une facture émise et non annulée."""
    if not invoice.status.can_create_credit_note():
        return [
            f"La facture {invoice.number or invoice.id} doit être émise et non annulée "
            f"(statut actuel : {invoice.status.label})."
        ]
    return []


def ensure_invoice_accepts_credit_note(invoice: Invoice) -> None:
    errors = validate_invoice_accepts_credit_note(invoice)
    if errors:
        _raise(CrossDocumentViolationError, "Création d'avoir refusée", errors)


def credited_total(credit_notes: Iterable[CreditNote], exclude_id: str | None = None) -> Decimal:
    """Cumul des TTC (en valeur absolue) des avoirs émis et non annulés.

    Args:
        credit_notes: Avoirs de la facture.
        exclude_id: Avoir à exclure (celui en cours d'émission).
    """
    return sum(
        (
            abs(note.total_ttc)
            for note in credit_notes
            if note.id != exclude_id and note.status.counts_against_invoice()
        ),
        ZERO,
    )


def validate_credit_note_issue(credit_note: CreditNote) -> list[str]:
    """Contrôles propres à l'avoir : lignes, montant non nul, motif.

    FR: Les montants sont recalculés depuis les lignes, jamais lus dans les
        totaux stockés d'un brouillon.
    EN: Amounts are recomputed from the lines, never read from a draft's
        stored totals.
    """
    errors: list[str] = []
    if not credit_note.lines:
        errors.append("L'avoir doit comporter au moins une ligne.")
    if credit_note.compute_totals().ht == ZERO:
        errors.append("Le montant HT de l'avoir ne peut pas être nul.")
    if not credit_note.reason or not credit_note.reason.strip():
        errors.append("Le motif de l'avoir est obligatoire.")
    return errors


def ensure_credit_note_can_be_issued(
    credit_note: CreditNote,
    siblings: Iterable[CreditNote],
) -> None:
    """Vérifie qu'un avoir peut être émis.

    FR: La facture doit être émise et non annulée, l'avoir complet, et le
        cumul des avoirs émis (hors celui-ci) augmenté de son TTC ne doit
        pas dépasser le TTC de la facture.
    EN: The invoice must be emitted and not cancelled, the credit note
        complete, and the credited total must stay within the invoice TTC.

    Raises:
        CrossDocumentViolationError: Facture dans un état incompatible.
        GuardViolationError: Avoir incomplet.
        CreditNoteCeilingExceededError: Plafond dépassé.
    """
    invoice = credit_note.invoice
    errors = validate_invoice_accepts_credit_note(invoice)
    if errors:
        _raise(CrossDocumentViolationError, "Émission d'avoir refusée", errors)

    errors = validate_credit_note_issue(credit_note)
    if errors:
        _raise(GuardViolationError, "Émission d'avoir refusée", errors)

    already_credited = credited_total(siblings, exclude_id=credit_note.id)
    requested = abs(credit_note.compute_totals().ttc)
    if already_credited + requested > invoice.total_ttc:
        _raise(
            CreditNoteCeilingExceededError,
            "Émission d'avoir refusée",
            [
                f"Cumul des avoirs ({already_credited} + {requested}) supérieur au "
                f"TTC de la facture {invoice.number or invoice.id} ({invoice.total_ttc})."
            ],
        )


# ---------------------------------------------------------------------------
# Factures
# ---------------------------------------------------------------------------


def validate_quote_for_invoice(quote: Quote, existing_invoice: Invoice | None) -> list[str]:
    """Une facture ne se crée que depuis un devis signé, une seule fois."""
    errors: list[str] = []
    if not quote.status.can_generate_invoice():
        errors.append(
            f"Le devis {quote.number or quote.id} doit être signé pour être facturé "
            f"(statut actuel : {quote.status.label})."
        )
    if existing_invoice is not None:
        errors.append(
            f"Le devis {quote.number or quote.id} est déjà facturé "
            f"(facture {existing_invoice.number or existing_invoice.id})."
        )
    return errors


def ensure_quote_can_be_invoiced(quote: Quote, existing_invoice: Invoice | None) -> None:
    errors = validate_quote_for_invoice(quote, existing_invoice)
    if errors:
        _raise(CrossDocumentViolationError, "Création de facture refusée", errors)


def ensure_invoice_fully_credited(invoice: Invoice, credit_notes: Iterable[CreditNote]) -> None:
    """Une facture émise ne s'annule que par un ou des avoirs couvrant tout son TTC."""
    credited = credited_total(credit_notes)
    if credited < invoice.total_ttc:
        _raise(
            CrossDocumentViolationError,
            "Annulation de facture refusée",
            [
                f"La facture {invoice.number or invoice.id} n'est créditée qu'à hauteur "
                f"de {credited} sur {invoice.total_ttc} : émettre un avoir total."
            ],
        )
