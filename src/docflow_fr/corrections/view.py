"""Vues corrigées calculées, jamais stockées.

FR: ``QuoteCorrection`` lit un devis signé à travers ses avenants : le
    devis n'est jamais réécrit, son total corrigé est la somme du TTC
    d'origine et des deltas TTC des avenants. Chaque grandeur dérivée
    (acompte, solde) repart du total recalculé, sans réutiliser une valeur
    déjà arrondie.
    ``InvoiceCorrection`` fait de même pour une facture et ses avoirs.
EN: ``QuoteCorrection`` reads a signed quote through its amendments; every
    derived figure starts again from the recomputed total.
    ``InvoiceCorrection`` does the same for an invoice and its credit notes.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from docflow_fr.lifecycle.guards import credited_total
from docflow_fr.lifecycle.statuses import AmendmentStatus
from docflow_fr.models.documents import Amendment, CreditNote, Invoice, Quote
from docflow_fr.pricing.delta import delta_ttc
from docflow_fr.pricing.money import ZERO, percentage_of, round_money


class QuoteCorrection:
    """Devis corrigé par ses avenants.

    FR: Par défaut, tous les avenants non annulés sont pris en compte,
        brouillons et envoyés compris (aperçu des changements en cours).
        ``statuses`` restreint la sélection, par exemple aux avenants
        signés pour la facturation.
    EN: By default every non-cancelled amendment is included, drafts and
        sent ones too. ``statuses`` narrows the selection, e.g. to signed
        amendments for invoicing.
    """

    def __init__(
        self,
        quote: Quote,
        amendments: Iterable[Amendment],
        statuses: Iterable[AmendmentStatus] | None = None,
    ) -> None:
        self.quote = quote
        self.amendments = [a for a in amendments if a.quote.id == quote.id]
        self.statuses = frozenset(statuses) if statuses is not None else None

    def included_amendments(self) -> list[Amendment]:
        """Avenants retenus dans la correction."""
        if self.statuses is None:
            return [a for a in self.amendments if a.status != AmendmentStatus.CANCELLED]
        return [a for a in self.amendments if a.status in self.statuses]

    def _raw_delta_ttc(self) -> Decimal:
        return sum(
            (
                delta_ttc(line, self.quote, amendment.vat_rate)
                for amendment in self.included_amendments()
                for line in amendment.lines
            ),
            ZERO,
        )

    def total_delta_ht(self) -> Decimal:
        return round_money(
            sum(
                (line.delta for amendment in self.included_amendments() for line in amendment.lines),
                ZERO,
            )
        )

    def total_delta_ttc(self) -> Decimal:
        return round_money(self._raw_delta_ttc())

    def total_corrected_ht(self) -> Decimal:
        return round_money(self.quote.total_ht + self.total_delta_ht())

    def total_corrected(self) -> Decimal:
        """TTC corrigé : TTC du devis + deltas TTC, arrondi une seule fois."""
        return round_money(self.quote.total_ttc + self._raw_delta_ttc())

    def corrected_deposit(self) -> Decimal:
        """Acompte recalculé depuis le total corrigé."""
        return percentage_of(self.total_corrected(), self.quote.deposit_percentage)

    def corrected_balance(self) -> Decimal:
        """Solde recalculé : total corrigé moins acompte corrigé."""
        return round_money(self.total_corrected() - self.corrected_deposit())

    def corrected_line_values(self) -> dict[str, Decimal]:
        """HT corrigé de chaque ligne du devis modifiée par un avenant."""
        values = {line.id: line.total_ht for line in self.quote.lines}
        for amendment in self.included_amendments():
            for line in amendment.lines:
                if line.source_line is not None and line.source_line.id in values:
                    values[line.source_line.id] += line.delta
        return values


class InvoiceCorrection:
    """Facture corrigée par ses avoirs / Invoice corrected by credit notes."""

    def __init__(self, invoice: Invoice, credit_notes: Iterable[CreditNote]) -> None:
        self.invoice = invoice
        self.credit_notes = [n for n in credit_notes if n.invoice.id == invoice.id]

    def credited_ttc(self) -> Decimal:
        """Cumul TTC des avoirs émis et non annulés (en positif)."""
        return credited_total(self.credit_notes)

    def final_balance(self) -> Decimal:
        """TTC de la facture après avoirs."""
        return self.invoice.final_balance(self.credit_notes)

    def remaining_creditable(self) -> Decimal:
        """Montant TTC encore créditable / TTC still available for credit notes."""
        return max(self.invoice.total_ttc - self.credited_ttc(), ZERO)

    def is_fully_credited(self) -> bool:
        return self.credited_ttc() >= self.invoice.total_ttc
