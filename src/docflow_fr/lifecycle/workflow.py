"""Orchestration des transitions de documents.

FR: Chaque opération s'exécute comme une unité : le document est copié,
    ses documents liés sont relus depuis le stockage, les gardes sont
    vérifiées, le numéro légal n'est attribué qu'à la première émission,
    puis le document est enregistré et une entrée d'audit unique est
    produite. En cas d'échec à n'importe quelle étape, le document fourni
    par l'appelant reste inchangé et l'exception est propagée.
EN: Each operation runs as a unit: the document is copied, related
    documents are reloaded from storage, guards run, the legal number is
    allocated on first emission only, then the document is saved and
    exactly one audit entry is recorded. On failure the caller's document
    is unchanged and the exception propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar

from docflow_fr.config import EngineSettings, get_settings
from docflow_fr.corrections.view import InvoiceCorrection, QuoteCorrection
from docflow_fr.lifecycle import guards
from docflow_fr.lifecycle.statuses import AmendmentStatus, check_transition
from docflow_fr.models.documents import Amendment, BaseDocument, CreditNote, Invoice, Quote
from docflow_fr.models.enums import AuditAction, DeliveryChannel
from docflow_fr.models.events import StatusChange
from docflow_fr.models.lines import (
    AmendmentLine,
    CreditNoteLine,
    DocumentLine,
    InvoiceLine,
    QuoteLine,
)
from docflow_fr.pricing.aggregation import Totals
from docflow_fr.pricing.delta import applicable_vat_rate
from docflow_fr.pricing.money import ZERO
from docflow_fr.ports.base import (
    AuditSink,
    CompanySettingsProvider,
    DeliveryGateway,
    DocumentStore,
    PriceCatalog,
)

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=BaseDocument)

LINE_TYPES: dict[type[BaseDocument], type[DocumentLine]] = {
    Quote: QuoteLine,
    Amendment: AmendmentLine,
    Invoice: InvoiceLine,
    CreditNote: CreditNoteLine,
}


def _totals_audit(totals: Totals) -> dict[str, str]:
    return {"total_ht": str(totals.ht), "total_vat": str(totals.vat), "total_ttc": str(totals.ttc)}


class DocumentWorkflow:
    """Service de transitions des devis, avenants, factures et avoirs.

    FR: Point d'entrée unique des opérations de cycle de vie. Les
        collaborateurs (stockage, audit, envoi, catalogue, paramètres
        d'entreprise) sont injectés ; ``clock`` fournit l'horodatage.
    EN: Single entry point for lifecycle operations. Collaborators are
        injected; ``clock`` provides timestamps.
    """

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditSink,
        delivery: DeliveryGateway | None = None,
        catalog: PriceCatalog | None = None,
        company_settings: CompanySettingsProvider | None = None,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.audit = audit
        self.delivery = delivery
        self.catalog = catalog
        self.company_settings = company_settings
        self.settings = settings or get_settings()
        self.clock = clock or (lambda: datetime.now(UTC))

    # --- Outils internes ---

    def _now(self) -> datetime:
        return self.clock()

    def _today(self) -> date:
        return self._now().date()

    def _working_copy(self, document: D) -> D:
        return document.model_copy(deep=True)

    def _refresh_links(self, document: BaseDocument) -> None:
        """Relit depuis le stockage les documents liés."""
        if isinstance(document, Amendment):
            document.quote = self.store.load(document.quote.id)  # type: ignore[assignment]
        elif isinstance(document, CreditNote):
            document.invoice = self.store.load(document.invoice.id)  # type: ignore[assignment]
        elif isinstance(document, Invoice) and document.quote is not None:
            document.quote = self.store.load(document.quote.id)  # type: ignore[assignment]

    def _allocate_number(self, document: BaseDocument) -> str | None:
        """Numéro légal, uniquement pour un document encore non numéroté."""
        if document.number is not None:
            return None
        return self.store.next_number(document.company_id, document.document_type, self._now())

    def _default_vat_rate(self, company_id: str) -> Decimal:
        if self.company_settings is not None:
            if not self.company_settings.vat_enabled(company_id):
                return ZERO
            return self.company_settings.default_vat_rate(company_id)
        if not self.settings.vat_enabled:
            return ZERO
        return self.settings.default_vat_rate

    def _deliver(self, document: BaseDocument, channel: DeliveryChannel | None) -> None:
        """Envoi effectif, après la transition ; enregistre l'accusé."""
        if self.delivery is None:
            return
        receipt = self.delivery.send(document, channel or self.settings.default_delivery_channel)
        document.sent_at = receipt.sent_at
        document.delivery_channel = receipt.channel_used

    def _commit(self, document: D, change: StatusChange) -> D:
        """Enregistre le document puis l'entrée d'audit de la transition."""
        self.store.save(document)
        old_value, new_value = change.audit_values()
        if change.reason:
            new_value["reason"] = change.reason
        self.audit.record(change.entity_type, change.entity_id, change.action, old_value, new_value)
        logger.info(
            "%s %s : %s (%s → %s)",
            change.entity_type.value,
            document.number or document.id,
            change.action.value,
            change.old_status,
            change.new_status,
        )
        return document

    def _create(self, document: D) -> D:
        document.recalculate()
        self.store.save(document)
        self.audit.record(
            document.document_type,
            document.id,
            AuditAction.CREATE,
            {},
            {"status": document.status.value, **_totals_audit(document.totals)},
        )
        logger.info("%s créé : %s", document.document_type.value, document.id)
        return document

    # --- Lignes et recalcul ---

    def recalculate(self, document: D) -> D:
        """Recalcule les totaux d'un brouillon ; audit si un total change."""
        working = self._working_copy(document)
        self._refresh_links(working)
        before, after = working.recalculate()
        self.store.save(working)
        if before != after:
            self.audit.record(
                working.document_type,
                working.id,
                AuditAction.RECALCULATE,
                _totals_audit(before),
                _totals_audit(after),
            )
            logger.info(
                "%s %s recalculé : TTC %s → %s",
                working.document_type.value,
                working.id,
                before.ttc,
                after.ttc,
            )
        return working

    def add_line(self, document: D, line: DocumentLine) -> D:
        """Ajoute une ligne à un brouillon et recalcule."""
        working = self._working_copy(document)
        self._refresh_links(working)
        before = working.totals
        working.add_line(line)
        self.store.save(working)
        if working.totals != before:
            self.audit.record(
                working.document_type,
                working.id,
                AuditAction.RECALCULATE,
                _totals_audit(before),
                _totals_audit(working.totals),
            )
        return working

    def add_catalog_line(self, document: D, entry_id: str, quantity: int = 1, **kwargs: Any) -> D:
        """Ajoute une ligne pré-remplie depuis le catalogue de prix."""
        if self.catalog is None:
            msg = "Aucun catalogue de prix configuré."
            raise RuntimeError(msg)
        entry = self.catalog.price_entry(entry_id)
        line = LINE_TYPES[type(document)].from_price_entry(entry, quantity, **kwargs)
        return self.add_line(document, line)

    # --- Devis ---

    def create_quote(
        self,
        company_id: str,
        lines: Iterable[QuoteLine] = (),
        *,
        vat_rate: Decimal | None = None,
        use_per_line_vat: bool = False,
        valid_until: date | None = None,
        deposit_percentage: Decimal | None = None,
        **kwargs: Any,
    ) -> Quote:
        """Crée un devis brouillon avec les valeurs par défaut de l'entreprise."""
        quote = Quote(
            company_id=company_id,
            lines=list(lines),
            vat_rate=vat_rate if vat_rate is not None else self._default_vat_rate(company_id),
            use_per_line_vat=use_per_line_vat,
            valid_until=valid_until
            or self._today() + timedelta(days=self.settings.quote_validity_days),
            deposit_percentage=(
                deposit_percentage
                if deposit_percentage is not None
                else self.settings.default_deposit_percentage
            ),
            created_at=self._now(),
            **kwargs,
        )
        return self._create(quote)

    def send_quote(self, quote: Quote, channel: DeliveryChannel | None = None) -> Quote:
        """Envoie (numérotation à la première émission) ou renvoie un devis."""
        working = self._working_copy(quote)
        number = None
        if working.status.is_modifiable():
            working.validate_can_be_sent()
            number = self._allocate_number(working)
        change = working.send(number, channel=channel, timestamp=self._now())
        self._deliver(working, channel)
        return self._commit(working, change)

    def sign_quote(self, quote: Quote, signature: str | None = None) -> Quote:
        working = self._working_copy(quote)
        change = working.sign(signature, timestamp=self._now())
        return self._commit(working, change)

    def refuse_quote(self, quote: Quote, reason: str | None = None) -> Quote:
        working = self._working_copy(quote)
        change = working.refuse(reason, timestamp=self._now())
        return self._commit(working, change)

    def cancel_quote(self, quote: Quote, reason: str | None = None) -> Quote:
        working = self._working_copy(quote)
        change = working.cancel(reason, timestamp=self._now())
        return self._commit(working, change)

    def expire_quote_if_needed(self, quote: Quote) -> Quote | None:
        """Passe le devis en EXPIRED si sa validité est dépassée, sinon ne fait rien."""
        if not quote.status.can_expire() or not quote.is_expired(self._today()):
            return None
        working = self._working_copy(quote)
        change = working.expire(timestamp=self._now())
        return self._commit(working, change)

    def correction_for_quote(
        self,
        quote: Quote,
        statuses: Iterable[AmendmentStatus] | None = None,
    ) -> QuoteCorrection:
        """Vue corrigée du devis à partir des avenants stockés."""
        stored = self.store.load(quote.id)
        return QuoteCorrection(stored, self.store.amendments_for_quote(quote.id), statuses)  # type: ignore[arg-type]

    # --- Avenants ---

    def create_amendment(
        self,
        quote: Quote,
        lines: Iterable[AmendmentLine] = (),
        *,
        reason: str | None = None,
        vat_rate: Decimal | None = None,
        **kwargs: Any,
    ) -> Amendment:
        """Crée un avenant brouillon sur un devis signé.

        Raises:
            CrossDocumentViolationError: Devis non signé ou ligne source
                étrangère au devis.
        """
        stored_quote: Quote = self.store.load(quote.id)  # type: ignore[assignment]
        guards.ensure_quote_accepts_amendment(stored_quote)
        lines = list(lines)
        for line in lines:
            guards.ensure_source_line_belongs(line, stored_quote)
        amendment = Amendment(
            company_id=stored_quote.company_id,
            quote=stored_quote,
            lines=lines,
            reason=reason,
            vat_rate=vat_rate,
            created_at=self._now(),
            **kwargs,
        )
        return self._create(amendment)

    def send_amendment(self, amendment: Amendment, channel: DeliveryChannel | None = None) -> Amendment:
        working = self._working_copy(amendment)
        self._refresh_links(working)
        number = None
        if working.status.is_modifiable():
            working.validate_can_be_sent()
            number = self._allocate_number(working)
        change = working.send(number, channel=channel, timestamp=self._now())
        self._deliver(working, channel)
        return self._commit(working, change)

    def sign_amendment(self, amendment: Amendment, signature: str | None = None) -> Amendment:
        """Signature de l'avenant, contrôlée contre l'état actuel du devis."""
        working = self._working_copy(amendment)
        self._refresh_links(working)
        change = working.sign(signature, timestamp=self._now())
        return self._commit(working, change)

    def reject_amendment(self, amendment: Amendment, reason: str | None = None) -> Amendment:
        working = self._working_copy(amendment)
        change = working.reject(reason, timestamp=self._now())
        return self._commit(working, change)

    def cancel_amendment(self, amendment: Amendment, reason: str | None = None) -> Amendment:
        working = self._working_copy(amendment)
        change = working.cancel(reason, timestamp=self._now())
        return self._commit(working, change)

    # --- Factures ---

    def _invoice_lines_from_quote(self, correction: QuoteCorrection) -> list[InvoiceLine]:
        """Lignes du devis corrigées par les avenants retenus, puis les ajouts."""
        quote = correction.quote
        corrected = correction.corrected_line_values()
        lines: list[InvoiceLine] = []
        for quote_line in quote.lines:
            value = corrected[quote_line.id]
            if value == quote_line.total_ht:
                lines.append(
                    InvoiceLine(
                        description=quote_line.description,
                        quantity=quote_line.quantity,
                        unit_price=quote_line.unit_price,
                        vat_rate=quote_line.vat_rate,
                        price_entry_id=quote_line.price_entry_id,
                    )
                )
            elif value > ZERO:
                # Ligne modifiée : une unité à la valeur corrigée
                lines.append(
                    InvoiceLine(
                        description=quote_line.description,
                        quantity=1,
                        unit_price=value,
                        vat_rate=quote_line.vat_rate,
                        price_entry_id=quote_line.price_entry_id,
                    )
                )
        for amendment in correction.included_amendments():
            for line in amendment.lines:
                if line.is_addition():
                    lines.append(
                        InvoiceLine(
                            description=line.description,
                            quantity=line.quantity,
                            unit_price=line.unit_price,
                            vat_rate=applicable_vat_rate(line, quote, amendment.vat_rate),
                            price_entry_id=line.price_entry_id,
                        )
                    )
        return lines

    def create_invoice_from_quote(
        self,
        quote: Quote,
        *,
        due_date: date | None = None,
        deduct_deposit: bool = False,
        **kwargs: Any,
    ) -> Invoice:
        """Génère la facture d'un devis signé, avenants signés inclus.

        Raises:
            CrossDocumentViolationError: Devis non signé ou déjà facturé.
        """
        stored_quote: Quote = self.store.load(quote.id)  # type: ignore[assignment]
        guards.ensure_quote_can_be_invoiced(stored_quote, self.store.invoice_for_quote(quote.id))
        correction = QuoteCorrection(
            stored_quote,
            self.store.amendments_for_quote(quote.id),
            statuses=[AmendmentStatus.SIGNED],
        )
        invoice = Invoice(
            company_id=stored_quote.company_id,
            quote=stored_quote,
            lines=self._invoice_lines_from_quote(correction),
            vat_rate=stored_quote.vat_rate,
            due_date=due_date or self._today() + timedelta(days=self.settings.payment_delay_days),
            deposit_amount=correction.corrected_deposit() if deduct_deposit else ZERO,
            created_at=self._now(),
            **kwargs,
        )
        return self._create(invoice)

    def create_invoice(
        self,
        company_id: str,
        lines: Iterable[InvoiceLine] = (),
        *,
        vat_rate: Decimal | None = None,
        use_per_line_vat: bool = False,
        due_date: date | None = None,
        **kwargs: Any,
    ) -> Invoice:
        """Crée une facture brouillon sans devis."""
        invoice = Invoice(
            company_id=company_id,
            lines=list(lines),
            vat_rate=vat_rate if vat_rate is not None else self._default_vat_rate(company_id),
            use_per_line_vat=use_per_line_vat,
            due_date=due_date or self._today() + timedelta(days=self.settings.payment_delay_days),
            created_at=self._now(),
            **kwargs,
        )
        return self._create(invoice)

    def issue_invoice(self, invoice: Invoice) -> Invoice:
        working = self._working_copy(invoice)
        self._refresh_links(working)
        check_transition(working.status, type(working.status).ISSUED)
        working.validate_can_be_issued()
        number = self._allocate_number(working)
        change = working.issue(number, timestamp=self._now())
        return self._commit(working, change)

    def send_invoice(self, invoice: Invoice, channel: DeliveryChannel | None = None) -> Invoice:
        working = self._working_copy(invoice)
        self._refresh_links(working)
        number = None
        if working.status.is_modifiable():
            working.validate_can_be_issued()
            number = self._allocate_number(working)
        change = working.send(number, channel=channel, timestamp=self._now())
        self._deliver(working, channel)
        return self._commit(working, change)

    def mark_invoice_paid(self, invoice: Invoice, amount: Decimal | None = None) -> Invoice:
        working = self._working_copy(invoice)
        change = working.mark_paid(amount, timestamp=self._now())
        return self._commit(working, change)

    def mark_invoice_overdue_if_needed(self, invoice: Invoice) -> Invoice | None:
        """Passe la facture en OVERDUE si l'échéance est dépassée, sinon ne fait rien."""
        if not invoice.is_overdue(self._today()):
            return None
        working = self._working_copy(invoice)
        change = working.mark_overdue(timestamp=self._now())
        return self._commit(working, change)

    def cancel_invoice(self, invoice: Invoice, reason: str | None = None) -> Invoice:
        """Annule un brouillon, ou une facture émise intégralement créditée."""
        working = self._working_copy(invoice)
        change = working.cancel(
            reason,
            credit_notes=self.store.credit_notes_for_invoice(working.id),
            timestamp=self._now(),
        )
        return self._commit(working, change)

    def invoice_correction(self, invoice: Invoice) -> InvoiceCorrection:
        """Solde de la facture après avoirs stockés."""
        return InvoiceCorrection(invoice, self.store.credit_notes_for_invoice(invoice.id))

    # --- Avoirs ---

    def create_credit_note(
        self,
        invoice: Invoice,
        lines: Iterable[CreditNoteLine] = (),
        *,
        reason: str = "",
        **kwargs: Any,
    ) -> CreditNote:
        """Crée un avoir brouillon sur une facture émise et non annulée.

        Raises:
            CrossDocumentViolationError: Facture non émise ou annulée.
        """
        stored_invoice: Invoice = self.store.load(invoice.id)  # type: ignore[assignment]
        guards.ensure_invoice_accepts_credit_note(stored_invoice)
        lines = list(lines)
        for line in lines:
            guards.ensure_source_line_belongs(line, stored_invoice)
        credit_note = CreditNote(
            company_id=stored_invoice.company_id,
            invoice=stored_invoice,
            lines=lines,
            reason=reason,
            created_at=self._now(),
            **kwargs,
        )
        return self._create(credit_note)

    def issue_credit_note(self, credit_note: CreditNote) -> CreditNote:
        """Émission de l'avoir, contrôlée contre les avoirs déjà émis."""
        working = self._working_copy(credit_note)
        self._refresh_links(working)
        siblings = self.store.credit_notes_for_invoice(working.invoice.id)
        check_transition(working.status, type(working.status).ISSUED)
        guards.ensure_credit_note_can_be_issued(working, siblings)
        number = self._allocate_number(working)
        change = working.issue(siblings, number, timestamp=self._now())
        return self._commit(working, change)

    def send_credit_note(
        self,
        credit_note: CreditNote,
        channel: DeliveryChannel | None = None,
    ) -> CreditNote:
        working = self._working_copy(credit_note)
        change = working.send(channel=channel, timestamp=self._now())
        self._deliver(working, channel)
        return self._commit(working, change)

    def refund_credit_note(self, credit_note: CreditNote) -> CreditNote:
        working = self._working_copy(credit_note)
        change = working.refund(timestamp=self._now())
        return self._commit(working, change)

    def cancel_credit_note(self, credit_note: CreditNote, reason: str | None = None) -> CreditNote:
        working = self._working_copy(credit_note)
        change = working.cancel(reason, timestamp=self._now())
        return self._commit(working, change)
