"""Tests des vues corrigées (devis après avenants, facture après avoirs)."""

from datetime import UTC, datetime
from decimal import Decimal

from docflow_fr.corrections import InvoiceCorrection, QuoteCorrection
from docflow_fr.lifecycle.statuses import AmendmentStatus
from docflow_fr.models.documents import Amendment, CreditNote, Invoice, Quote
from docflow_fr.models.lines import AmendmentLine, CreditNoteLine, InvoiceLine, QuoteLine


class TestQuoteCorrection:
    """Tests du devis corrigé."""

    def test_without_amendments(self, signed_quote: Quote) -> None:
        correction = QuoteCorrection(signed_quote, [])
        assert correction.total_corrected() == Decimal("120.00")
        assert correction.total_delta_ttc() == Decimal("0.00")
        assert correction.corrected_deposit() == signed_quote.deposit_amount()
        assert correction.corrected_balance() == signed_quote.balance_amount()

    def test_default_excludes_cancelled(self, signed_quote: Quote, amendments: list[Amendment]) -> None:
        correction = QuoteCorrection(signed_quote, amendments)
        assert [a.id for a in correction.included_amendments()] == [a.id for a in amendments[:2]]
        assert correction.total_delta_ht() == Decimal("90.00")
        assert correction.total_corrected_ht() == Decimal("190.00")
        # 120,00 - 12,00 + 120,00
        assert correction.total_corrected() == Decimal("228.00")

    def test_signed_only(self, signed_quote: Quote, amendments: list[Amendment]) -> None:
        correction = QuoteCorrection(signed_quote, amendments, statuses=[AmendmentStatus.SIGNED])
        assert correction.total_delta_ttc() == Decimal("-12.00")
        assert correction.total_corrected() == Decimal("108.00")

    def test_deposit_recomputed(self, signed_quote: Quote, amendments: list[Amendment]) -> None:
        correction = QuoteCorrection(signed_quote, amendments)
        assert correction.corrected_deposit() == Decimal("68.40")
        assert correction.corrected_balance() == Decimal("159.60")

    def test_corrected_line_values(self, signed_quote: Quote, amendments: list[Amendment]) -> None:
        correction = QuoteCorrection(signed_quote, amendments)
        assert correction.corrected_line_values() == {signed_quote.lines[0].id: Decimal("90.00")}

    def test_quote_untouched(self, signed_quote: Quote, amendments: list[Amendment]) -> None:
        QuoteCorrection(signed_quote, amendments).total_corrected()
        assert signed_quote.total_ttc == Decimal("120.00")
        assert signed_quote.lines[0].total_ht == Decimal("100.00")

    def test_foreign_amendment_ignored(self, signed_quote: Quote, amendments: list[Amendment]) -> None:
        other = Quote(
            company_id="ACME",
            vat_rate=Decimal("20"),
            lines=[QuoteLine(description="Autre chantier", unit_price=Decimal("10"))],
        )
        foreign = Amendment(company_id="ACME", quote=other)
        foreign.add_line(AmendmentLine(description="Option", unit_price=Decimal("500")))
        correction = QuoteCorrection(signed_quote, [*amendments, foreign])
        assert correction.total_corrected() == Decimal("228.00")

    def test_per_line_delta_rates(self) -> None:
        """Chaque delta est taxé au taux de sa ligne source (TVA par ligne)."""
        quote = Quote(
            company_id="ACME",
            vat_rate=Decimal("20"),
            use_per_line_vat=True,
            lines=[
                QuoteLine(description="Travaux", unit_price=Decimal("200.00"), vat_rate=Decimal("10")),
                QuoteLine(description="Équipement", unit_price=Decimal("100.00"), vat_rate=Decimal("20")),
            ],
        )
        quote.recalculate()
        quote.send("DEV-2026-002", timestamp=datetime(2026, 3, 15, tzinfo=UTC))
        quote.sign(timestamp=datetime(2026, 3, 15, tzinfo=UTC))
        assert quote.total_ttc == Decimal("340.00")

        amendment = Amendment(company_id="ACME", quote=quote)
        amendment.add_line(
            AmendmentLine(description="Travaux en plus", unit_price=Decimal("20.00"), source_line=quote.lines[0])
        )
        amendment.add_line(
            AmendmentLine(description="Remise équipement", unit_price=Decimal("-10.00"), source_line=quote.lines[1])
        )
        correction = QuoteCorrection(quote, [amendment])
        # +20 × 1,10 - 10 × 1,20
        assert correction.total_delta_ttc() == Decimal("10.00")
        assert correction.total_corrected() == Decimal("350.00")


class TestInvoiceCorrection:
    """Tests de la facture corrigée par ses avoirs."""

    def test_only_issued_notes_count(self, issued_invoice: Invoice, credit_notes: list[CreditNote]) -> None:
        correction = InvoiceCorrection(issued_invoice, credit_notes)
        assert correction.credited_ttc() == Decimal("50.00")
        assert correction.final_balance() == Decimal("70.00")
        assert correction.remaining_creditable() == Decimal("70.00")
        assert not correction.is_fully_credited()

    def test_fully_credited(self, issued_invoice: Invoice, credit_notes: list[CreditNote]) -> None:
        rest = CreditNote(
            company_id="ACME",
            invoice=issued_invoice,
            reason="Annulation",
            lines=[CreditNoteLine(description="Solde", unit_price=Decimal("70.00"))],
        )
        rest.recalculate()
        rest.issue(credit_notes, number="AV-2026-0002", timestamp=datetime(2026, 3, 16, tzinfo=UTC))
        correction = InvoiceCorrection(issued_invoice, [*credit_notes, rest])
        assert correction.final_balance() == Decimal("0.00")
        assert correction.remaining_creditable() == Decimal("0.00")
        assert correction.is_fully_credited()

    def test_foreign_note_ignored(self, issued_invoice: Invoice, credit_notes: list[CreditNote]) -> None:
        other = Invoice(
            company_id="ACME",
            vat_rate=Decimal("0"),
            lines=[InvoiceLine(description="Autre", unit_price=Decimal("500"))],
        )
        foreign = CreditNote(company_id="ACME", invoice=other, status="issued", total_ttc=Decimal("-500"))
        correction = InvoiceCorrection(issued_invoice, [*credit_notes, foreign])
        assert correction.credited_ttc() == Decimal("50.00")
