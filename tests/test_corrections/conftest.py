"""Fixtures partagées pour les tests des vues corrigées."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from docflow_fr.models.documents import Amendment, CreditNote, Invoice, Quote
from docflow_fr.models.lines import AmendmentLine, CreditNoteLine, InvoiceLine, QuoteLine

NOW = datetime(2026, 3, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
def signed_quote() -> Quote:
    """Devis signé : 100,00 € HT à 20 %, acompte 30 %."""
    quote = Quote(
        company_id="ACME",
        vat_rate=Decimal("20"),
        use_per_line_vat=False,
        lines=[QuoteLine(description="Installation chaudière", unit_price=Decimal("100.00"))],
    )
    quote.recalculate()
    quote.send("DEV-2026-001", timestamp=NOW)
    quote.sign("M. Martin", timestamp=NOW)
    return quote


@pytest.fixture
def amendments(signed_quote: Quote) -> list[Amendment]:
    """Trois avenants : signé (-10 HT), brouillon (+100 HT), annulé (+1000 HT)."""
    signed = Amendment(company_id="ACME", quote=signed_quote)
    signed.add_line(
        AmendmentLine(
            description="Remise installation",
            unit_price=Decimal("-10.00"),
            source_line=signed_quote.lines[0],
        )
    )
    signed.send("AMD-202603-001", timestamp=NOW)
    signed.sign("M. Martin", timestamp=NOW)

    draft = Amendment(company_id="ACME", quote=signed_quote)
    draft.add_line(AmendmentLine(description="Robinet thermostatique", unit_price=Decimal("50.00"), quantity=2))

    cancelled = Amendment(company_id="ACME", quote=signed_quote)
    cancelled.add_line(AmendmentLine(description="Pompe à chaleur", unit_price=Decimal("1000.00")))
    cancelled.cancel("Abandonné", timestamp=NOW)

    return [signed, draft, cancelled]


@pytest.fixture
def issued_invoice() -> Invoice:
    """Facture émise sans TVA : 120,00 €."""
    invoice = Invoice(
        company_id="ACME",
        vat_rate=Decimal("0"),
        use_per_line_vat=False,
        due_date=date(2026, 4, 15),
        lines=[InvoiceLine(description="Maintenance annuelle", unit_price=Decimal("120.00"))],
    )
    invoice.recalculate()
    invoice.issue("FACT-2026-001", timestamp=NOW)
    return invoice


@pytest.fixture
def credit_notes(issued_invoice: Invoice) -> list[CreditNote]:
    """Avoirs : émis (50,00 €), brouillon (30,00 €), annulé (20,00 €)."""
    notes = []
    for amount in ("50.00", "30.00", "20.00"):
        note = CreditNote(
            company_id="ACME",
            invoice=issued_invoice,
            reason="Geste commercial",
            lines=[CreditNoteLine(description="Remise", unit_price=Decimal(amount))],
        )
        note.recalculate()
        notes.append(note)
    notes[0].issue(number="AV-2026-0001", timestamp=NOW)
    notes[2].cancel("Doublon", timestamp=NOW)
    return notes
