"""Fixtures partagées pour les tests des modèles de documents."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from docflow_fr.models.documents import Invoice, Quote
from docflow_fr.models.lines import InvoiceLine, QuoteLine

NOW = datetime(2026, 3, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
def quote() -> Quote:
    """Devis brouillon : 100,00 € HT à 20 % (mode global), valable jusqu'au 14/04/2026."""
    quote = Quote(
        company_id="ACME",
        vat_rate=Decimal("20"),
        use_per_line_vat=False,
        valid_until=date(2026, 4, 14),
        lines=[QuoteLine(description="Installation chaudière", unit_price=Decimal("100.00"))],
    )
    quote.recalculate()
    return quote


@pytest.fixture
def sent_quote(quote: Quote) -> Quote:
    quote.send("DEV-2026-001", timestamp=NOW)
    return quote


@pytest.fixture
def signed_quote(sent_quote: Quote) -> Quote:
    sent_quote.sign("M. Martin", timestamp=NOW)
    return sent_quote


@pytest.fixture
def invoice() -> Invoice:
    """Facture brouillon sans TVA : 120,00 €."""
    invoice = Invoice(
        company_id="ACME",
        vat_rate=Decimal("0"),
        use_per_line_vat=False,
        due_date=date(2026, 4, 15),
        lines=[InvoiceLine(description="Maintenance annuelle", unit_price=Decimal("120.00"))],
    )
    invoice.recalculate()
    return invoice


@pytest.fixture
def issued_invoice(invoice: Invoice) -> Invoice:
    invoice.issue("FACT-2026-001", timestamp=NOW)
    return invoice
