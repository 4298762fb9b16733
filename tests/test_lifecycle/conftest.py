"""Fixtures partagées pour les tests du cycle de vie."""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from docflow_fr.config import EngineSettings
from docflow_fr.lifecycle.workflow import DocumentWorkflow
from docflow_fr.models.documents import Invoice, Quote
from docflow_fr.models.lines import InvoiceLine, QuoteLine
from docflow_fr.ports.memory import (
    MemoryAuditSink,
    MemoryDeliveryGateway,
    MemoryDocumentStore,
    MemoryPriceCatalog,
    StaticCompanySettings,
)
from docflow_fr.ports.models import PriceEntry


class FrozenClock:
    """Horloge réglable pour les tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int) -> None:
        self.now += timedelta(days=days)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 15, 10, 0, tzinfo=UTC))


@pytest.fixture
def advance_clock(clock: FrozenClock) -> Callable[[int], None]:
    """Avance l'horloge d'un nombre de jours."""
    return clock.advance


@pytest.fixture
def store(settings: EngineSettings) -> MemoryDocumentStore:
    return MemoryDocumentStore(settings)


@pytest.fixture
def audit() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
def delivery() -> MemoryDeliveryGateway:
    return MemoryDeliveryGateway()


@pytest.fixture
def catalog() -> MemoryPriceCatalog:
    return MemoryPriceCatalog(
        [
            PriceEntry(id="POSE", label="Pose de parquet (m²)", unit_price=Decimal("35.00"), vat_rate=Decimal("10")),
            PriceEntry(id="DEPL", label="Déplacement", unit_price=Decimal("45.00")),
        ]
    )


@pytest.fixture
def workflow(
    store: MemoryDocumentStore,
    audit: MemoryAuditSink,
    delivery: MemoryDeliveryGateway,
    catalog: MemoryPriceCatalog,
    settings: EngineSettings,
    clock: FrozenClock,
) -> DocumentWorkflow:
    """Service de transitions branché sur les collaborateurs en mémoire."""
    return DocumentWorkflow(
        store,
        audit,
        delivery=delivery,
        catalog=catalog,
        company_settings=StaticCompanySettings(vat_rate=Decimal("20.00")),
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def draft_quote(workflow: DocumentWorkflow) -> Quote:
    """Devis brouillon : une ligne de 100,00 € HT à 20 % (mode global)."""
    return workflow.create_quote(
        "ACME",
        [QuoteLine(description="Installation chaudière", unit_price=Decimal("100.00"))],
    )


@pytest.fixture
def signed_quote(workflow: DocumentWorkflow, draft_quote: Quote) -> Quote:
    """Devis envoyé puis signé."""
    sent = workflow.send_quote(draft_quote)
    return workflow.sign_quote(sent, signature="M. Martin")


@pytest.fixture
def issued_invoice(workflow: DocumentWorkflow) -> Invoice:
    """Facture émise sans TVA : 120,00 € HT = 120,00 € TTC."""
    invoice = workflow.create_invoice(
        "ACME",
        [InvoiceLine(description="Maintenance annuelle", unit_price=Decimal("120.00"))],
        vat_rate=Decimal("0"),
        due_date=date(2026, 4, 15),
    )
    return workflow.issue_invoice(invoice)
