"""Fixtures partagées pour les tests des collaborateurs en mémoire."""

from decimal import Decimal

import pytest

from docflow_fr.config import EngineSettings
from docflow_fr.models.documents import Quote
from docflow_fr.models.lines import QuoteLine
from docflow_fr.ports.memory import MemoryDocumentStore


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def store(settings: EngineSettings) -> MemoryDocumentStore:
    return MemoryDocumentStore(settings)


@pytest.fixture
def quote() -> Quote:
    quote = Quote(
        company_id="ACME",
        vat_rate=Decimal("20"),
        lines=[QuoteLine(description="Installation chaudière", unit_price=Decimal("100.00"))],
    )
    quote.recalculate()
    return quote
