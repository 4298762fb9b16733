"""Fixtures partagées pour les tests de calcul des montants."""

from decimal import Decimal

import pytest

from docflow_fr.models.lines import QuoteLine


@pytest.fixture
def uniform_lines() -> list[QuoteLine]:
    """Lignes de devis au même taux de 20 %."""
    return [
        QuoteLine(description="Pose de cloison", quantity=3, unit_price=Decimal("33.33"), vat_rate=Decimal("20")),
        QuoteLine(description="Peinture", quantity=7, unit_price=Decimal("12.17"), vat_rate=Decimal("20")),
        QuoteLine(description="Déplacement", quantity=1, unit_price=Decimal("45.00"), vat_rate=Decimal("20")),
    ]


@pytest.fixture
def mixed_lines() -> list[QuoteLine]:
    """Lignes de devis à taux différents (20 % et 10 %)."""
    return [
        QuoteLine(description="Fourniture", quantity=2, unit_price=Decimal("100.00"), vat_rate=Decimal("20")),
        QuoteLine(description="Main d'oeuvre rénovation", quantity=1, unit_price=Decimal("50.00"), vat_rate=Decimal("10")),
    ]
