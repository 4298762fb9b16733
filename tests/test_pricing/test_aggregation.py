"""Tests de l'agrégation des totaux HT/TVA/TTC.

FR: Vérifie les deux modes de TVA, leur équivalence à taux uniforme,
    les récapitulatifs par taux et la détection du mode.
EN: Verifies both VAT modes, their equivalence at a uniform rate, tax
    summaries and mode detection.
"""

from decimal import Decimal

import pytest

from docflow_fr.models.lines import QuoteLine
from docflow_fr.pricing.aggregation import (
    Totals,
    VatMode,
    aggregate,
    detect_vat_mode,
    tax_breakdown,
)
from docflow_fr.pricing.money import ZERO


class TestAggregate:
    """Tests du calcul des totaux."""

    def test_empty_lines(self) -> None:
        totals = aggregate([], VatMode.GLOBAL, Decimal("20"))
        assert totals == Totals()
        assert totals.ht == ZERO and totals.vat == ZERO and totals.ttc == ZERO

    def test_global_mode(self, uniform_lines: list[QuoteLine]) -> None:
        totals = aggregate(uniform_lines, VatMode.GLOBAL, Decimal("20"))
        assert totals.ht == Decimal("230.18")
        assert totals.ttc == Decimal("276.22")
        assert totals.vat == Decimal("46.04")

    def test_per_line_mode(self, mixed_lines: list[QuoteLine]) -> None:
        totals = aggregate(mixed_lines, VatMode.PER_LINE, None)
        assert totals.ht == Decimal("250.00")
        assert totals.ttc == Decimal("295.00")
        assert totals.vat == Decimal("45.00")

    def test_global_mode_ignores_line_rates(self, mixed_lines: list[QuoteLine]) -> None:
        totals = aggregate(mixed_lines, VatMode.GLOBAL, Decimal("20"))
        assert totals.ttc == Decimal("300.00")

    @pytest.mark.parametrize("rate", [None, Decimal("0")])
    def test_without_vat(self, uniform_lines: list[QuoteLine], rate: Decimal | None) -> None:
        totals = aggregate(uniform_lines, VatMode.GLOBAL, rate)
        assert totals.ttc == totals.ht
        assert totals.vat == ZERO

    def test_per_line_falls_back_to_global_rate(self) -> None:
        lines = [QuoteLine(description="Sans taux", unit_price=Decimal("100.00"))]
        totals = aggregate(lines, VatMode.PER_LINE, Decimal("20"))
        assert totals.ttc == Decimal("120.00")

    def test_rate_resolver(self, mixed_lines: list[QuoteLine]) -> None:
        totals = aggregate(
            mixed_lines,
            VatMode.PER_LINE,
            None,
            rate_resolver=lambda line: Decimal("10"),
        )
        assert totals.ttc == Decimal("275.00")

    def test_modes_agree_at_uniform_rate(self, uniform_lines: list[QuoteLine]) -> None:
        """À taux uniforme, les deux modes donnent le même TTC au centime."""
        global_totals = aggregate(uniform_lines, VatMode.GLOBAL, Decimal("20"))
        per_line_totals = aggregate(uniform_lines, VatMode.PER_LINE, Decimal("20"))
        assert global_totals == per_line_totals

    def test_totals_consistency(self, mixed_lines: list[QuoteLine]) -> None:
        for mode in VatMode:
            totals = aggregate(mixed_lines, mode, Decimal("20"))
            assert totals.ht + totals.vat == totals.ttc


class TestDetectVatMode:
    """Tests de la détection du mode de TVA des documents anciens."""

    def test_per_line_when_a_rate_is_set(self, mixed_lines: list[QuoteLine]) -> None:
        assert detect_vat_mode(mixed_lines) == VatMode.PER_LINE

    def test_global_without_rates(self) -> None:
        lines = [
            QuoteLine(description="A", unit_price=Decimal("10")),
            QuoteLine(description="B", unit_price=Decimal("10"), vat_rate=Decimal("0")),
        ]
        assert detect_vat_mode(lines) == VatMode.GLOBAL

    def test_empty(self) -> None:
        assert detect_vat_mode([]) == VatMode.GLOBAL


class TestTaxBreakdown:
    """Tests des récapitulatifs TVA par taux."""

    def test_per_line_groups_by_rate(self, mixed_lines: list[QuoteLine]) -> None:
        summaries = tax_breakdown(mixed_lines, VatMode.PER_LINE, None)
        assert [s.vat_rate for s in summaries] == [Decimal("10"), Decimal("20")]
        assert summaries[0].taxable_amount == Decimal("50.00")
        assert summaries[0].tax_amount == Decimal("5.00")
        assert summaries[1].taxable_amount == Decimal("200.00")
        assert summaries[1].tax_amount == Decimal("40.00")

    def test_global_single_summary(self, mixed_lines: list[QuoteLine]) -> None:
        summaries = tax_breakdown(mixed_lines, VatMode.GLOBAL, Decimal("20"))
        assert len(summaries) == 1
        assert summaries[0].tax_amount == Decimal("50.00")

    def test_no_vat_grouped_at_zero(self) -> None:
        lines = [QuoteLine(description="Exonéré", unit_price=Decimal("80.00"))]
        summaries = tax_breakdown(lines, VatMode.GLOBAL, None)
        assert summaries[0].vat_rate == ZERO
        assert summaries[0].tax_amount == ZERO
