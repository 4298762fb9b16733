"""Agrégation des lignes en totaux HT / TVA / TTC.

FR: Deux modes de calcul de la TVA :
    - ``GLOBAL`` : le taux du document s'applique au total HT, la TVA est
      ``TTC(HT) - HT`` ;
    - ``PER_LINE`` : chaque ligne porte son taux (à défaut, celui du
      document) ; les TTC de ligne non arrondis sont cumulés puis arrondis
      une seule fois.
    À taux uniforme, les deux modes donnent le même résultat au centime.
EN: Two VAT modes. GLOBAL applies the document rate to the HT total;
    PER_LINE sums unrounded per-line TTC and rounds once. With a single
    rate both modes agree to the cent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from decimal import Decimal
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from docflow_fr.pricing.money import (
    ZERO,
    apply_vat,
    has_vat,
    round_money,
    vat_multiplier,
)


class VatMode(StrEnum):
    """Mode de calcul de la TVA.

    FR: Taux unique appliqué au total HT, ou taux propre à chaque ligne.
    EN: Single rate applied to the HT total, or one rate per line.
    """

    GLOBAL = "global"
    """Taux global du document / Document-wide rate"""

    PER_LINE = "per_line"
    """Taux par ligne / Per-line rate"""


class PricedLine(Protocol):
    """Forme minimale d'une ligne agrégeable / Minimal aggregatable line."""

    @property
    def total_ht(self) -> Decimal: ...

    @property
    def vat_rate(self) -> Decimal | None: ...


RateResolver = Callable[[PricedLine], Decimal | None]


class Totals(BaseModel):
    """Totaux d'un document / Document totals."""

    model_config = ConfigDict(frozen=True)

    ht: Decimal = Field(default=ZERO, description="Total HT / Total excl. tax")
    vat: Decimal = Field(default=ZERO, description="Total TVA / Total VAT")
    ttc: Decimal = Field(default=ZERO, description="Total TTC / Total incl. tax")


class TaxSummary(BaseModel):
    """Récapitulatif TVA par taux.

    FR: Regroupe la base HT et la TVA pour un taux donné.
    EN: Groups taxable amount and VAT for a given rate.
    """

    vat_rate: Decimal = Field(..., ge=0, description="Taux de TVA en % / VAT rate in %")
    taxable_amount: Decimal = Field(..., description="Base imposable HT / Taxable amount")
    tax_amount: Decimal = Field(..., description="Montant de TVA / Tax amount")


def _effective_rate(
    line: PricedLine,
    global_rate: Decimal | None,
    rate_resolver: RateResolver | None,
) -> Decimal | None:
    rate = rate_resolver(line) if rate_resolver is not None else line.vat_rate
    if rate is None:
        return global_rate
    return rate


def aggregate(
    lines: Iterable[PricedLine],
    mode: VatMode,
    global_rate: Decimal | None,
    rate_resolver: RateResolver | None = None,
) -> Totals:
    """Calcule les totaux HT, TVA et TTC d'un ensemble de lignes.

    Args:
        lines: Lignes exposant ``total_ht`` et ``vat_rate``.
        mode: Mode de calcul de la TVA.
        global_rate: Taux du document (``None`` ou 0 : pas de TVA).
        rate_resolver: Taux effectif d'une ligne, si le document le
            détermine autrement que par ``line.vat_rate`` (avenants).

    Returns:
        Les totaux ; tout à zéro pour une liste vide.
    """
    lines = list(lines)
    if not lines:
        return Totals()

    total_ht = round_money(sum((line.total_ht for line in lines), ZERO))

    if mode == VatMode.PER_LINE:
        raw_ttc = sum(
            (
                line.total_ht * vat_multiplier(_effective_rate(line, global_rate, rate_resolver))
                for line in lines
            ),
            ZERO,
        )
        total_ttc = round_money(raw_ttc)
        return Totals(ht=total_ht, vat=total_ttc - total_ht, ttc=total_ttc)

    total_vat = apply_vat(total_ht, global_rate) - total_ht
    return Totals(ht=total_ht, vat=total_vat, ttc=total_ht + total_vat)


def detect_vat_mode(lines: Iterable[PricedLine]) -> VatMode:
    """Déduit le mode de TVA d'un document ancien sans indicateur.

    FR: Heuristique de repli : par ligne dès qu'une ligne porte un taux
        positif. Le mode détecté doit ensuite être persisté.
    EN: Fallback heuristic for legacy documents without a persisted flag.
    """
    if any(has_vat(line.vat_rate) for line in lines):
        return VatMode.PER_LINE
    return VatMode.GLOBAL


def tax_breakdown(
    lines: Iterable[PricedLine],
    mode: VatMode,
    global_rate: Decimal | None,
    rate_resolver: RateResolver | None = None,
) -> list[TaxSummary]:
    """Récapitulatifs TVA par taux / Tax summaries by rate."""
    bases: dict[Decimal, Decimal] = {}
    for line in lines:
        if mode == VatMode.PER_LINE:
            rate = _effective_rate(line, global_rate, rate_resolver)
        else:
            rate = global_rate
        key = rate if has_vat(rate) else ZERO
        bases[key] = bases.get(key, ZERO) + line.total_ht  # type: ignore[index]
    return [
        TaxSummary(
            vat_rate=rate,
            taxable_amount=round_money(base),
            tax_amount=apply_vat(base, rate) - round_money(base),
        )
        for rate, base in sorted(bases.items())
    ]
