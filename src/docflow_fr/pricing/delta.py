"""Registre des deltas d'avenants.

FR: Un avenant ne réécrit jamais le devis signé : chaque ligne enregistre
    l'ancienne valeur HT (``old_value``), la nouvelle (``new_value``) et
    leur écart (``delta``). Une ligne qui référence une ligne du devis
    (modification) porte un prix unitaire *différentiel* ; une ligne sans
    référence (ajout) porte un prix unitaire absolu.

    Le delta TTC est obtenu en appliquant un seul taux au delta HT : une
    multiplication, un arrondi. Il n'est jamais calculé comme la
    différence de deux TTC arrondis séparément.
EN: Amendment lines record old HT, new HT and their difference. The TTC
    delta applies a single rate to the HT delta with one rounding.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, NamedTuple

from docflow_fr.pricing.aggregation import VatMode
from docflow_fr.pricing.money import ZERO, apply_vat, has_vat, line_total_ht, round_money

if TYPE_CHECKING:
    from docflow_fr.models.documents import Quote
    from docflow_fr.models.lines import AmendmentLine


class DeltaEntry(NamedTuple):
    """Écriture du registre pour une ligne d'avenant."""

    old_value: Decimal
    new_value: Decimal
    delta: Decimal


def compute_delta(
    unit_price: Decimal,
    quantity: int,
    source_total_ht: Decimal | None,
) -> DeltaEntry:
    """Calcule l'écriture d'une ligne d'avenant.

    Args:
        unit_price: Prix unitaire absolu (ajout) ou différentiel (modification).
        quantity: Quantité de la ligne d'avenant.
        source_total_ht: HT de la ligne source du devis, ``None`` pour un ajout.

    Returns:
        ``(old_value, new_value, delta)`` avec ``delta = new_value - old_value``.
    """
    if source_total_ht is None:
        new_value = line_total_ht(unit_price, quantity)
        return DeltaEntry(ZERO, new_value, new_value)
    old_value = round_money(source_total_ht)
    new_value = round_money(old_value + unit_price * Decimal(quantity))
    return DeltaEntry(old_value, new_value, new_value - old_value)


def _positive(rate: Decimal | None) -> Decimal | None:
    return rate if has_vat(rate) else None


def applicable_vat_rate(
    line: AmendmentLine,
    quote: Quote | None,
    amendment_rate: Decimal | None = None,
) -> Decimal | None:
    """Détermine le taux de TVA d'une ligne d'avenant.

    FR: Ordre de priorité, les taux nuls ou absents passant au suivant :
        1. taux de la ligne source si le devis est en TVA par ligne ;
        2. taux global du devis s'il ne l'est pas ;
        3. taux propre de la ligne d'avenant ;
        4. taux global de l'avenant ;
        5. taux global du devis, en dernier recours.
        Les étapes 1 et 2 ne concernent que les lignes de modification.
    EN: Rate precedence for an amendment line; non-positive rates fall
        through. Steps 1-2 only apply to modification lines.

    Returns:
        Le taux retenu, ou ``None`` si aucune TVA ne s'applique.
    """
    if line.source_line is not None and quote is not None:
        if quote.vat_mode == VatMode.PER_LINE:
            rate = _positive(line.source_line.vat_rate)
        else:
            rate = _positive(quote.vat_rate)
        if rate is not None:
            return rate
    for candidate in (
        line.vat_rate,
        amendment_rate,
        quote.vat_rate if quote is not None else None,
    ):
        if has_vat(candidate):
            return candidate
    return None


def delta_ttc(
    line: AmendmentLine,
    quote: Quote | None,
    amendment_rate: Decimal | None = None,
) -> Decimal:
    """Delta TTC d'une ligne : un taux, une multiplication, un arrondi."""
    return apply_vat(line.delta, applicable_vat_rate(line, quote, amendment_rate))


def line_total_ttc(
    line: AmendmentLine,
    quote: Quote | None,
    amendment_rate: Decimal | None = None,
) -> Decimal:
    """TTC de la nouvelle valeur d'une ligne d'avenant / TTC of the new value."""
    return apply_vat(line.new_value, applicable_vat_rate(line, quote, amendment_rate))
