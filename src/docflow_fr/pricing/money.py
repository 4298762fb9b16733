"""Arithmétique monétaire et TVA.

FR: Fonctions pures sur ``Decimal``. Les montants sont arrondis au centime
    (ROUND_HALF_UP, soit « au plus loin de zéro » pour les négatifs) et
    uniquement sur le résultat final : les valeurs unitaires ne sont
    jamais arrondies avant multiplication.
EN: Pure ``Decimal`` helpers. Amounts are rounded to the cent
    (ROUND_HALF_UP) on the final result only.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from docflow_fr.lifecycle.errors import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_amount(value: Decimal | int | str) -> Decimal:
    """Convertit une valeur en montant décimal fini.

    FR: Les flottants sont refusés (pas de représentation binaire exacte).
    EN: Floats are rejected, as are NaN and infinities.
    """
    if isinstance(value, bool) or isinstance(value, float):
        msg = f"Montant invalide (type {type(value).__name__} refusé) : {value!r}"
        raise InvalidAmountError(msg)
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as exc:
            msg = f"Montant invalide : {value!r}"
            raise InvalidAmountError(msg) from exc
    if not amount.is_finite():
        msg = f"Montant non fini : {value!r}"
        raise InvalidAmountError(msg)
    return amount


def round_money(amount: Decimal) -> Decimal:
    """Arrondit au centime / Rounds to the cent (half away from zero)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total_ht(unit_price: Decimal, quantity: int | Decimal) -> Decimal:
    """Total HT d'une ligne : prix unitaire × quantité, arrondi une fois."""
    return round_money(unit_price * Decimal(quantity))


def has_vat(rate: Decimal | None) -> bool:
    """Indique si un taux applique effectivement de la TVA (None ou 0 : non)."""
    return rate is not None and rate > 0


def vat_multiplier(rate: Decimal | None) -> Decimal:
    """Coefficient TTC/HT : ``1 + taux / 100`` (1 sans TVA)."""
    if not has_vat(rate):
        return Decimal("1")
    return Decimal("1") + rate / HUNDRED  # type: ignore[operator]


def apply_vat(amount_ht: Decimal, rate_percent: Decimal | None) -> Decimal:
    """Calcule le TTC depuis le HT.

    FR: Une seule multiplication, un seul arrondi. Sans TVA, TTC = HT.
    EN: One multiplication, one rounding. Without VAT, TTC equals HT.
    """
    return round_money(amount_ht * vat_multiplier(rate_percent))


def percentage_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Quote-part arrondie d'un montant (acomptes) / Rounded share of an amount."""
    return round_money(amount * percent / HUNDRED)
