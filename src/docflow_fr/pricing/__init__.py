"""Arithmétique monétaire HT/TVA/TTC et registre des deltas d'avenants."""

from docflow_fr.pricing.aggregation import (
    TaxSummary,
    Totals,
    VatMode,
    aggregate,
    detect_vat_mode,
    tax_breakdown,
)
from docflow_fr.pricing.delta import (
    DeltaEntry,
    applicable_vat_rate,
    compute_delta,
    delta_ttc,
    line_total_ttc,
)
from docflow_fr.pricing.money import (
    ZERO,
    apply_vat,
    has_vat,
    line_total_ht,
    percentage_of,
    round_money,
    to_amount,
    vat_multiplier,
)

__all__ = [
    "DeltaEntry",
    "TaxSummary",
    "Totals",
    "VatMode",
    "ZERO",
    "aggregate",
    "applicable_vat_rate",
    "apply_vat",
    "compute_delta",
    "delta_ttc",
    "detect_vat_mode",
    "has_vat",
    "line_total_ht",
    "line_total_ttc",
    "percentage_of",
    "round_money",
    "tax_breakdown",
    "to_amount",
    "vat_multiplier",
]
