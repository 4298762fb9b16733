"""Vues corrigées des devis (après avenants) et des factures (après avoirs)."""

from docflow_fr.corrections.view import InvoiceCorrection, QuoteCorrection

__all__ = ["InvoiceCorrection", "QuoteCorrection"]
