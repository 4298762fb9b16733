"""Modèles échangés avec les collaborateurs externes.

FR: Entrée du catalogue de prix, accusé d'envoi et entrée du journal
    d'audit.
EN: Price catalog entry, delivery receipt and audit log entry.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from docflow_fr.models.enums import AuditAction, DeliveryChannel, DocumentType


class PriceEntry(BaseModel):
    """Entrée du catalogue de prix.

    FR: Sert à pré-remplir la désignation et le prix d'une ligne.
    EN: Pre-fills a line's description and price.
    """

    id: str
    label: str = Field(..., min_length=1, max_length=255, description="Libellé / Label")
    unit_price: Decimal = Field(..., ge=0, description="Prix unitaire HT / Unit price excl. tax")
    vat_rate: Decimal | None = Field(default=None, ge=0, le=100, description="Taux de TVA / VAT rate")


class DeliveryReceipt(BaseModel):
    """Accusé d'envoi d'un document / Delivery receipt."""

    sent_at: datetime
    channel_used: DeliveryChannel


class AuditEntry(BaseModel):
    """Entrée du journal d'audit (conservation légale 10 ans).

    FR: Une entrée par transition validée et par recalcul modifiant un
        total enregistré.
    EN: One entry per committed transition and per recalculation changing
        a stored total.
    """

    entity_type: DocumentType
    entity_id: str
    action: AuditAction
    old_value: dict[str, Any] = Field(default_factory=dict)
    new_value: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
