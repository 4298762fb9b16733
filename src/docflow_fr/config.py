"""Configuration du moteur documentaire.

FR: Paramètres chargés depuis les variables d'environnement préfixées
    ``DOCFLOW_`` (ou un fichier ``.env``) : taux de TVA par défaut,
    pourcentage d'acompte, durées de validité et formats de numérotation.
EN: Settings loaded from ``DOCFLOW_``-prefixed environment variables (or a
    ``.env`` file): default VAT rate, deposit percentage, validity periods
    and numbering formats.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from docflow_fr.models.enums import DeliveryChannel


class EngineSettings(BaseSettings):
    """Paramètres du moteur / Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="DOCFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_vat_rate: Decimal = Field(
        default=Decimal("20.00"),
        ge=0,
        le=100,
        description="Taux de TVA par défaut en % / Default VAT rate in %",
    )
    vat_enabled: bool = Field(
        default=True,
        description="Entreprise assujettie à la TVA / Company charges VAT",
    )
    default_deposit_percentage: Decimal = Field(
        default=Decimal("30.00"),
        ge=0,
        le=100,
        description="Acompte par défaut en % du TTC / Default deposit in % of TTC",
    )
    quote_validity_days: int = Field(
        default=30,
        gt=0,
        description="Durée de validité d'un devis (jours) / Quote validity (days)",
    )
    payment_delay_days: int = Field(
        default=30,
        ge=0,
        description="Délai de paiement d'une facture (jours) / Invoice payment delay (days)",
    )
    default_delivery_channel: DeliveryChannel = Field(
        default=DeliveryChannel.EMAIL,
        description="Canal d'envoi par défaut / Default delivery channel",
    )
    quote_number_format: str = Field(
        default="DEV-{year:04d}-{seq:03d}",
        description="Format des numéros de devis / Quote number format",
    )
    amendment_number_format: str = Field(
        default="AMD-{year:04d}{month:02d}-{seq:03d}",
        description="Format des numéros d'avenant / Amendment number format",
    )
    invoice_number_format: str = Field(
        default="FACT-{year:04d}-{seq:03d}",
        description="Format des numéros de facture / Invoice number format",
    )
    credit_note_number_format: str = Field(
        default="AV-{year:04d}-{seq:04d}",
        description="Format des numéros d'avoir / Credit note number format",
    )


@lru_cache
def get_settings() -> EngineSettings:
    """Retourne l'instance unique des paramètres (chargée une fois)."""
    return EngineSettings()


def get_setting(name: str) -> object:
    """Retourne la valeur d'un paramètre du moteur.

    Raises:
        KeyError: Si le paramètre est inconnu.
    """
    if name not in EngineSettings.model_fields:
        msg = f"Paramètre DOCFLOW inconnu : {name}"
        raise KeyError(msg)
    return getattr(get_settings(), name)
