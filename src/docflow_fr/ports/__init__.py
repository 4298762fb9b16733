"""Collaborateurs externes du moteur : persistance, catalogue, envoi, audit.

FR: Interfaces abstraites et implémentations en mémoire.
EN: Abstract interfaces and in-memory implementations.
"""

from docflow_fr.ports.base import (
    AuditSink,
    CompanySettingsProvider,
    DeliveryGateway,
    DocumentStore,
    PriceCatalog,
)
from docflow_fr.ports.errors import (
    DeliveryError,
    DocumentNotFoundError,
    NumberingError,
    PriceEntryNotFoundError,
    StoreError,
)
from docflow_fr.ports.memory import (
    MemoryAuditSink,
    MemoryDeliveryGateway,
    MemoryDocumentStore,
    MemoryPriceCatalog,
    StaticCompanySettings,
)
from docflow_fr.ports.models import AuditEntry, DeliveryReceipt, PriceEntry

__all__ = [
    "AuditEntry",
    "AuditSink",
    "CompanySettingsProvider",
    "DeliveryError",
    "DeliveryGateway",
    "DeliveryReceipt",
    "DocumentNotFoundError",
    "DocumentStore",
    "MemoryAuditSink",
    "MemoryDeliveryGateway",
    "MemoryDocumentStore",
    "MemoryPriceCatalog",
    "NumberingError",
    "PriceCatalog",
    "PriceEntry",
    "PriceEntryNotFoundError",
    "StaticCompanySettings",
]
