"""Collaborateurs en mémoire pour les tests et le développement.

FR: Stockage des documents, séquences de numérotation par entreprise et
    par période, catalogue de prix, envoi simulé et journal d'audit, le
    tout en mémoire. Les documents sont copiés à l'enregistrement et au
    chargement, comme le ferait une base de données.
EN: In-memory document storage, numbering sequences per company and
    period, price catalog, simulated delivery and audit log. Documents are
    copied on save and load, as a database would.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from docflow_fr.config import EngineSettings, get_settings
from docflow_fr.models.documents import Amendment, BaseDocument, CreditNote, Invoice
from docflow_fr.models.enums import AuditAction, DeliveryChannel, DocumentType
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
)
from docflow_fr.ports.models import AuditEntry, DeliveryReceipt, PriceEntry

logger = logging.getLogger(__name__)


class MemoryDocumentStore(DocumentStore):
    """Stockage des documents en mémoire.

    FR: Les numéros suivent les formats configurés (``DEV-YYYY-NNN``,
        ``AMD-YYYYMM-NNN``, ``FACT-YYYY-NNN``, ``AV-YYYY-NNNN``) avec une
        séquence par entreprise, par type et par période.
    EN: Numbers follow the configured formats with one sequence per
        company, type and period.
    """

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self._settings = settings or get_settings()
        self._documents: dict[str, BaseDocument] = {}
        self._sequences: dict[tuple[str, DocumentType, str], int] = {}

    def _get_stored(self, document_id: str) -> BaseDocument:
        """Récupère un document stocké ou lève DocumentNotFoundError."""
        stored = self._documents.get(document_id)
        if stored is None:
            msg = f"Document introuvable : {document_id}"
            raise DocumentNotFoundError(msg)
        return stored

    def load(self, document_id: str) -> BaseDocument:
        return self._get_stored(document_id).model_copy(deep=True)

    def save(self, document: BaseDocument) -> None:
        self._documents[document.id] = document.model_copy(deep=True)

    def _number_format(self, document_type: DocumentType) -> tuple[str, str]:
        """Format du numéro et clé de période de la séquence."""
        formats = {
            DocumentType.QUOTE: (self._settings.quote_number_format, "{year:04d}"),
            DocumentType.AMENDMENT: (
                self._settings.amendment_number_format,
                "{year:04d}{month:02d}",
            ),
            DocumentType.INVOICE: (self._settings.invoice_number_format, "{year:04d}"),
            DocumentType.CREDIT_NOTE: (self._settings.credit_note_number_format, "{year:04d}"),
        }
        return formats[document_type]

    def next_number(
        self,
        company_id: str,
        document_type: DocumentType,
        at: datetime | None = None,
    ) -> str:
        if at is None:
            at = datetime.now(UTC)
        pattern, period_pattern = self._number_format(document_type)
        period = period_pattern.format(year=at.year, month=at.month)
        key = (company_id, document_type, period)
        seq = self._sequences.get(key, 0) + 1
        try:
            number = pattern.format(year=at.year, month=at.month, seq=seq)
        except (KeyError, IndexError, ValueError) as exc:
            msg = f"Format de numérotation invalide pour {document_type.value} : {pattern!r}"
            raise NumberingError(msg) from exc
        self._sequences[key] = seq
        logger.debug("Numéro attribué : %s (entreprise %s)", number, company_id)
        return number

    def _documents_of(self, document_type: type[BaseDocument]) -> Iterable[Any]:
        return (d for d in self._documents.values() if isinstance(d, document_type))

    def amendments_for_quote(self, quote_id: str) -> list[Amendment]:
        return [
            a.model_copy(deep=True)
            for a in self._documents_of(Amendment)
            if a.quote.id == quote_id
        ]

    def credit_notes_for_invoice(self, invoice_id: str) -> list[CreditNote]:
        return [
            n.model_copy(deep=True)
            for n in self._documents_of(CreditNote)
            if n.invoice.id == invoice_id
        ]

    def invoice_for_quote(self, quote_id: str) -> Invoice | None:
        for invoice in self._documents_of(Invoice):
            if invoice.quote is not None and invoice.quote.id == quote_id:
                return invoice.model_copy(deep=True)
        return None

    def __len__(self) -> int:
        return len(self._documents)


class MemoryPriceCatalog(PriceCatalog):
    """Catalogue de prix en mémoire / In-memory price catalog."""

    def __init__(self, entries: Iterable[PriceEntry] = ()) -> None:
        self._entries: dict[str, PriceEntry] = {entry.id: entry for entry in entries}

    def add(self, entry: PriceEntry) -> None:
        self._entries[entry.id] = entry

    def price_entry(self, entry_id: str) -> PriceEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            msg = f"Entrée de catalogue introuvable : {entry_id}"
            raise PriceEntryNotFoundError(msg)
        return entry


@dataclass
class MemoryDeliveryGateway(DeliveryGateway):
    """Envoi simulé : conserve les documents « envoyés ».

    FR: ``fail`` permet de simuler une panne d'envoi.
    EN: ``fail`` simulates a delivery outage.
    """

    fail: bool = False
    sent: list[tuple[str, DeliveryChannel]] = field(default_factory=list)

    def send(self, document: BaseDocument, channel: DeliveryChannel) -> DeliveryReceipt:
        if self.fail:
            msg = f"Envoi impossible de {document.number or document.id} via {channel.value}"
            raise DeliveryError(msg)
        self.sent.append((document.id, channel))
        return DeliveryReceipt(sent_at=datetime.now(UTC), channel_used=channel)


@dataclass
class StaticCompanySettings(CompanySettingsProvider):
    """Paramètres d'entreprise fixes, éventuellement par entreprise.

    FR: Les entreprises absentes de ``overrides`` utilisent les valeurs
        par défaut.
    EN: Companies missing from ``overrides`` use the defaults.
    """

    vat_rate: Decimal = Decimal("20.00")
    enabled: bool = True
    overrides: dict[str, tuple[Decimal, bool]] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: EngineSettings | None = None) -> StaticCompanySettings:
        settings = settings or get_settings()
        return cls(vat_rate=settings.default_vat_rate, enabled=settings.vat_enabled)

    def default_vat_rate(self, company_id: str) -> Decimal:
        return self.overrides.get(company_id, (self.vat_rate, self.enabled))[0]

    def vat_enabled(self, company_id: str) -> bool:
        return self.overrides.get(company_id, (self.vat_rate, self.enabled))[1]


class MemoryAuditSink(AuditSink):
    """Journal d'audit en mémoire / In-memory audit log."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def record(
        self,
        entity_type: DocumentType,
        entity_id: str,
        action: AuditAction,
        old_value: dict[str, Any],
        new_value: dict[str, Any],
    ) -> None:
        self.entries.append(
            AuditEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                old_value=old_value,
                new_value=new_value,
            )
        )

    def for_entity(self, entity_id: str) -> list[AuditEntry]:
        return [e for e in self.entries if e.entity_id == entity_id]
