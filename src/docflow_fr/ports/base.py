"""Interfaces abstraites des collaborateurs externes.

FR: Le moteur ne fait ni persistance, ni envoi, ni lecture de paramètres
    d'entreprise : il délègue à ces interfaces, appelées à des points
    précis des transitions. Toutes sont synchrones.
EN: The engine performs no persistence, delivery or settings lookup
    itself; it delegates to these synchronous interfaces.
"""

from abc import ABCMeta, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from docflow_fr.models.documents import Amendment, BaseDocument, CreditNote, Invoice
from docflow_fr.models.enums import AuditAction, DeliveryChannel, DocumentType
from docflow_fr.ports.models import DeliveryReceipt, PriceEntry


class DocumentStore(metaclass=ABCMeta):
    """Persistance des documents.

    FR: Chargement, enregistrement, numérotation légale et index de
        rattachement (avenants d'un devis, avoirs d'une facture...). Les
        index sont reconstruits depuis le stockage : aucune collection
        inverse n'est conservée sur les documents.
    EN: Loading, saving, legal numbering and relationship indexes rebuilt
        from storage.
    """

    @abstractmethod
    def load(self, document_id: str) -> BaseDocument:
        """Charge un document.

        Raises:
            DocumentNotFoundError: Si le document n'existe pas.
        """

    @abstractmethod
    def save(self, document: BaseDocument) -> None:
        """Enregistre un document (création ou mise à jour)."""

    @abstractmethod
    def next_number(
        self,
        company_id: str,
        document_type: DocumentType,
        at: datetime | None = None,
    ) -> str:
        """Attribue le prochain numéro légal.

        FR: Appelé une seule fois par document, à la première émission.
        EN: Called once per document, on first emission.

        Raises:
            NumberingError: Si aucun numéro ne peut être attribué.
        """

    @abstractmethod
    def amendments_for_quote(self, quote_id: str) -> list[Amendment]:
        """Avenants rattachés à un devis."""

    @abstractmethod
    def credit_notes_for_invoice(self, invoice_id: str) -> list[CreditNote]:
        """Avoirs rattachés à une facture."""

    @abstractmethod
    def invoice_for_quote(self, quote_id: str) -> Invoice | None:
        """Facture générée depuis un devis, s'il y en a une."""


class PriceCatalog(metaclass=ABCMeta):
    """Catalogue de prix en lecture seule / Read-only price catalog."""

    @abstractmethod
    def price_entry(self, entry_id: str) -> PriceEntry:
        """Retourne une entrée du catalogue.

        Raises:
            PriceEntryNotFoundError: Si l'entrée n'existe pas.
        """


class DeliveryGateway(metaclass=ABCMeta):
    """Envoi des documents au client / Document delivery."""

    @abstractmethod
    def send(self, document: BaseDocument, channel: DeliveryChannel) -> DeliveryReceipt:
        """Envoie un document.

        Raises:
            DeliveryError: Si l'envoi échoue.
        """


class CompanySettingsProvider(metaclass=ABCMeta):
    """Paramètres de TVA de l'entreprise émettrice."""

    @abstractmethod
    def default_vat_rate(self, company_id: str) -> Decimal:
        """Taux de TVA par défaut en %."""

    @abstractmethod
    def vat_enabled(self, company_id: str) -> bool:
        """Entreprise assujettie à la TVA."""


class AuditSink(metaclass=ABCMeta):
    """Journal d'audit légal (10 ans) / Legal audit trail."""

    @abstractmethod
    def record(
        self,
        entity_type: DocumentType,
        entity_id: str,
        action: AuditAction,
        old_value: dict[str, Any],
        new_value: dict[str, Any],
    ) -> None:
        """Enregistre une entrée d'audit."""
