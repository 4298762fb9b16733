"""Événements de cycle de vie des documents.

FR: Un ``StatusChange`` est produit par chaque transition (et par chaque
    renvoi, sans changement de statut). Il alimente le journal d'audit.
EN: A ``StatusChange`` is produced by every transition (and by every
    resend, without status change). It feeds the audit log.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from docflow_fr.models.enums import AuditAction, DocumentType


class StatusChange(BaseModel):
    """Changement de statut horodaté d'un document.

    FR: Statuts sérialisés en chaîne : ils alimentent directement
        ``old_value`` / ``new_value`` de l'audit.
    EN: Statuses are stored as strings for the audit log.
    """

    entity_type: DocumentType
    entity_id: str
    action: AuditAction
    old_status: str
    new_status: str
    timestamp: datetime
    number: str | None = None
    reason: str | None = None
    """Motif (refus, rejet, annulation)."""

    @property
    def status_changed(self) -> bool:
        return self.old_status != self.new_status

    def audit_values(self) -> tuple[dict[str, str], dict[str, str]]:
        """Valeurs ``(ancienne, nouvelle)`` pour le journal d'audit."""
        return {"status": self.old_status}, {"status": self.new_status}
