"""Hiérarchie d'exceptions du cycle de vie des documents.

FR: Exceptions typées pour les transitions refusées, les violations de
    contraintes entre documents, les tentatives de modification d'un
    document émis et les montants invalides.
EN: Typed exceptions for refused transitions, cross-document constraint
    violations, writes to emitted documents and invalid amounts.
"""


class DocumentError(RuntimeError):
    """Erreur de base pour toutes les opérations sur les documents.

    FR: Classe parente de toutes les exceptions métier du moteur.
    EN: Base class for all document engine exceptions.
    """


class GuardViolationError(DocumentError):
    """Une garde de transition a refusé l'opération.

    FR: Le document n'est pas dans un état permettant l'opération
        (aucune ligne, montant nul, statut incompatible...). ``reasons``
        détaille chaque contrôle en échec.
    EN: The document is not in a state allowing the operation.
    """

    def __init__(self, message: str, reasons: list[str] | None = None) -> None:
        super().__init__(message)
        self.reasons: list[str] = reasons or []


class TransitionNotAllowedError(GuardViolationError):
    """Transition absente du graphe des statuts / Transition not in the graph."""


class CrossDocumentViolationError(GuardViolationError):
    """Contrainte entre documents violée.

    FR: Avenant sur un devis non signé, avoir sur une facture annulée,
        seconde facture pour un même devis...
    EN: Amendment on an unsigned quote, credit note on a cancelled
        invoice, second invoice for the same quote...
    """


class CreditNoteCeilingExceededError(CrossDocumentViolationError):
    """Le cumul des avoirs dépasserait le TTC de la facture."""


class ImmutabilityError(DocumentError):
    """Écriture refusée sur un document émis.

    FR: Un document émis (devis envoyé, facture émise...) est figé : seuls
        les champs techniques (envoi, horodatage, empreinte PDF) peuvent
        encore évoluer, et le statut uniquement via une transition.
    EN: An emitted document is frozen except for technical fields.
    """


class InvalidAmountError(DocumentError, ValueError):
    """Montant, quantité ou taux invalide / Invalid amount, quantity or rate."""
