"""Hiérarchie d'exceptions des collaborateurs externes.

FR: Exceptions typées pour la persistance, la numérotation, le catalogue
    de prix et l'envoi des documents.
EN: Typed exceptions for persistence, numbering, price catalog and
    document delivery.
"""


class StoreError(Exception):
    """Erreur de base de la persistance.

    FR: Classe parente des erreurs de stockage des documents.
    EN: Base class for document storage errors.
    """


class DocumentNotFoundError(StoreError):
    """Document introuvable / Document not found."""


class NumberingError(StoreError):
    """Séquence de numérotation indisponible ou format invalide.

    FR: Le numéro légal ne peut pas être attribué : l'émission échoue.
    EN: The legal number cannot be allocated: emission fails.
    """


class PriceEntryNotFoundError(LookupError):
    """Entrée absente du catalogue de prix / Price entry not found."""


class DeliveryError(Exception):
    """Échec de l'envoi d'un document.

    FR: Courriel refusé, plateforme indisponible... La transition d'envoi
        n'est pas validée.
    EN: E-mail refused, platform unavailable... The send transition is not
        committed.
    """
