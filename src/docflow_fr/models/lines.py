"""Lignes des documents commerciaux.

FR: Modèles Pydantic des lignes de devis, de facture, d'avenant et d'avoir.
    Les affectations sont validées (quantité entière positive, prix et taux
    bornés) avant toute modification. Une ligne est verrouillée dès que son
    document est émis : toute écriture lève alors ``ImmutabilityError``.
EN: Pydantic models for quote, invoice, amendment and credit note lines.
    Assignments are validated before any change. A line is locked once its
    document is emitted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field, model_validator

from docflow_fr.lifecycle.errors import ImmutabilityError
from docflow_fr.pricing.delta import compute_delta
from docflow_fr.pricing.money import ZERO, line_total_ht

if TYPE_CHECKING:
    from docflow_fr.ports.models import PriceEntry


def _new_id() -> str:
    return uuid4().hex


class DocumentLine(BaseModel):
    """Ligne de document.

    FR: Désignation, quantité entière, prix unitaire HT et taux de TVA
        optionnel. Le total HT est toujours recalculé depuis ces valeurs.
    EN: Description, integer quantity, unit price and optional VAT rate.
        The HT total is always derived from these values.
    """

    model_config = ConfigDict(validate_assignment=True)

    # Champs dont la modification impose un recalcul de la ligne
    RECALCULATED_FIELDS: ClassVar[frozenset[str]] = frozenset()

    id: str = Field(default_factory=_new_id, description="Identifiant / Line identifier")
    description: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Désignation / Item description",
    )
    quantity: int = Field(default=1, gt=0, description="Quantité / Quantity")
    unit_price: Decimal = Field(
        ...,
        ge=0,
        description="Prix unitaire HT / Unit price excl. tax",
    )
    vat_rate: Decimal | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Taux de TVA en % (None : taux du document) / VAT rate in %",
    )
    price_entry_id: str | None = Field(
        default=None,
        description="Entrée du catalogue d'origine / Source catalog entry",
    )

    _locked: bool = PrivateAttr(default=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self._locked:
            msg = f"Ligne {self.id} verrouillée : document émis, modification de '{name}' refusée."
            raise ImmutabilityError(msg)
        previous = self.__dict__.get(name)
        try:
            super().__setattr__(name, value)
        except ValueError:
            # Les validateurs "after" s'exécutent une fois la valeur posée
            if name in type(self).model_fields:
                self.__dict__[name] = previous
            raise
        if name in self.RECALCULATED_FIELDS:
            self.recalculate()

    @classmethod
    def from_price_entry(cls, entry: PriceEntry, quantity: int = 1, **kwargs: Any) -> Self:
        """Pré-remplit une ligne depuis le catalogue de prix.

        FR: Reprend le libellé, le prix unitaire et le taux de l'entrée.
        EN: Copies label, unit price and rate from the catalog entry.
        """
        values: dict[str, Any] = {
            "description": entry.label,
            "unit_price": entry.unit_price,
            "quantity": quantity,
            "vat_rate": entry.vat_rate,
            "price_entry_id": entry.id,
        }
        values.update(kwargs)
        return cls(**values)

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        """Verrouille la ligne (émission du document)."""
        self._locked = True

    def recalculate(self) -> None:
        """Recalcule les valeurs dérivées stockées (aucune par défaut)."""

    def _compute_total_ht(self) -> Decimal:
        return line_total_ht(self.unit_price, self.quantity)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_ht(self) -> Decimal:
        """Total HT de la ligne / Line total excluding tax."""
        return self._compute_total_ht()


def _refuse_line_change(self: LockedLineList, *args: Any, **kwargs: Any) -> None:
    raise ImmutabilityError("Lignes verrouillées : document émis, ajout ou retrait refusé.")


class LockedLineList(list):  # type: ignore[type-arg]
    """Liste des lignes d'un document émis.

    FR: Lecture seule : tout ajout, retrait ou remplacement de ligne lève
        ``ImmutabilityError``. La copie (``model_copy(deep=True)``) et la
        sérialisation restent possibles.
    EN: Read-only list of an emitted document's lines.
    """

    append = extend = insert = remove = pop = clear = _refuse_line_change
    sort = reverse = _refuse_line_change
    __setitem__ = __delitem__ = __iadd__ = __imul__ = _refuse_line_change

    def __reduce_ex__(self, protocol: Any) -> tuple[Any, ...]:
        return type(self), (list(self),)


class QuoteLine(DocumentLine):
    """Ligne de devis / Quote line."""


class InvoiceLine(DocumentLine):
    """Ligne de facture / Invoice line."""


class AmendmentLine(DocumentLine):
    """Ligne d'avenant.

    FR: Sans ``source_line``, la ligne est un ajout et ``unit_price`` est un
        prix absolu. Avec ``source_line``, la ligne modifie une ligne du
        devis et ``unit_price`` est un différentiel par unité, qui peut être
        négatif. ``old_value`` est capturé une seule fois depuis la ligne
        source ; ``new_value = old_value + unit_price × quantity`` et
        ``delta = new_value - old_value``. Le total HT de la ligne est la
        nouvelle valeur.
    EN: Without ``source_line`` the line is an addition with an absolute
        price. With ``source_line`` it modifies a quote line and
        ``unit_price`` is a per-unit delta. The line HT is the new value.
    """

    RECALCULATED_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"unit_price", "quantity", "source_line"}
    )

    unit_price: Decimal = Field(
        ...,
        description=(
            "Prix unitaire HT (ajout) ou différentiel par unité (modification) / "
            "Unit price (addition) or per-unit delta (modification)"
        ),
    )
    source_line: QuoteLine | None = Field(
        default=None,
        description="Ligne du devis modifiée / Modified quote line",
    )
    old_value: Decimal = Field(default=ZERO, description="Ancien HT / Previous HT value")
    new_value: Decimal = Field(default=ZERO, description="Nouveau HT / New HT value")
    delta: Decimal = Field(default=ZERO, description="Écart HT / HT difference")

    # Ligne source dont old_value a été capturé
    _captured_source_id: str | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _check_unit_price(self) -> Self:
        if self.source_line is None and self.unit_price < 0:
            msg = "Prix unitaire négatif interdit pour une ligne ajoutée (sans ligne source)."
            raise ValueError(msg)
        return self

    def model_post_init(self, __context: Any) -> None:
        if self.source_line is not None and "old_value" in self.model_fields_set:
            # Valeur capturée lors d'un précédent calcul (rechargement)
            self._captured_source_id = self.source_line.id
        self.recalculate()

    def is_modification(self) -> bool:
        return self.source_line is not None

    def is_addition(self) -> bool:
        return self.source_line is None

    def recalculate(self) -> None:
        """Met à jour ``old_value``, ``new_value`` et ``delta``."""
        if self.source_line is None:
            self._captured_source_id = None
            entry = compute_delta(self.unit_price, self.quantity, None)
        else:
            if self._captured_source_id != self.source_line.id:
                self._captured_source_id = self.source_line.id
                source_total = self.source_line.total_ht
            else:
                source_total = self.old_value
            entry = compute_delta(self.unit_price, self.quantity, source_total)
        # Affectation directe : ces champs ne déclenchent pas de recalcul
        self.old_value = entry.old_value
        self.new_value = entry.new_value
        self.delta = entry.delta

    def _compute_total_ht(self) -> Decimal:
        return self.new_value


class CreditNoteLine(DocumentLine):
    """Ligne d'avoir.

    FR: Le montant crédité est saisi en positif et stocké en négatif
        (total HT = -prix × quantité). Avec une ``source_line`` de facture,
        le montant crédité ne peut excéder le HT de cette ligne.
    EN: The credited amount is entered positive and stored negative. With
        an invoice ``source_line``, it cannot exceed that line's HT.
    """

    source_line: InvoiceLine | None = Field(
        default=None,
        description="Ligne de facture créditée / Credited invoice line",
    )

    @model_validator(mode="after")
    def _check_source_ceiling(self) -> Self:
        if self.source_line is not None:
            credited = line_total_ht(self.unit_price, self.quantity)
            if credited > self.source_line.total_ht:
                msg = (
                    f"Montant crédité {credited} supérieur au HT de la ligne "
                    f"de facture ({self.source_line.total_ht})."
                )
                raise ValueError(msg)
        return self

    def credited_amount(self) -> Decimal:
        """Montant crédité HT, en positif / Credited HT amount, positive."""
        return line_total_ht(self.unit_price, self.quantity)

    def _compute_total_ht(self) -> Decimal:
        return -self.credited_amount()
