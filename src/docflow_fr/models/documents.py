"""Documents commerciaux : devis, avenant, facture, avoir.

FR: Modèles Pydantic portant les totaux HT/TVA/TTC stockés, le statut de
    cycle de vie et les méthodes de transition. Règles d'immuabilité
    appliquées à chaque affectation :
    - le statut ne change que par une méthode de transition ;
    - le numéro est attribué une seule fois, à la première émission ;
    - un document émis n'accepte plus que les champs techniques (envoi,
      horodatage, empreinte PDF) ;
    - les liens entre documents (devis d'un avenant, facture d'un avoir...)
      ne peuvent pas être redirigés vers un autre document.
    Chaque transition exécute ses gardes avant toute modification et
    retourne un ``StatusChange``.
EN: Pydantic models holding stored totals, lifecycle status and transition
    methods. Immutability rules are enforced on every assignment. Each
    transition runs its guards before any change and returns a
    ``StatusChange``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from docflow_fr.lifecycle import guards
from docflow_fr.lifecycle.errors import GuardViolationError, ImmutabilityError
from docflow_fr.lifecycle.statuses import (
    AmendmentStatus,
    CreditNoteStatus,
    DocumentStatus,
    InvoiceStatus,
    QuoteStatus,
    check_transition,
)
from docflow_fr.models.enums import AuditAction, DeliveryChannel, DocumentType
from docflow_fr.models.events import StatusChange
from docflow_fr.models.lines import (
    AmendmentLine,
    CreditNoteLine,
    DocumentLine,
    InvoiceLine,
    LockedLineList,
    QuoteLine,
)
from docflow_fr.pricing.aggregation import (
    TaxSummary,
    Totals,
    VatMode,
    aggregate,
    detect_vat_mode,
    tax_breakdown,
)
from docflow_fr.pricing.delta import applicable_vat_rate, delta_ttc
from docflow_fr.pricing.money import ZERO, has_vat, percentage_of, round_money


def _new_id() -> str:
    return uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


class BaseDocument(BaseModel):
    """Socle commun des documents commerciaux.

    FR: Identification, totaux stockés, suivi d'envoi et règles
        d'immuabilité. Les sous-classes définissent ``status`` et ``lines``.
    EN: Identification, stored totals, delivery tracking and immutability
        rules. Subclasses define ``status`` and ``lines``.
    """

    model_config = ConfigDict(validate_assignment=True)

    document_type: ClassVar[DocumentType]
    # Champs modifiables après émission
    TECHNICAL_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"sent_at", "sent_count", "delivery_channel", "updated_at", "pdf_hash"}
    )
    # Références vers d'autres documents
    LINK_FIELDS: ClassVar[frozenset[str]] = frozenset()

    # --- Identification ---
    id: str = Field(default_factory=_new_id, description="Identifiant / Document identifier")
    number: str | None = Field(
        default=None,
        description="Numéro légal, attribué à l'émission / Legal number, set on emission",
    )
    company_id: str = Field(..., description="Entreprise émettrice / Issuing company")
    created_at: datetime = Field(default_factory=_now, description="Création / Creation date")
    updated_at: datetime | None = Field(default=None, description="Dernière modification / Last update")

    # --- Montants ---
    vat_rate: Decimal | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Taux de TVA global en % / Document-wide VAT rate in %",
    )
    total_ht: Decimal = Field(default=ZERO, description="Total HT / Total excl. tax")
    total_vat: Decimal = Field(default=ZERO, description="Total TVA / Total VAT")
    total_ttc: Decimal = Field(default=ZERO, description="Total TTC / Total incl. tax")

    # --- Envoi ---
    sent_at: datetime | None = Field(default=None, description="Dernier envoi / Last sent")
    sent_count: int = Field(default=0, ge=0, description="Nombre d'envois / Times sent")
    delivery_channel: DeliveryChannel | None = Field(
        default=None,
        description="Canal du dernier envoi / Last delivery channel",
    )
    pdf_hash: str | None = Field(default=None, description="Empreinte du PDF archivé / PDF hash")
    notes: str | None = Field(default=None, description="Note libre / Free text note")

    _in_transition: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: Any) -> None:
        if self.status.is_emitted():
            self._lock_lines()

    # --- Immuabilité ---

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_"):
            self._check_write(name, value)
        super().__setattr__(name, value)

    def _check_write(self, name: str, value: Any) -> None:
        if name in self.LINK_FIELDS:
            self._check_link(name, value)
            return
        if name == "status" and not self._in_transition:
            msg = (
                f"Le statut de {self._reference()} ne change que par une transition "
                f"(send, sign, cancel...)."
            )
            raise ImmutabilityError(msg)
        if name == "number" and self.number is not None and value != self.number:
            if self.status.is_emitted():
                msg = f"Le numéro {self.number} est définitif : document émis."
                raise ImmutabilityError(msg)
        if (
            self.status.is_emitted()
            and not self._in_transition
            and name not in self.TECHNICAL_FIELDS
        ):
            msg = (
                f"{self._reference()} est émis ({self.status.label}) : "
                f"modification de '{name}' refusée."
            )
            raise ImmutabilityError(msg)

    def _check_link(self, name: str, value: Any) -> None:
        current = getattr(self, name)
        current_id = current.id if current is not None else None
        new_id = value.id if value is not None else None
        if current_id == new_id:
            # Simple rafraîchissement de la référence
            return
        if self._link_is_frozen(name):
            msg = f"Le lien '{name}' de {self._reference()} ne peut plus être modifié."
            raise ImmutabilityError(msg)

    def _link_is_frozen(self, name: str) -> bool:
        return self.status.is_emitted()

    def _reference(self) -> str:
        return f"{self.document_type.value} {self.number or self.id}"

    def _lock_lines(self) -> None:
        for line in self.lines:
            line.lock()
        # Hors validation : pydantic reconstruirait une list ordinaire
        self.__dict__["lines"] = LockedLineList(self.lines)

    def _require_modifiable(self, operation: str) -> None:
        if not self.status.is_modifiable():
            msg = (
                f"{self._reference()} n'est plus modifiable ({self.status.label}) : "
                f"{operation} refusé."
            )
            raise ImmutabilityError(msg)

    # --- Lignes et totaux ---

    @property
    def totals(self) -> Totals:
        """Totaux stockés / Stored totals."""
        return Totals(ht=self.total_ht, vat=self.total_vat, ttc=self.total_ttc)

    @property
    def vat_mode(self) -> VatMode:
        return VatMode.GLOBAL

    @property
    def effective_vat_rate(self) -> Decimal | None:
        """Taux global appliqué aux totaux / Document-wide rate used for totals."""
        return self.vat_rate

    def compute_totals(self) -> Totals:
        """Calcule les totaux depuis les lignes, sans les enregistrer."""
        return aggregate(self.lines, self.vat_mode, self.effective_vat_rate)

    def tax_summaries(self) -> list[TaxSummary]:
        """Récapitulatifs TVA par taux / Tax summaries by rate."""
        return tax_breakdown(self.lines, self.vat_mode, self.effective_vat_rate)

    def recalculate(self) -> tuple[Totals, Totals]:
        """Recalcule et enregistre les totaux depuis les lignes.

        FR: Idempotent : deux appels successifs donnent les mêmes totaux.
            Interdit hors brouillon.
        EN: Idempotent. Only allowed on a draft.

        Returns:
            Les totaux ``(avant, après)``.

        Raises:
            ImmutabilityError: Si le document est émis.
        """
        self._require_modifiable("recalcul")
        before = self.totals
        after = self.compute_totals()
        self.total_ht = after.ht
        self.total_vat = after.vat
        self.total_ttc = after.ttc
        return before, after

    def add_line(self, line: DocumentLine) -> DocumentLine:
        """Ajoute une ligne à un brouillon et recalcule les totaux."""
        self._require_modifiable("ajout de ligne")
        self.lines = [*self.lines, line]
        self.recalculate()
        return line

    def remove_line(self, line_id: str) -> None:
        """Retire une ligne d'un brouillon et recalcule les totaux."""
        self._require_modifiable("suppression de ligne")
        remaining = [line for line in self.lines if line.id != line_id]
        if len(remaining) == len(self.lines):
            msg = f"Ligne {line_id} absente de {self._reference()}."
            raise KeyError(msg)
        self.lines = remaining
        self.recalculate()

    # --- Transitions ---

    def _emission_changes(self) -> dict[str, Any]:
        """Champs recalculés depuis les lignes lors de la sortie du brouillon."""
        totals = self.compute_totals()
        return {"total_ht": totals.ht, "total_vat": totals.vat, "total_ttc": totals.ttc}

    def _resolve_number(self, number: str | None) -> str:
        if self.number is not None:
            if number is not None and number != self.number:
                msg = f"Le numéro {self.number} est définitif : document émis."
                raise ImmutabilityError(msg)
            return self.number
        if not number:
            msg = f"Numéro requis pour émettre {self._reference()}."
            raise GuardViolationError(msg, reasons=[msg])
        return number

    def _transition(
        self,
        target: DocumentStatus,
        action: AuditAction,
        *,
        timestamp: datetime | None = None,
        reason: str | None = None,
        **changes: Any,
    ) -> StatusChange:
        """Applique une transition dont les gardes ont déjà été vérifiées."""
        check_transition(self.status, target)
        if timestamp is None:
            timestamp = _now()

        old_status = self.status
        if old_status.is_modifiable() and target.is_emitted():
            # Les totaux figés à l'émission sont ceux des lignes
            changes = {**self._emission_changes(), **changes}
        self._in_transition = True
        try:
            for field_name, value in changes.items():
                setattr(self, field_name, value)
            self.status = target
            self.updated_at = timestamp
        finally:
            self._in_transition = False

        if target.is_emitted():
            self._lock_lines()

        return StatusChange(
            entity_type=self.document_type,
            entity_id=self.id,
            action=action,
            old_status=old_status.value,
            new_status=target.value,
            timestamp=timestamp,
            number=self.number,
            reason=reason,
        )

    def _record_delivery(
        self,
        timestamp: datetime,
        channel: DeliveryChannel | None,
    ) -> dict[str, Any]:
        changes: dict[str, Any] = {"sent_at": timestamp, "sent_count": self.sent_count + 1}
        if channel is not None:
            changes["delivery_channel"] = channel
        return changes

    def _resend(
        self,
        timestamp: datetime | None,
        channel: DeliveryChannel | None,
    ) -> StatusChange:
        """Renvoi d'un document déjà envoyé : aucun changement de statut."""
        if timestamp is None:
            timestamp = _now()
        for field_name, value in self._record_delivery(timestamp, channel).items():
            setattr(self, field_name, value)
        self.updated_at = timestamp
        return StatusChange(
            entity_type=self.document_type,
            entity_id=self.id,
            action=AuditAction.RESEND,
            old_status=self.status.value,
            new_status=self.status.value,
            timestamp=timestamp,
            number=self.number,
        )

    def _raise_guard(self, operation: str, errors: list[str]) -> None:
        msg = f"{operation} de {self._reference()} impossible : {'; '.join(errors)}"
        raise GuardViolationError(msg, reasons=errors)


class Quote(BaseDocument):
    """Devis.

    FR: Proposition commerciale. Une fois signé, il devient contractuel et
        n'évolue plus que par avenants. ``use_per_line_vat`` sélectionne le
        mode de calcul de la TVA ; absent (documents anciens), il est déduit
        des lignes puis enregistré au prochain recalcul.
    EN: Commercial proposal, contractual once signed; it then only evolves
        through amendments.
    """

    document_type: ClassVar[DocumentType] = DocumentType.QUOTE

    status: QuoteStatus = Field(default=QuoteStatus.DRAFT, description="Statut / Status")
    lines: list[QuoteLine] = Field(default_factory=list, description="Lignes / Lines")
    valid_until: date | None = Field(default=None, description="Date de validité / Valid until")
    use_per_line_vat: bool | None = Field(
        default=None,
        description="TVA par ligne (None : à déduire) / Per-line VAT (None: to detect)",
    )
    deposit_percentage: Decimal = Field(
        default=Decimal("30.00"),
        ge=0,
        le=100,
        description="Acompte en % du TTC / Deposit in % of TTC",
    )
    signed_at: datetime | None = Field(default=None, description="Signature / Signing date")
    signature: str | None = Field(default=None, description="Signature du client / Customer signature")
    refusal_reason: str | None = Field(default=None, description="Motif de refus / Refusal reason")
    cancellation_reason: str | None = Field(
        default=None,
        description="Motif d'annulation / Cancellation reason",
    )

    @property
    def vat_mode(self) -> VatMode:
        if self.use_per_line_vat is None:
            return detect_vat_mode(self.lines)
        return VatMode.PER_LINE if self.use_per_line_vat else VatMode.GLOBAL

    def recalculate(self) -> tuple[Totals, Totals]:
        self._require_modifiable("recalcul")
        if self.use_per_line_vat is None:
            # Mode déduit enregistré une fois pour toutes
            self.use_per_line_vat = detect_vat_mode(self.lines) == VatMode.PER_LINE
        return super().recalculate()

    def _emission_changes(self) -> dict[str, Any]:
        changes = super()._emission_changes()
        if self.use_per_line_vat is None:
            changes["use_per_line_vat"] = self.vat_mode == VatMode.PER_LINE
        return changes

    def deposit_amount(self) -> Decimal:
        """Acompte TTC / Deposit amount incl. tax."""
        return percentage_of(self.total_ttc, self.deposit_percentage)

    def balance_amount(self) -> Decimal:
        """Solde TTC après acompte / Balance after deposit."""
        return self.total_ttc - self.deposit_amount()

    def is_expired(self, today: date | None = None) -> bool:
        """Date de validité dépassée / Validity date passed."""
        if self.valid_until is None:
            return False
        return (today or date.today()) > self.valid_until

    def validate_can_be_sent(self) -> None:
        errors: list[str] = []
        totals = self.compute_totals()
        if not self.status.can_be_sent():
            errors.append(f"Statut {self.status.label} : envoi impossible.")
        if not self.lines:
            errors.append("Le devis doit comporter au moins une ligne.")
        if totals.ttc <= ZERO:
            errors.append("Le montant TTC doit être strictement positif.")
        if errors:
            self._raise_guard("Envoi", errors)

    def validate_can_be_signed(self, today: date | None = None) -> None:
        """Vérifie qu'un devis peut être signé.

        Raises:
            GuardViolationError: Avec la liste des contrôles en échec.
        """
        errors: list[str] = []
        totals = self.compute_totals()
        if self.status != QuoteStatus.SENT:
            errors.append(
                f"Le devis ne peut être signé que depuis l'état « Envoyé » "
                f"(état actuel : « {self.status.label} »)."
            )
        if not self.lines:
            errors.append("Le devis doit comporter au moins une ligne.")
        if totals.ht <= ZERO:
            errors.append("Le montant HT doit être strictement positif.")
        if totals.ttc <= ZERO:
            errors.append("Le montant TTC doit être strictement positif.")
        if self.status.is_cancelled():
            errors.append("Un devis annulé ne peut pas être signé.")
        if self.is_expired(today):
            errors.append(f"Le devis a expiré le {self.valid_until}.")
        if errors:
            self._raise_guard("Signature", errors)

    def send(
        self,
        number: str | None = None,
        *,
        channel: DeliveryChannel | None = None,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Envoie le devis (DRAFT → SENT) ou le renvoie (SENT, SIGNED)."""
        if self.status != QuoteStatus.DRAFT:
            if not self.status.can_be_sent():
                check_transition(self.status, QuoteStatus.SENT)
            return self._resend(timestamp, channel)
        check_transition(self.status, QuoteStatus.SENT)
        self.validate_can_be_sent()
        number = self._resolve_number(number)
        timestamp = timestamp or _now()
        return self._transition(
            QuoteStatus.SENT,
            AuditAction.SEND,
            timestamp=timestamp,
            number=number,
            **self._record_delivery(timestamp, channel),
        )

    def sign(
        self,
        signature: str | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Signature client (SENT → SIGNED)."""
        timestamp = timestamp or _now()
        check_transition(self.status, QuoteStatus.SIGNED)
        self.validate_can_be_signed(timestamp.date())
        return self._transition(
            QuoteStatus.SIGNED,
            AuditAction.SIGN,
            timestamp=timestamp,
            signed_at=timestamp,
            signature=signature,
        )

    def refuse(self, reason: str | None = None, *, timestamp: datetime | None = None) -> StatusChange:
        """Refus client (SENT → REFUSED)."""
        return self._transition(
            QuoteStatus.REFUSED,
            AuditAction.REFUSE,
            timestamp=timestamp,
            reason=reason,
            refusal_reason=reason,
        )

    def cancel(self, reason: str | None = None, *, timestamp: datetime | None = None) -> StatusChange:
        """Annulation (DRAFT, SENT → CANCELLED)."""
        return self._transition(
            QuoteStatus.CANCELLED,
            AuditAction.CANCEL,
            timestamp=timestamp,
            reason=reason,
            cancellation_reason=reason,
        )

    def expire(self, *, timestamp: datetime | None = None) -> StatusChange:
        """Expiration (DRAFT, SENT → EXPIRED), si la date de validité est dépassée."""
        timestamp = timestamp or _now()
        check_transition(self.status, QuoteStatus.EXPIRED)
        if not self.is_expired(timestamp.date()):
            self._raise_guard(
                "Expiration",
                [f"Date de validité non dépassée ({self.valid_until})."],
            )
        return self._transition(QuoteStatus.EXPIRED, AuditAction.EXPIRE, timestamp=timestamp)


class Amendment(BaseDocument):
    """Avenant à un devis signé.

    FR: Chaque ligne enregistre un delta par rapport au devis (ajout ou
        modification d'une ligne existante). Le devis signé n'est jamais
        modifié : sa version corrigée se lit via ``QuoteCorrection``.
        Le mode de TVA est celui du devis.
    EN: Each line records a delta against the quote. The signed quote is
        never modified; its corrected view is read through
        ``QuoteCorrection``. The VAT mode follows the quote.
    """

    document_type: ClassVar[DocumentType] = DocumentType.AMENDMENT
    LINK_FIELDS: ClassVar[frozenset[str]] = frozenset({"quote"})

    status: AmendmentStatus = Field(default=AmendmentStatus.DRAFT, description="Statut / Status")
    quote: Quote = Field(..., description="Devis amendé / Amended quote")
    lines: list[AmendmentLine] = Field(default_factory=list, description="Lignes / Lines")
    reason: str | None = Field(default=None, description="Objet de l'avenant / Amendment purpose")
    signed_at: datetime | None = Field(default=None, description="Signature / Signing date")
    signature: str | None = Field(default=None, description="Signature du client / Customer signature")
    rejection_reason: str | None = Field(default=None, description="Motif de rejet / Rejection reason")
    cancellation_reason: str | None = Field(
        default=None,
        description="Motif d'annulation / Cancellation reason",
    )

    def _link_is_frozen(self, name: str) -> bool:
        return True

    @property
    def vat_mode(self) -> VatMode:
        return self.quote.vat_mode

    @property
    def effective_vat_rate(self) -> Decimal | None:
        if has_vat(self.vat_rate):
            return self.vat_rate
        return self.quote.vat_rate

    def _line_rate(self, line: AmendmentLine) -> Decimal | None:
        return applicable_vat_rate(line, self.quote, self.vat_rate)

    def compute_totals(self) -> Totals:
        return aggregate(
            self.lines,
            self.vat_mode,
            self.effective_vat_rate,
            rate_resolver=self._line_rate,  # type: ignore[arg-type]
        )

    def tax_summaries(self) -> list[TaxSummary]:
        return tax_breakdown(
            self.lines,
            self.vat_mode,
            self.effective_vat_rate,
            rate_resolver=self._line_rate,  # type: ignore[arg-type]
        )

    def add_line(self, line: DocumentLine) -> DocumentLine:
        if isinstance(line, AmendmentLine):
            guards.ensure_source_line_belongs(line, self.quote)
        return super().add_line(line)

    def delta_ht(self) -> Decimal:
        """Somme des deltas HT / Sum of HT deltas."""
        return round_money(sum((line.delta for line in self.lines), ZERO))

    def delta_ttc(self) -> Decimal:
        """Somme des deltas TTC, chacun calculé avec un seul taux."""
        return round_money(
            sum((delta_ttc(line, self.quote, self.vat_rate) for line in self.lines), ZERO)
        )

    def validate_can_be_sent(self) -> None:
        errors: list[str] = []
        if not self.status.can_be_sent():
            errors.append(f"Statut {self.status.label} : envoi impossible.")
        if not self.lines:
            errors.append("L'avenant doit comporter au moins une ligne.")
        if errors:
            self._raise_guard("Envoi", errors)

    def validate_can_be_signed(self, today: date | None = None) -> None:
        """Vérifie qu'un avenant peut être signé.

        Raises:
            GuardViolationError: Avec la liste des contrôles en échec.
        """
        errors: list[str] = []
        totals = self.compute_totals()
        if self.status != AmendmentStatus.SENT:
            errors.append(
                f"L'avenant ne peut être signé que depuis l'état « Envoyé » "
                f"(état actuel : « {self.status.label} »)."
            )
        if not self.lines:
            errors.append("L'avenant doit comporter au moins une ligne.")
        if totals.ht <= ZERO:
            errors.append("Le montant HT doit être strictement positif.")
        if totals.ttc <= ZERO:
            errors.append("Le montant TTC doit être strictement positif.")
        if self.status.is_cancelled():
            errors.append("Un avenant annulé ne peut pas être signé.")
        errors.extend(guards.validate_amendment_quote_for_signature(self, today))
        if errors:
            self._raise_guard("Signature", errors)

    def send(
        self,
        number: str | None = None,
        *,
        channel: DeliveryChannel | None = None,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Envoie l'avenant (DRAFT → SENT) ou le renvoie (SENT, SIGNED)."""
        if self.status != AmendmentStatus.DRAFT:
            if not self.status.can_be_sent():
                check_transition(self.status, AmendmentStatus.SENT)
            return self._resend(timestamp, channel)
        check_transition(self.status, AmendmentStatus.SENT)
        self.validate_can_be_sent()
        number = self._resolve_number(number)
        timestamp = timestamp or _now()
        return self._transition(
            AmendmentStatus.SENT,
            AuditAction.SEND,
            timestamp=timestamp,
            number=number,
            **self._record_delivery(timestamp, channel),
        )

    def sign(
        self,
        signature: str | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Signature client (SENT → SIGNED) : l'avenant devient opposable."""
        timestamp = timestamp or _now()
        check_transition(self.status, AmendmentStatus.SIGNED)
        self.validate_can_be_signed(timestamp.date())
        return self._transition(
            AmendmentStatus.SIGNED,
            AuditAction.SIGN,
            timestamp=timestamp,
            signed_at=timestamp,
            signature=signature,
        )

    def reject(self, reason: str | None = None, *, timestamp: datetime | None = None) -> StatusChange:
        """Rejet client (SENT → REJECTED)."""
        return self._transition(
            AmendmentStatus.REJECTED,
            AuditAction.REJECT,
            timestamp=timestamp,
            reason=reason,
            rejection_reason=reason,
        )

    def cancel(self, reason: str | None = None, *, timestamp: datetime | None = None) -> StatusChange:
        """Annulation (DRAFT, SENT → CANCELLED)."""
        return self._transition(
            AmendmentStatus.CANCELLED,
            AuditAction.CANCEL,
            timestamp=timestamp,
            reason=reason,
            cancellation_reason=reason,
        )


class Invoice(BaseDocument):
    """Facture.

    FR: Générée depuis un devis signé (1:1) ou saisie directement. Le mode
        et le taux de TVA suivent le devis lié. Une facture émise ne se
        corrige que par avoir.
    EN: Generated from a signed quote (1:1) or entered directly. VAT mode
        and rate follow the linked quote. An emitted invoice is only
        corrected through credit notes.
    """

    document_type: ClassVar[DocumentType] = DocumentType.INVOICE
    LINK_FIELDS: ClassVar[frozenset[str]] = frozenset({"quote"})

    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, description="Statut / Status")
    quote: Quote | None = Field(default=None, description="Devis facturé / Invoiced quote")
    lines: list[InvoiceLine] = Field(default_factory=list, description="Lignes / Lines")
    use_per_line_vat: bool | None = Field(
        default=None,
        description="TVA par ligne, sans devis lié / Per-line VAT without a quote",
    )
    due_date: date | None = Field(default=None, description="Échéance / Due date")
    deposit_amount: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Acompte déjà versé, déduit du montant dû / Deposit already paid",
    )
    issued_at: datetime | None = Field(default=None, description="Émission / Issue date")
    paid_at: datetime | None = Field(default=None, description="Paiement / Payment date")
    paid_amount: Decimal | None = Field(default=None, description="Montant payé / Paid amount")
    cancellation_reason: str | None = Field(
        default=None,
        description="Motif d'annulation / Cancellation reason",
    )

    @property
    def vat_mode(self) -> VatMode:
        if self.quote is not None:
            return self.quote.vat_mode
        if self.use_per_line_vat is None:
            return detect_vat_mode(self.lines)
        return VatMode.PER_LINE if self.use_per_line_vat else VatMode.GLOBAL

    @property
    def effective_vat_rate(self) -> Decimal | None:
        if self.vat_rate is not None:
            return self.vat_rate
        return self.quote.vat_rate if self.quote is not None else None

    def amount_due(self) -> Decimal:
        """Montant à payer : TTC moins acompte / TTC minus deposit."""
        return self.total_ttc - self.deposit_amount

    def is_overdue(self, today: date | None = None) -> bool:
        """Échéance dépassée sur une facture émise non payée."""
        if self.due_date is None or not self.status.can_become_overdue():
            return False
        return (today or date.today()) > self.due_date

    def final_balance(self, credit_notes: Iterable[CreditNote]) -> Decimal:
        """Solde après avoirs émis (stockés en négatif) / Balance after credit notes."""
        credited = sum(
            (note.total_ttc for note in credit_notes if note.status.counts_against_invoice()),
            ZERO,
        )
        return round_money(self.total_ttc + credited)

    def validate_can_be_issued(self) -> None:
        """Vérifie qu'une facture peut être émise.

        Raises:
            GuardViolationError: Avec la liste des contrôles en échec.
        """
        errors: list[str] = []
        totals = self.compute_totals()
        if not self.status.can_be_issued():
            errors.append(f"Statut {self.status.label} : émission impossible.")
        if not self.lines:
            errors.append("La facture doit comporter au moins une ligne.")
        if totals.ht <= ZERO:
            errors.append("Le montant HT doit être strictement positif.")
        if totals.ttc <= ZERO:
            errors.append("Le montant TTC doit être strictement positif.")
        if self.due_date is None:
            errors.append("La date d'échéance est obligatoire.")
        if errors:
            self._raise_guard("Émission", errors)

    def issue(self, number: str | None = None, *, timestamp: datetime | None = None) -> StatusChange:
        """Émission (DRAFT → ISSUED) : numéro attribué, facture figée."""
        check_transition(self.status, InvoiceStatus.ISSUED)
        self.validate_can_be_issued()
        number = self._resolve_number(number)
        timestamp = timestamp or _now()
        return self._transition(
            InvoiceStatus.ISSUED,
            AuditAction.ISSUE,
            timestamp=timestamp,
            number=number,
            issued_at=timestamp,
        )

    def send(
        self,
        number: str | None = None,
        *,
        channel: DeliveryChannel | None = None,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Envoi (DRAFT, ISSUED → SENT) ou renvoi (SENT, OVERDUE)."""
        timestamp = timestamp or _now()
        if self.status in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE):
            return self._resend(timestamp, channel)
        check_transition(self.status, InvoiceStatus.SENT)
        changes = self._record_delivery(timestamp, channel)
        if self.status == InvoiceStatus.DRAFT:
            self.validate_can_be_issued()
            changes["number"] = self._resolve_number(number)
            changes["issued_at"] = timestamp
        return self._transition(InvoiceStatus.SENT, AuditAction.SEND, timestamp=timestamp, **changes)

    def mark_paid(
        self,
        amount: Decimal | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Paiement reçu (ISSUED, SENT, OVERDUE → PAID)."""
        timestamp = timestamp or _now()
        return self._transition(
            InvoiceStatus.PAID,
            AuditAction.MARK_PAID,
            timestamp=timestamp,
            paid_at=timestamp,
            paid_amount=amount if amount is not None else self.amount_due(),
        )

    def mark_overdue(self, *, timestamp: datetime | None = None) -> StatusChange:
        """Retard de paiement (ISSUED, SENT → OVERDUE), échéance dépassée."""
        timestamp = timestamp or _now()
        check_transition(self.status, InvoiceStatus.OVERDUE)
        if not self.is_overdue(timestamp.date()):
            self._raise_guard("Passage en retard", [f"Échéance non dépassée ({self.due_date})."])
        return self._transition(InvoiceStatus.OVERDUE, AuditAction.MARK_OVERDUE, timestamp=timestamp)

    def cancel(
        self,
        reason: str | None = None,
        *,
        credit_notes: Iterable[CreditNote] = (),
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Annulation : brouillon, ou facture émise intégralement créditée."""
        check_transition(self.status, InvoiceStatus.CANCELLED)
        if self.status.is_emitted():
            guards.ensure_invoice_fully_credited(self, credit_notes)
        return self._transition(
            InvoiceStatus.CANCELLED,
            AuditAction.CANCEL,
            timestamp=timestamp,
            reason=reason,
            cancellation_reason=reason,
        )


class CreditNote(BaseDocument):
    """Avoir.

    FR: Corrige une facture émise. Les montants sont stockés en négatif ; le
        mode et le taux de TVA suivent la facture. Le cumul des avoirs émis
        d'une facture ne peut dépasser son TTC.
    EN: Corrects an emitted invoice. Amounts are stored negative; VAT mode
        and rate follow the invoice.
    """

    document_type: ClassVar[DocumentType] = DocumentType.CREDIT_NOTE
    LINK_FIELDS: ClassVar[frozenset[str]] = frozenset({"invoice"})

    status: CreditNoteStatus = Field(default=CreditNoteStatus.DRAFT, description="Statut / Status")
    invoice: Invoice = Field(..., description="Facture corrigée / Corrected invoice")
    lines: list[CreditNoteLine] = Field(default_factory=list, description="Lignes / Lines")
    reason: str = Field(default="", max_length=500, description="Motif de l'avoir / Reason")
    issued_at: datetime | None = Field(default=None, description="Émission / Issue date")
    refunded_at: datetime | None = Field(default=None, description="Remboursement / Refund date")
    cancellation_reason: str | None = Field(
        default=None,
        description="Motif d'annulation / Cancellation reason",
    )

    def add_line(self, line: DocumentLine) -> DocumentLine:
        if isinstance(line, CreditNoteLine):
            guards.ensure_source_line_belongs(line, self.invoice)
        return super().add_line(line)

    @property
    def vat_mode(self) -> VatMode:
        return self.invoice.vat_mode

    @property
    def effective_vat_rate(self) -> Decimal | None:
        if self.vat_rate is not None:
            return self.vat_rate
        return self.invoice.effective_vat_rate

    def issue(
        self,
        siblings: Iterable[CreditNote] = (),
        number: str | None = None,
        *,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Émission (DRAFT → ISSUED), sous réserve du plafond de la facture.

        Args:
            siblings: Autres avoirs de la même facture.
            number: Numéro à attribuer.
            timestamp: Horodatage (UTC now par défaut).
        """
        check_transition(self.status, CreditNoteStatus.ISSUED)
        guards.ensure_credit_note_can_be_issued(self, siblings)
        number = self._resolve_number(number)
        timestamp = timestamp or _now()
        return self._transition(
            CreditNoteStatus.ISSUED,
            AuditAction.ISSUE,
            timestamp=timestamp,
            number=number,
            issued_at=timestamp,
        )

    def send(
        self,
        *,
        channel: DeliveryChannel | None = None,
        timestamp: datetime | None = None,
    ) -> StatusChange:
        """Envoi (ISSUED → SENT) ou renvoi (SENT)."""
        timestamp = timestamp or _now()
        if self.status == CreditNoteStatus.SENT:
            return self._resend(timestamp, channel)
        return self._transition(
            CreditNoteStatus.SENT,
            AuditAction.SEND,
            timestamp=timestamp,
            **self._record_delivery(timestamp, channel),
        )

    def refund(self, *, timestamp: datetime | None = None) -> StatusChange:
        """Remboursement (ISSUED, SENT → REFUNDED)."""
        timestamp = timestamp or _now()
        return self._transition(
            CreditNoteStatus.REFUNDED,
            AuditAction.REFUND,
            timestamp=timestamp,
            refunded_at=timestamp,
        )

    def cancel(self, reason: str | None = None, *, timestamp: datetime | None = None) -> StatusChange:
        """Annulation d'un brouillon (DRAFT → CANCELLED)."""
        return self._transition(
            CreditNoteStatus.CANCELLED,
            AuditAction.CANCEL,
            timestamp=timestamp,
            reason=reason,
            cancellation_reason=reason,
        )
