"""Tests des machines à états des documents.

FR: Vérifie les graphes de transitions, les prédicats de statut, les
    statuts terminaux et les métadonnées d'affichage.
EN: Verifies transition graphs, status predicates, terminal statuses and
    display metadata.
"""

import pytest

from docflow_fr.lifecycle.errors import GuardViolationError, TransitionNotAllowedError
from docflow_fr.lifecycle.statuses import (
    STATUS_METADATA,
    TERMINAL_STATUSES,
    TRANSITIONS,
    AmendmentStatus,
    CreditNoteStatus,
    DocumentStatus,
    InvoiceStatus,
    QuoteStatus,
    check_transition,
)

ALL_STATUS_TYPES = [QuoteStatus, AmendmentStatus, InvoiceStatus, CreditNoteStatus]


class TestTransitions:
    """Tests des transitions valides et invalides."""

    @pytest.mark.parametrize(
        "source,target",
        [
            # Devis
            (QuoteStatus.DRAFT, QuoteStatus.SENT),
            (QuoteStatus.DRAFT, QuoteStatus.CANCELLED),
            (QuoteStatus.DRAFT, QuoteStatus.EXPIRED),
            (QuoteStatus.SENT, QuoteStatus.SIGNED),
            (QuoteStatus.SENT, QuoteStatus.REFUSED),
            (QuoteStatus.SENT, QuoteStatus.EXPIRED),
            (QuoteStatus.SENT, QuoteStatus.CANCELLED),
            # Avenants
            (AmendmentStatus.DRAFT, AmendmentStatus.SENT),
            (AmendmentStatus.DRAFT, AmendmentStatus.CANCELLED),
            (AmendmentStatus.SENT, AmendmentStatus.SIGNED),
            (AmendmentStatus.SENT, AmendmentStatus.REJECTED),
            (AmendmentStatus.SENT, AmendmentStatus.CANCELLED),
            # Factures
            (InvoiceStatus.DRAFT, InvoiceStatus.ISSUED),
            (InvoiceStatus.DRAFT, InvoiceStatus.SENT),
            (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED),
            (InvoiceStatus.ISSUED, InvoiceStatus.SENT),
            (InvoiceStatus.ISSUED, InvoiceStatus.PAID),
            (InvoiceStatus.ISSUED, InvoiceStatus.OVERDUE),
            (InvoiceStatus.SENT, InvoiceStatus.PAID),
            (InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
            (InvoiceStatus.OVERDUE, InvoiceStatus.PAID),
            # Avoirs
            (CreditNoteStatus.DRAFT, CreditNoteStatus.ISSUED),
            (CreditNoteStatus.DRAFT, CreditNoteStatus.CANCELLED),
            (CreditNoteStatus.ISSUED, CreditNoteStatus.SENT),
            (CreditNoteStatus.ISSUED, CreditNoteStatus.REFUNDED),
            (CreditNoteStatus.SENT, CreditNoteStatus.REFUNDED),
        ],
    )
    def test_valid_transition(self, source: DocumentStatus, target: DocumentStatus) -> None:
        assert source.can_transition_to(target)
        check_transition(source, target)

    @pytest.mark.parametrize(
        "source,target",
        [
            (QuoteStatus.DRAFT, QuoteStatus.SIGNED),
            (QuoteStatus.SIGNED, QuoteStatus.CANCELLED),
            (QuoteStatus.REFUSED, QuoteStatus.SENT),
            (AmendmentStatus.DRAFT, AmendmentStatus.SIGNED),
            (AmendmentStatus.SIGNED, AmendmentStatus.CANCELLED),
            (InvoiceStatus.PAID, InvoiceStatus.CANCELLED),
            (InvoiceStatus.DRAFT, InvoiceStatus.PAID),
            (CreditNoteStatus.ISSUED, CreditNoteStatus.CANCELLED),
            (CreditNoteStatus.DRAFT, CreditNoteStatus.SENT),
        ],
    )
    def test_invalid_transition_raises(self, source: DocumentStatus, target: DocumentStatus) -> None:
        assert not source.can_transition_to(target)
        with pytest.raises(TransitionNotAllowedError, match="Transition non autorisée"):
            check_transition(source, target)

    def test_cross_type_transition_refused(self) -> None:
        """Deux statuts de types différents ne se mélangent pas, même de même valeur."""
        with pytest.raises(TransitionNotAllowedError):
            check_transition(QuoteStatus.DRAFT, InvoiceStatus.SENT)

    def test_error_lists_allowed_targets(self) -> None:
        with pytest.raises(TransitionNotAllowedError, match="sent"):
            check_transition(QuoteStatus.DRAFT, QuoteStatus.REFUSED)

    def test_transition_error_is_guard_violation(self) -> None:
        assert issubclass(TransitionNotAllowedError, GuardViolationError)
        assert issubclass(TransitionNotAllowedError, RuntimeError)


class TestTerminalStatuses:
    """Tests des statuts terminaux dérivés du graphe."""

    @pytest.mark.parametrize(
        "status_type,expected",
        [
            (
                QuoteStatus,
                {QuoteStatus.SIGNED, QuoteStatus.REFUSED, QuoteStatus.EXPIRED, QuoteStatus.CANCELLED},
            ),
            (
                AmendmentStatus,
                {AmendmentStatus.SIGNED, AmendmentStatus.REJECTED, AmendmentStatus.CANCELLED},
            ),
            (InvoiceStatus, {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
            (CreditNoteStatus, {CreditNoteStatus.REFUNDED, CreditNoteStatus.CANCELLED}),
        ],
    )
    def test_terminal_sets(self, status_type: type[DocumentStatus], expected: set) -> None:
        assert TERMINAL_STATUSES[status_type] == frozenset(expected)
        for status in status_type:
            assert status.is_final() == (status in expected)

    @pytest.mark.parametrize("status_type", ALL_STATUS_TYPES)
    def test_every_status_in_graph(self, status_type: type[DocumentStatus]) -> None:
        assert set(TRANSITIONS[status_type]) == set(status_type)


class TestPredicates:
    """Tests des prédicats communs et propres à chaque type."""

    @pytest.mark.parametrize("status_type", ALL_STATUS_TYPES)
    def test_only_draft_is_modifiable(self, status_type: type[DocumentStatus]) -> None:
        for status in status_type:
            assert status.is_modifiable() == (status.name == "DRAFT")
            assert status.is_emitted() != status.is_modifiable()

    @pytest.mark.parametrize("status_type", ALL_STATUS_TYPES)
    def test_cancelled_is_emitted(self, status_type: type[DocumentStatus]) -> None:
        cancelled = status_type["CANCELLED"]
        assert cancelled.is_emitted()
        assert cancelled.is_cancelled()

    @pytest.mark.parametrize("status_type", ALL_STATUS_TYPES)
    def test_documents_never_deleted(self, status_type: type[DocumentStatus]) -> None:
        assert not any(status.can_be_deleted() for status in status_type)

    def test_quote_predicates(self) -> None:
        assert QuoteStatus.SIGNED.is_contractual()
        assert QuoteStatus.SIGNED.can_receive_amendment()
        assert QuoteStatus.SIGNED.can_generate_invoice()
        assert not QuoteStatus.SENT.can_receive_amendment()
        assert QuoteStatus.SENT.can_be_signed()
        assert not QuoteStatus.DRAFT.can_be_signed()
        assert QuoteStatus.SENT.can_be_refused()
        assert QuoteStatus.DRAFT.can_expire()
        assert not QuoteStatus.SIGNED.can_expire()
        assert QuoteStatus.SIGNED.can_be_sent()
        assert not QuoteStatus.CANCELLED.can_be_sent()

    def test_amendment_predicates(self) -> None:
        assert AmendmentStatus.SENT.can_be_signed()
        assert AmendmentStatus.SENT.can_be_rejected()
        assert AmendmentStatus.SIGNED.is_signed()
        assert AmendmentStatus.DRAFT.can_be_cancelled()
        assert not AmendmentStatus.SIGNED.can_be_cancelled()

    def test_invoice_predicates(self) -> None:
        assert InvoiceStatus.DRAFT.can_be_issued()
        assert not InvoiceStatus.ISSUED.can_be_issued()
        assert InvoiceStatus.OVERDUE.can_be_marked_paid()
        assert InvoiceStatus.SENT.can_become_overdue()
        assert not InvoiceStatus.PAID.can_become_overdue()
        assert InvoiceStatus.PAID.can_create_credit_note()
        assert not InvoiceStatus.DRAFT.can_create_credit_note()
        assert not InvoiceStatus.CANCELLED.can_create_credit_note()
        assert InvoiceStatus.PAID.is_paid()

    def test_credit_note_predicates(self) -> None:
        assert CreditNoteStatus.DRAFT.can_be_issued()
        assert CreditNoteStatus.ISSUED.can_be_refunded()
        assert CreditNoteStatus.ISSUED.counts_against_invoice()
        assert CreditNoteStatus.REFUNDED.counts_against_invoice()
        assert not CreditNoteStatus.DRAFT.counts_against_invoice()
        assert not CreditNoteStatus.CANCELLED.counts_against_invoice()


class TestStatusMetadata:
    """Tests des métadonnées des statuts."""

    @pytest.mark.parametrize("status_type", ALL_STATUS_TYPES)
    def test_all_statuses_have_metadata(self, status_type: type[DocumentStatus]) -> None:
        """Chaque statut a un libellé et une couleur."""
        for status in status_type:
            info = STATUS_METADATA[status_type][status]
            assert info.label
            assert info.color
            assert status.label == info.label
            assert status.color == info.color

    def test_same_value_different_labels(self) -> None:
        """« draft » n'a pas la même couleur pour un devis et un avenant."""
        assert QuoteStatus.DRAFT == AmendmentStatus.DRAFT
        assert QuoteStatus.DRAFT.color == "secondary"
        assert AmendmentStatus.DRAFT.color == "warning"

    @pytest.mark.parametrize(
        "status,label",
        [
            (QuoteStatus.SIGNED, "Signé"),
            (InvoiceStatus.ISSUED, "Émise"),
            (InvoiceStatus.OVERDUE, "En retard"),
            (CreditNoteStatus.REFUNDED, "Remboursé"),
        ],
    )
    def test_labels(self, status: DocumentStatus, label: str) -> None:
        assert status.label == label
