"""
Transfer protocol tests.

Verifies:
- Custody only moves on accept, never on propose or reject
- Partial transfers leave current_area empty until one area holds everything
- Custody is re-checked at accept time
- A transfer is processed at most once
"""

import logging

import pytest

from prodtrack.errors import InsufficientCustody, InvalidState, NotFound, ValidationError
from prodtrack.extensions import db
from prodtrack.models import AreaPieceRecord, HistoryEvent
from prodtrack.services import ledger_service, lifecycle_service, notification_service, transfer_service
from prodtrack.services.notification_service import PARTIAL_TRANSFER_WARNING, TRANSFER_CREATED, TRANSFER_PROCESSED

from conftest import FailingSink


def _send(unit, user, to_area, pieces, from_area='corte'):
    return transfer_service.propose_transfer(
        unit_id=unit.id, from_area=from_area, to_area=to_area, pieces=pieces, created_by=user.id,
    )


def _custody(unit):
    return {r.area: r.pieces for r in ledger_service.get_area_records(unit.id)}


class TestPartialTransfer:

    def test_partial_then_complete_transfer(self, order, corte_user, bordado_user):
        assert order.current_area == 'corte'

        first = _send(order, corte_user, 'bordado', 30)
        transfer_service.accept_transfer(first.id, bordado_user.id)

        assert _custody(order) == {'bordado': 30, 'corte': 70}
        assert order.current_area is None
        assert ledger_service.check_conservation(order)

        second = _send(order, corte_user, 'bordado', 70)
        transfer_service.accept_transfer(second.id, bordado_user.id)

        assert _custody(order) == {'bordado': 100}
        assert ledger_service.custody_of(order.id, 'corte') == 0
        assert order.current_area == 'bordado'
        assert ledger_service.find_conservation_violations() == []

    def test_partial_accept_is_labelled_in_history(self, order, corte_user, bordado_user):
        transfer = _send(order, corte_user, 'bordado', 30)
        transfer_service.accept_transfer(transfer.id, bordado_user.id)

        accepted = db.session.query(HistoryEvent).filter_by(unit_id=order.id, action='transfer_accepted').one()
        assert accepted.description.endswith('(partial transfer)')
        assert accepted.from_area == 'corte'
        assert accepted.to_area == 'bordado'
        assert accepted.pieces == 30

    def test_full_accept_is_not_labelled_partial(self, order, corte_user, bordado_user):
        transfer = _send(order, corte_user, 'bordado', 100)
        transfer_service.accept_transfer(transfer.id, bordado_user.id)

        accepted = db.session.query(HistoryEvent).filter_by(unit_id=order.id, action='transfer_accepted').one()
        assert 'partial' not in accepted.description


class TestProposal:

    def test_propose_does_not_move_pieces(self, order, corte_user):
        transfer = _send(order, corte_user, 'bordado', 40)

        assert transfer.status == 'pending'
        assert _custody(order) == {'corte': 100}
        assert [t.id for t in transfer_service.pending_for_area('bordado')] == [transfer.id]
        assert [t.id for t in transfer_service.pending_for_unit(order.id)] == [transfer.id]

    def test_pending_total_may_exceed_custody(self, order, corte_user):
        _send(order, corte_user, 'bordado', 60)
        _send(order, corte_user, 'ensamble', 60)
        assert len(transfer_service.pending_for_unit(order.id)) == 2

    def test_more_than_held_is_rejected(self, order, corte_user):
        with pytest.raises(InsufficientCustody):
            _send(order, corte_user, 'bordado', 101)

    def test_source_without_pieces_is_rejected(self, order, bordado_user):
        with pytest.raises(InsufficientCustody):
            _send(order, bordado_user, 'ensamble', 1, from_area='bordado')

    @pytest.mark.parametrize('pieces', [0, -5, True, 2.5, '10'])
    def test_pieces_must_be_positive_integer(self, order, corte_user, pieces):
        with pytest.raises(ValidationError):
            _send(order, corte_user, 'bordado', pieces)

    def test_same_area_is_rejected(self, order, corte_user):
        with pytest.raises(ValidationError):
            _send(order, corte_user, 'corte', 10)

    def test_unknown_area_is_rejected(self, order, corte_user):
        with pytest.raises(ValidationError):
            _send(order, corte_user, 'lavanderia', 10)

    def test_closed_unit_rejects_transfers(self, order, corte_user, admin_user):
        lifecycle_service.delete_unit(order.id, admin_user.id)
        with pytest.raises(InvalidState):
            _send(order, corte_user, 'bordado', 10)

    def test_proposal_notifies_destination(self, order, corte_user, sink):
        _send(order, corte_user, 'bordado', 10)

        assert sink.kinds() == [TRANSFER_CREATED]
        assert sink.events[0].target_areas == ('bordado',)


class TestAccept:

    def test_accept_rechecks_custody(self, order, corte_user, bordado_user, ensamble_user):
        first = _send(order, corte_user, 'bordado', 60)
        second = _send(order, corte_user, 'ensamble', 60)

        transfer_service.accept_transfer(first.id, bordado_user.id)
        with pytest.raises(InsufficientCustody):
            transfer_service.accept_transfer(second.id, ensamble_user.id)

        # The failed accept rolled back completely
        assert transfer_service.get_transfer(second.id).status == 'pending'
        assert _custody(order) == {'bordado': 60, 'corte': 40}
        assert ledger_service.check_conservation(order)

    def test_accept_twice_is_rejected(self, order, corte_user, bordado_user):
        transfer = _send(order, corte_user, 'bordado', 10)
        transfer_service.accept_transfer(transfer.id, bordado_user.id)

        with pytest.raises(InvalidState):
            transfer_service.accept_transfer(transfer.id, bordado_user.id)
        assert _custody(order) == {'bordado': 10, 'corte': 90}

    def test_accept_stamps_processor(self, order, corte_user, bordado_user):
        transfer = _send(order, corte_user, 'bordado', 10)
        accepted = transfer_service.accept_transfer(transfer.id, bordado_user.id)

        assert accepted.status == 'accepted'
        assert accepted.processed_by_user_id == bordado_user.id
        assert accepted.processed_at is not None

    def test_unknown_transfer(self, bordado_user, db_session):
        with pytest.raises(NotFound):
            transfer_service.accept_transfer(999, bordado_user.id)

    def test_partial_accept_warns_destination(self, order, corte_user, bordado_user, sink):
        transfer = _send(order, corte_user, 'bordado', 30)
        sink.events.clear()

        transfer_service.accept_transfer(transfer.id, bordado_user.id)

        assert sink.kinds() == [TRANSFER_PROCESSED, PARTIAL_TRANSFER_WARNING]
        assert sink.events[0].target_user_ids == (corte_user.id,)
        assert sink.events[1].target_areas == ('bordado',)
        assert '30 of 100' in sink.events[1].message

    def test_failed_accept_sends_nothing(self, order, corte_user, bordado_user, ensamble_user, sink):
        first = _send(order, corte_user, 'bordado', 60)
        second = _send(order, corte_user, 'ensamble', 60)
        transfer_service.accept_transfer(first.id, bordado_user.id)
        sink.events.clear()

        with pytest.raises(InsufficientCustody):
            transfer_service.accept_transfer(second.id, ensamble_user.id)
        assert sink.events == []

    def test_sink_failure_does_not_undo_accept(self, app, order, corte_user, bordado_user, caplog):
        transfer = _send(order, corte_user, 'bordado', 30)
        notification_service.set_sink(app, FailingSink())

        with caplog.at_level(logging.WARNING):
            transfer_service.accept_transfer(transfer.id, bordado_user.id)

        assert transfer_service.get_transfer(transfer.id).status == 'accepted'
        assert _custody(order) == {'bordado': 30, 'corte': 70}
        assert 'Dropped notification' in caplog.text

    def test_accept_starts_approved_reposition(self, reposition, corte_user, bordado_user, admin_user):
        lifecycle_service.approve_reposition(reposition.id, admin_user.id, 'aprobado')
        transfer = _send(reposition, corte_user, 'bordado', 20)

        transfer_service.accept_transfer(transfer.id, bordado_user.id)

        assert reposition.status == 'en_proceso'
        actions = [e.action for e in db.session.query(HistoryEvent).filter_by(unit_id=reposition.id)]
        assert 'started' in actions


class TestReject:

    def test_reject_leaves_ledger_untouched(self, order, corte_user, bordado_user):
        before = [(r.area, r.pieces) for r in db.session.query(AreaPieceRecord).filter_by(unit_id=order.id)]
        transfer = _send(order, corte_user, 'bordado', 50)

        rejected = transfer_service.reject_transfer(transfer.id, bordado_user.id)

        assert rejected.status == 'rejected'
        after = [(r.area, r.pieces) for r in db.session.query(AreaPieceRecord).filter_by(unit_id=order.id)]
        assert after == before
        assert ledger_service.custody_of(order.id, 'corte') == 100
        assert db.session.query(HistoryEvent).filter_by(unit_id=order.id, action='transfer_rejected').count() == 1

    def test_rejected_transfer_cannot_be_accepted(self, order, corte_user, bordado_user):
        transfer = _send(order, corte_user, 'bordado', 50)
        transfer_service.reject_transfer(transfer.id, bordado_user.id)

        with pytest.raises(InvalidState):
            transfer_service.accept_transfer(transfer.id, bordado_user.id)
        assert _custody(order) == {'corte': 100}

    def test_reject_notifies_sender(self, order, corte_user, bordado_user, sink):
        transfer = _send(order, corte_user, 'bordado', 50)
        sink.events.clear()

        transfer_service.reject_transfer(transfer.id, bordado_user.id)

        assert sink.kinds() == [TRANSFER_PROCESSED]
        assert sink.events[0].target_user_ids == (corte_user.id,)
