"""Tests for the pass state machine and the store's status updates."""
from datetime import timedelta

import pytest

from campus_access import db
from campus_access.models.access_pass import (
    InvalidTransition,
    Pass,
    PassStatus,
    sources_for,
    transition,
)
from campus_access.utils.helpers import utcnow


@pytest.mark.parametrize('target', [PassStatus.EXPIRED, PassStatus.REVOKED])
def test_active_pass_can_leave(target):
    assert transition(PassStatus.ACTIVE, target) is target


@pytest.mark.parametrize('status', list(PassStatus))
def test_reapplying_status_is_a_no_op(status):
    assert transition(status, status) is status


@pytest.mark.parametrize('current,target', [
    (PassStatus.EXPIRED, PassStatus.ACTIVE),
    (PassStatus.EXPIRED, PassStatus.REVOKED),
    (PassStatus.REVOKED, PassStatus.ACTIVE),
    (PassStatus.REVOKED, PassStatus.EXPIRED),
])
def test_terminal_states_cannot_be_left(current, target):
    with pytest.raises(InvalidTransition) as excinfo:
        transition(current, target)
    assert excinfo.value.current is current
    assert excinfo.value.target is target


def test_sources_for():
    assert sources_for(PassStatus.EXPIRED) == {PassStatus.ACTIVE}
    assert sources_for(PassStatus.REVOKED) == {PassStatus.ACTIVE}
    assert sources_for(PassStatus.ACTIVE) == frozenset()


def test_update_status_moves_a_row_once(services, issued_pass):
    """Only the first of two identical updates reports a change."""
    store = services.store

    assert store.update_status(issued_pass.id, PassStatus.EXPIRED) is True
    assert store.update_status(issued_pass.id, PassStatus.EXPIRED) is False
    assert store.find_by_id(issued_pass.id).status is PassStatus.EXPIRED


def test_update_status_cannot_leave_terminal_state(services, issued_pass):
    store = services.store
    store.update_status(issued_pass.id, PassStatus.REVOKED, revoke_reason='lost')

    assert store.update_status(issued_pass.id, PassStatus.EXPIRED) is False
    assert store.update_status(issued_pass.id, PassStatus.ACTIVE) is False
    assert store.find_by_id(issued_pass.id).status is PassStatus.REVOKED


def test_update_status_writes_metadata(services, issued_pass, admin):
    revoked_at = utcnow()
    services.store.update_status(
        issued_pass.id,
        PassStatus.REVOKED,
        revoked_by_id=admin.id,
        revoked_at=revoked_at,
        revoke_reason='card lost'
    )

    record = services.store.find_by_id(issued_pass.id)
    assert record.revoked_by_id == admin.id
    assert record.revoke_reason == 'card lost'
    assert record.revoked_at == revoked_at


def test_update_status_rejects_unknown_metadata(services, issued_pass):
    with pytest.raises(ValueError):
        services.store.update_status(issued_pass.id, PassStatus.REVOKED, status='active')


def test_update_status_for_unknown_pass(services):
    assert services.store.update_status('no-such-pass', PassStatus.EXPIRED) is False


def test_find_overdue(services, student):
    now = utcnow()
    old, error = services.pass_service.issue_pass(student.id, now=now - timedelta(days=800))
    assert error is None

    overdue = services.store.find_overdue(now)
    assert [record.id for record in overdue] == [old.id]


def test_expire_overdue_is_idempotent(services, student):
    now = utcnow()
    services.pass_service.issue_pass(student.id, now=now - timedelta(days=800))

    assert services.pass_service.expire_overdue(now) == 1
    assert services.pass_service.expire_overdue(now) == 0
    assert Pass.query.filter_by(status=PassStatus.EXPIRED).count() == 1


def test_replace_qr_code_requires_active_pass(services, issued_pass):
    services.store.update_status(issued_pass.id, PassStatus.EXPIRED)
    assert services.store.replace_qr_code(issued_pass.id, '{"new":"code"}') is False
    db.session.expire_all()
    assert db.session.get(Pass, issued_pass.id).qr_code == issued_pass.qr_code
