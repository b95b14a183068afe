"""Test pass issuance and lifecycle endpoints."""
import json
import re
from datetime import timedelta

import pytest

from campus_access import db
from campus_access.models.access_pass import Pass, PassStatus
from campus_access.models.audit_log import AuditLog
from campus_access.models.student import StudentStatus
from campus_access.models.user import UserRole
from campus_access.services.verification_cache import VerificationCache
from campus_access.utils.helpers import utcnow


def issue(client, headers, student_id):
    return client.post('/api/passes', headers=headers, json={'student_id': student_id})


def test_issue_pass(client, admin_headers, student):
    """Test successful pass issuance."""
    response = issue(client, admin_headers, student.id)

    assert response.status_code == 201
    data = json.loads(response.data)
    assert data['error'] is False
    assert data['message'] == 'Pass issued successfully'

    issued = data['data']
    assert re.fullmatch(rf"NC{utcnow().year}\d{{6}}", issued['pass_number'])
    assert issued['pass_number'].endswith('000001')
    assert issued['status'] == 'active'
    assert json.loads(issued['qr_code'])['passId'] == issued['id']

    audit = AuditLog.query.filter_by(action='PASS_GENERATED').one()
    assert audit.resource_id == issued['id']


def test_pass_numbers_increment_per_school(services, student, second_student):
    first, _ = services.pass_service.issue_pass(student.id)
    second, _ = services.pass_service.issue_pass(second_student.id)

    assert int(second.pass_number[-6:]) == int(first.pass_number[-6:]) + 1


def test_second_active_pass_is_rejected(client, admin_headers, student):
    issue(client, admin_headers, student.id)
    response = issue(client, admin_headers, student.id)

    assert response.status_code == 400
    assert json.loads(response.data)['message'] == 'Student already has an active pass'
    assert Pass.query.count() == 1


def test_exclusivity_checked_before_any_write(services, issued_pass, student, monkeypatch):
    def no_writes(**fields):
        raise AssertionError("store.create must not be reached")

    monkeypatch.setattr(services.store, 'create', no_writes)

    record, error = services.pass_service.issue_pass(student.id)
    assert record is None
    assert error == 'Student already has an active pass'


def test_new_pass_after_expiry(services, student):
    now = utcnow()
    old, _ = services.pass_service.issue_pass(student.id, now=now - timedelta(days=800))

    record, error = services.pass_service.issue_pass(student.id, now=now)
    assert error is None
    assert record.id != old.id


def test_issue_for_inactive_student(client, admin_headers, student):
    student.status = StudentStatus.SUSPENDED
    db.session.commit()

    response = issue(client, admin_headers, student.id)
    assert response.status_code == 400
    assert json.loads(response.data)['message'] == 'Cannot generate pass for inactive student'


@pytest.mark.parametrize('student_id,status', [(9999, 404), ('abc', 400), (None, 400)])
def test_issue_for_bad_student(client, admin_headers, student_id, status):
    response = issue(client, admin_headers, student_id)
    assert response.status_code == status


def test_issue_requires_issuer_role(client, security_headers, student):
    response = issue(client, security_headers, student.id)
    assert response.status_code == 403


def test_school_admin_limited_to_own_school(client, other_school, student, user_headers):
    headers = user_headers('head@example.com', UserRole.SCHOOL_ADMIN, school=other_school)
    response = issue(client, headers, student.id)
    assert response.status_code == 403


def test_get_pass(client, admin_headers, issued_pass):
    response = client.get(f'/api/passes/{issued_pass.id}', headers=admin_headers)

    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['id'] == issued_pass.id
    assert data['student_name'] == 'Ada Student'


def test_get_unknown_pass(client, admin_headers):
    response = client.get('/api/passes/does-not-exist', headers=admin_headers)
    assert response.status_code == 404
    assert json.loads(response.data)['message'] == 'Pass not found'


def test_get_pass_qr_image(client, admin_headers, issued_pass):
    response = client.get(f'/api/passes/{issued_pass.id}/qr', headers=admin_headers)

    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['qr_code'] == issued_pass.qr_code
    assert data['qr_image'].startswith('data:image/png;base64,')


def test_revoke_pass(client, services, admin_headers, issued_pass, fake_redis):
    """Revocation updates the store, drops the cache entry and blocks the gate."""
    response = client.post(
        f'/api/passes/{issued_pass.id}/revoke',
        headers=admin_headers,
        json={'reason': 'reported stolen'}
    )

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['message'] == 'Pass revoked successfully'
    assert data['data']['status'] == 'revoked'
    assert data['data']['revoke_reason'] == 'reported stolen'
    assert VerificationCache.key_for(issued_pass.qr_code) not in fake_redis.store

    result = services.orchestrator.verify(issued_pass.qr_code)
    assert result.reason == 'pass is revoked'


def test_revoke_twice(client, admin_headers, issued_pass):
    url = f'/api/passes/{issued_pass.id}/revoke'
    client.post(url, headers=admin_headers, json={'reason': 'lost'})
    response = client.post(url, headers=admin_headers, json={'reason': 'lost'})

    assert response.status_code == 400
    assert json.loads(response.data)['message'] == 'Pass is already revoked'


def test_revoke_expired_pass(services, issued_pass, admin):
    services.store.update_status(issued_pass.id, PassStatus.EXPIRED)

    record, error = services.pass_service.revoke_pass(issued_pass.id, admin.id, 'lost')
    assert record is None
    assert error == 'Pass is not active'


def test_revoke_requires_reason(client, admin_headers, issued_pass):
    response = client.post(
        f'/api/passes/{issued_pass.id}/revoke', headers=admin_headers, json={}
    )
    assert response.status_code == 400
    assert json.loads(response.data)['message'] == 'Revocation reason is required'


def test_student_refreshes_own_pass(client, services, school, student, issued_pass, user_headers):
    headers = user_headers('ada@example.com', UserRole.STUDENT, school=school, student=student)

    response = client.post(f'/api/passes/{issued_pass.id}/refresh-qr', headers=headers)

    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['qr_code'] != issued_pass.qr_code
    assert services.orchestrator.verify(data['qr_code']).valid


def test_student_cannot_see_other_pass(client, services, school, second_student, issued_pass,
                                       user_headers):
    headers = user_headers(
        'grace@example.com', UserRole.STUDENT, school=school, student=second_student
    )

    response = client.get(f'/api/passes/{issued_pass.id}', headers=headers)
    assert response.status_code == 403

    response = client.post(f'/api/passes/{issued_pass.id}/refresh-qr', headers=headers)
    assert response.status_code == 403


def test_student_passes(client, admin_headers, services, student):
    services.pass_service.issue_pass(student.id, now=utcnow() - timedelta(days=800))
    services.pass_service.issue_pass(student.id)

    response = client.get(f'/api/passes/student/{student.id}', headers=admin_headers)
    assert response.status_code == 200
    assert len(json.loads(response.data)['data']) == 2


def test_temporary_qr(client, services, security_headers, student):
    response = client.post('/api/passes/temporary', headers=security_headers, json={
        'student_id': student.id, 'validity_minutes': 15
    })

    assert response.status_code == 201
    data = json.loads(response.data)['data']
    assert data['student_id'] == student.id
    assert data['qr_image'].startswith('data:image/png;base64,')
    assert services.orchestrator.verify(data['qr_code']).valid


def test_temporary_qr_validity_out_of_range(client, security_headers, student):
    response = client.post('/api/passes/temporary', headers=security_headers, json={
        'student_id': student.id, 'validity_minutes': 5000
    })
    assert response.status_code == 400


def test_expire_passes_command(app, services, student):
    services.pass_service.issue_pass(student.id, now=utcnow() - timedelta(days=800))

    result = app.test_cli_runner().invoke(args=['expire-passes'])

    assert 'Expired 1 passes.' in result.output
    assert Pass.query.filter_by(status=PassStatus.EXPIRED).count() == 1
