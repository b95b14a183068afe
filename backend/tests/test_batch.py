"""Tests for batch verification."""
import pytest

from campus_access.models.access_log import AccessLog, AccessOutcome
from campus_access.utils.validators import ValidationError


def test_oversized_batch_is_rejected_before_processing(services, issued_pass):
    with pytest.raises(ValidationError) as excinfo:
        services.batch_verifier.verify_batch([issued_pass.qr_code] * 101, 'gate-1')

    assert excinfo.value.message == 'Maximum 100 QR codes per batch'
    assert AccessLog.query.count() == 0


@pytest.mark.parametrize('qr_codes', [[], None, 'not-a-list'])
def test_empty_or_invalid_batch_is_rejected(services, qr_codes):
    with pytest.raises(ValidationError):
        services.batch_verifier.verify_batch(qr_codes, 'gate-1')


def test_missing_access_point_is_rejected(services, issued_pass):
    with pytest.raises(ValidationError):
        services.batch_verifier.verify_batch([issued_pass.qr_code], '')


def test_full_batch_with_one_malformed_entry(services, issued_pass):
    """A bad entry is reported in place; its neighbours still verify."""
    qr_codes = [issued_pass.qr_code] * 100
    qr_codes[36] = 'not a qr code'

    results = services.batch_verifier.verify_batch(qr_codes, 'gate-1')

    assert len(results) == 100
    assert [result['qrCode'] for result in results] == qr_codes
    assert results[36]['valid'] is False
    assert results[36]['reason'] == 'malformed code'
    assert all(result['valid'] for i, result in enumerate(results) if i != 36)
    assert AccessLog.query.count() == 100
    assert AccessLog.query.filter_by(status=AccessOutcome.DENIED).count() == 1


def test_failing_entry_does_not_stop_the_batch(services, issued_pass, monkeypatch):
    verify = services.orchestrator.verify

    def flaky_verify(qr_code, *args, **kwargs):
        if qr_code == 'explode':
            raise RuntimeError("unexpected")
        return verify(qr_code, *args, **kwargs)

    monkeypatch.setattr(services.orchestrator, 'verify', flaky_verify)

    results = services.batch_verifier.verify_batch(
        [issued_pass.qr_code, 'explode', issued_pass.qr_code], 'gate-1'
    )

    assert [result['valid'] for result in results] == [True, False, True]
    assert results[1]['reason'] == 'verification error'
    assert results[1]['message'] == 'Access denied: verification error'
    assert AccessLog.query.filter_by(reason='verification error').count() == 1


def test_recording_failure_keeps_the_verdict(services, issued_pass, monkeypatch):
    def broken_record(*args, **kwargs):
        raise RuntimeError("log sink unavailable")

    monkeypatch.setattr(services.recorder, 'record', broken_record)

    results = services.batch_verifier.verify_batch(
        [issued_pass.qr_code, 'not a qr code'], 'gate-1'
    )

    assert [result['valid'] for result in results] == [True, False]
    assert results[0]['message'] == 'Access granted'
    assert results[1]['reason'] == 'malformed code'
