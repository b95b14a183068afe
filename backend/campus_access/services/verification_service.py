"""Gate-side pass verification.

``VerificationOrchestrator.verify`` answers one question for a scanned QR
string: may its holder pass right now, and if not, why. Checks run in this
order and stop at the first failure:

1. decode the payload                       -> "malformed code"
2. look up the pass (cache, then store)     -> "pass not found"
3. pass status must be active               -> "pass is <status>"
4. wall-clock expiry (auto-expires the pass) -> "pass has expired"
5. owning student must be active            -> "student is <status>"
6. exact QR string, signature, identity fields, replay window
                                               -> "invalid QR code"

The owning student is always read from the store, never from a cached
record, so status changes apply on the next scan.

Temporary codes carry no pass record and take their own branch, which adds
"temporary code has expired" and "student not found". Denials are returned as
data. Apart from those reasons, only "verification error" is ever produced.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from campus_access.models.access_pass import PassStatus
from campus_access.models.student import StudentStatus
from campus_access.services.pass_store import PassRecord, PassStore, StudentRecord
from campus_access.services.qr_codec import DecodeError, QRCodec, QRPayload, format_timestamp
from campus_access.services.verification_cache import VerificationCache
from campus_access.utils.helpers import utcnow

logger = logging.getLogger(__name__)

REASON_MALFORMED = 'malformed code'
REASON_NOT_FOUND = 'pass not found'
REASON_EXPIRED = 'pass has expired'
REASON_INVALID = 'invalid QR code'
REASON_ERROR = 'verification error'
REASON_TEMPORARY_EXPIRED = 'temporary code has expired'
REASON_STUDENT_NOT_FOUND = 'student not found'

@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification. ``pass_``/``student`` are set once resolved."""
    valid: bool
    reason: Optional[str] = None
    pass_: Optional[PassRecord] = None
    student: Optional[StudentRecord] = None

    @property
    def access_granted(self) -> bool:
        return self.valid

    @property
    def message(self) -> str:
        return 'Access granted' if self.valid else f'Access denied: {self.reason}'

    @classmethod
    def granted(cls, pass_: Optional[PassRecord], student: StudentRecord) -> 'VerificationResult':
        return cls(valid=True, pass_=pass_, student=student)

    @classmethod
    def denied(
        cls,
        reason: str,
        pass_: Optional[PassRecord] = None,
        student: Optional[StudentRecord] = None
    ) -> 'VerificationResult':
        return cls(valid=False, reason=reason, pass_=pass_, student=student)

    def to_dict(self) -> Dict[str, Any]:
        result = {'valid': self.valid, 'accessGranted': self.access_granted}
        if self.reason is not None:
            result['reason'] = self.reason
        if self.pass_ is not None:
            result['pass'] = self.pass_.to_public_dict()
        if self.student is not None:
            result['student'] = self.student.to_dict()
        return result

    def to_response(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Body returned to gate readers."""
        return {
            **self.to_dict(),
            'timestamp': format_timestamp(now or datetime.now(timezone.utc)),
            'message': self.message,
        }

class VerificationOrchestrator:
    """Composes codec, cache and store into the grant/deny decision."""

    def __init__(
        self,
        codec: QRCodec,
        cache: VerificationCache,
        store: PassStore,
        cache_ttl_seconds: int = 1800
    ):
        self.codec = codec
        self.cache = cache
        self.store = store
        self.cache_ttl_seconds = cache_ttl_seconds

    def verify(self, qr_code: str, now: Optional[datetime] = None) -> VerificationResult:
        """Decide whether ``qr_code`` grants access. Never raises."""
        now = now or utcnow()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)

        try:
            return self._verify(qr_code, now)
        except Exception:
            # Store/cache outages and bugs alike become a structured denial
            logger.exception("Pass verification error")
            self._discard_session()
            return VerificationResult.denied(REASON_ERROR)

    def _discard_session(self) -> None:
        """Leave the session usable for the access log write that follows."""
        try:
            self.store.rollback()
        except Exception:
            logger.exception("Rollback after verification error failed")

    def lookup(self, qr_code: str, payload: Optional[QRPayload] = None) -> Optional[PassRecord]:
        """Cache first; on a miss read the store and populate the cache.

        A string that matches no stored QR code is resolved through the pass
        id it claims, so tampered or superseded codes reach the integrity
        check. Those lookups are never cached.
        """
        record = self.cache.get(qr_code)
        if record is not None:
            return record

        record = self.store.find_by_qr_code(qr_code)
        if record is not None:
            self.cache.set(qr_code, record, self.cache_ttl_seconds)
            return self._recheck_cached(qr_code, record)

        if payload is not None:
            return self.store.find_by_id(payload.pass_id)
        return None

    def _recheck_cached(self, qr_code: str, record: PassRecord) -> Optional[PassRecord]:
        """Re-read a record just written to the cache.

        A revocation committed between the store read and the cache write has
        already deleted the key, so the stale entry must be dropped here.
        """
        current = self.store.find_by_id(record.id)
        if current is None or current.status is not record.status or current.qr_code != qr_code:
            self.cache.delete(qr_code)
        return current

    def _verify(self, qr_code: str, now: datetime) -> VerificationResult:
        try:
            payload = self.codec.decode(qr_code)
        except DecodeError as e:
            logger.debug("Rejecting malformed QR code: %s", e)
            return VerificationResult.denied(REASON_MALFORMED)

        if payload.is_temporary:
            return self._verify_temporary(payload, now)

        record = self.lookup(qr_code, payload)
        if record is None:
            return VerificationResult.denied(REASON_NOT_FOUND)

        if record.status is not PassStatus.ACTIVE:
            return VerificationResult.denied(f'pass is {record.status.value}', pass_=record)

        if now > record.expiry_date:
            if self.store.update_status(record.id, PassStatus.EXPIRED):
                logger.info("Pass %s auto-expired during verification", record.pass_number)
            return VerificationResult.denied(
                REASON_EXPIRED, pass_=record.with_status(PassStatus.EXPIRED)
            )

        student = self.store.find_student(record.student_id)
        if student is None:
            return VerificationResult.denied(REASON_STUDENT_NOT_FOUND, pass_=record)

        if student.status is not StudentStatus.ACTIVE:
            return VerificationResult.denied(
                f'student is {student.status.value}', pass_=record, student=student
            )

        if not self._matches_record(qr_code, payload, record, now):
            logger.warning("QR code for pass %s failed integrity check", record.pass_number)
            return VerificationResult.denied(REASON_INVALID, pass_=record, student=student)

        return VerificationResult.granted(record, student)

    def _matches_record(
        self, qr_code: str, payload: QRPayload, record: PassRecord, now: datetime
    ) -> bool:
        return (
            qr_code == record.qr_code
            and self.codec.verify_signature(payload)
            and payload.pass_id == record.id
            and payload.student_id == record.student_id
            and payload.school_id == record.school_id
            and self.codec.is_within_replay_window(payload, now)
            and not self.codec.is_expired(payload, now)
        )

    def _verify_temporary(self, payload: QRPayload, now: datetime) -> VerificationResult:
        """Temporary codes: no pass row, checked against the student directly."""
        if not self.codec.verify_signature(payload):
            return VerificationResult.denied(REASON_INVALID)

        if self.codec.is_expired(payload, now):
            return VerificationResult.denied(REASON_TEMPORARY_EXPIRED)

        if not self.codec.is_within_replay_window(payload, now):
            return VerificationResult.denied(REASON_INVALID)

        student = self.store.find_student(payload.student_id)
        if student is None:
            return VerificationResult.denied(REASON_STUDENT_NOT_FOUND)

        if student.status is not StudentStatus.ACTIVE:
            return VerificationResult.denied(f'student is {student.status.value}', student=student)

        if payload.school_id != student.school_id:
            return VerificationResult.denied(REASON_INVALID, student=student)

        return VerificationResult.granted(None, student)
