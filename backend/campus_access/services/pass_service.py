"""Pass issuance and lifecycle management."""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from campus_access import db
from campus_access.models.access_pass import (
    InvalidTransition,
    PassStatus,
    PassType,
    new_pass_id,
    transition,
)
from campus_access.models.student import School, Student, StudentStatus
from campus_access.services.audit_service import AuditService
from campus_access.services.pass_store import PassRecord, PassStore
from campus_access.services.qr_codec import TEMPORARY_TYPE, QRCodec, format_timestamp
from campus_access.services.qr_image import TEMPORARY_COLOR, render_data_url
from campus_access.services.verification_cache import VerificationCache
from campus_access.utils.helpers import add_years, utcnow

logger = logging.getLogger(__name__)

class PassService:
    """Issues, revokes and refreshes passes.

    Business-rule failures come back as ``(None, message)``; success as
    ``(data, None)``.
    """

    def __init__(
        self,
        codec: QRCodec,
        cache: VerificationCache,
        store: PassStore,
        audit: AuditService,
        validity_years: int = 1,
        issue_cache_ttl_seconds: int = 3600,
        temporary_max_minutes: int = 24 * 60
    ):
        self.codec = codec
        self.cache = cache
        self.store = store
        self.audit = audit
        self.validity_years = validity_years
        self.issue_cache_ttl_seconds = issue_cache_ttl_seconds
        self.temporary_max_minutes = temporary_max_minutes

    def issue_pass(
        self,
        student_id: int,
        issued_by_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Tuple[Optional[PassRecord], Optional[str]]:
        """Issue a standard pass; at most one active pass per student."""
        now = now or utcnow()

        student = db.session.get(Student, student_id)
        if not student:
            return None, "Student not found"

        if student.status != StudentStatus.ACTIVE:
            return None, "Cannot generate pass for inactive student"

        if self.store.find_active_for_student(student.id, now):
            return None, "Student already has an active pass"

        school = db.session.get(School, student.school_id)
        pass_id = new_pass_id()
        qr_code = self.codec.encode(pass_id, student.id, student.school_id, timestamp=now)

        try:
            record = self.store.create(
                id=pass_id,
                pass_number=self.store.next_pass_number(school.code, now.year),
                student_id=student.id,
                qr_code=qr_code,
                issue_date=now,
                expiry_date=add_years(now, self.validity_years),
                pass_type=PassType.STANDARD,
                status=PassStatus.ACTIVE,
                issued_by_id=issued_by_id
            )
        except IntegrityError:
            db.session.rollback()
            logger.warning("Pass number collision issuing pass for student %s", student.id)
            return None, "Could not allocate a pass number, please retry"

        self.cache.set(record.qr_code, record, self.issue_cache_ttl_seconds)

        self.audit.log(
            action='PASS_GENERATED',
            resource_type='Pass',
            resource_id=record.id,
            user_id=issued_by_id,
            new_values={
                'student_id': record.student_id,
                'pass_number': record.pass_number,
                'expiry_date': record.expiry_date.isoformat()
            }
        )
        logger.info("Issued pass %s to student %s", record.pass_number, record.student_id)
        return record, None

    def revoke_pass(
        self,
        pass_id: str,
        revoked_by_id: Optional[int],
        reason: str
    ) -> Tuple[Optional[PassRecord], Optional[str]]:
        """Revoke an active pass and drop it from the verification cache."""
        record = self.store.find_by_id(pass_id)
        if not record:
            return None, "Pass not found"

        try:
            if transition(record.status, PassStatus.REVOKED) is record.status:
                return None, "Pass is already revoked"
        except InvalidTransition:
            return None, "Pass is not active"

        revoked = self.store.update_status(
            pass_id,
            PassStatus.REVOKED,
            revoked_by_id=revoked_by_id,
            revoked_at=utcnow(),
            revoke_reason=reason
        )
        # Invalidate even if another request won the race to revoke
        self.cache.delete(record.qr_code)

        if not revoked:
            return None, "Pass is not active"

        self.audit.log(
            action='PASS_REVOKED',
            resource_type='Pass',
            resource_id=pass_id,
            user_id=revoked_by_id,
            old_values={'status': PassStatus.ACTIVE.value},
            new_values={'status': PassStatus.REVOKED.value, 'revoke_reason': reason}
        )
        logger.info("Revoked pass %s: %s", record.pass_number, reason)
        return self.store.find_by_id(pass_id), None

    def refresh_qr_code(
        self,
        pass_id: str,
        user_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Tuple[Optional[PassRecord], Optional[str]]:
        """Re-sign an active pass's QR code with a fresh timestamp."""
        now = now or utcnow()
        record = self.store.find_by_id(pass_id)
        if not record:
            return None, "Pass not found"

        if record.status != PassStatus.ACTIVE or now > record.expiry_date:
            return None, "Pass is not active"

        qr_code = self.codec.encode(record.id, record.student_id, record.school_id, timestamp=now)
        if not self.store.replace_qr_code(record.id, qr_code):
            return None, "Pass is not active"

        self.cache.delete(record.qr_code)
        refreshed = self.store.find_by_id(pass_id)
        self.cache.set(refreshed.qr_code, refreshed, self.issue_cache_ttl_seconds)

        self.audit.log(
            action='PASS_QR_REFRESHED',
            resource_type='Pass',
            resource_id=pass_id,
            user_id=user_id
        )
        return refreshed, None

    def generate_temporary_qr(
        self,
        student_id: int,
        validity_minutes: int = 60,
        issued_by_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Tuple[Optional[Dict], Optional[str]]:
        """Short-lived signed code not backed by a pass row."""
        if not isinstance(validity_minutes, int) or isinstance(validity_minutes, bool):
            return None, "validity_minutes must be an integer"
        if validity_minutes < 1 or validity_minutes > self.temporary_max_minutes:
            return None, f"validity_minutes must be between 1 and {self.temporary_max_minutes}"

        student = db.session.get(Student, student_id)
        if not student:
            return None, "Student not found"

        if student.status != StudentStatus.ACTIVE:
            return None, "Cannot generate pass for inactive student"

        now = now or utcnow()
        expires_at = now + timedelta(minutes=validity_minutes)
        qr_code = self.codec.encode(
            f"temp-{uuid.uuid4()}",
            student.id,
            student.school_id,
            expires_at=expires_at,
            type=TEMPORARY_TYPE,
            timestamp=now
        )

        self.audit.log(
            action='TEMPORARY_QR_GENERATED',
            resource_type='Student',
            resource_id=student.id,
            user_id=issued_by_id,
            new_values={'expires_at': format_timestamp(expires_at)}
        )
        return {
            'qr_code': qr_code,
            'qr_image': render_data_url(qr_code, fill_color=TEMPORARY_COLOR),
            'expires_at': format_timestamp(expires_at),
            'student_id': student.id
        }, None

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """Move every overdue active pass to expired. Returns how many moved."""
        now = now or utcnow()
        expired = 0
        for record in self.store.find_overdue(now):
            if self.store.update_status(record.id, PassStatus.EXPIRED):
                expired += 1
        if expired:
            logger.info("Expired %d overdue passes", expired)
        return expired

    def student_passes(self, student_id) -> List[PassRecord]:
        return self.store.find_for_student(student_id)

    def qr_image(self, record: PassRecord) -> str:
        return render_data_url(record.qr_code)
