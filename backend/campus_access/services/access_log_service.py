"""Durable record of every gate verification attempt."""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from campus_access import db
from campus_access.models.access_log import AccessLog, AccessOutcome, AccessType
from campus_access.services.audit_service import AuditService
from campus_access.services.verification_service import (
    VerificationOrchestrator,
    VerificationResult,
)
from campus_access.utils.helpers import utcnow

logger = logging.getLogger(__name__)

class AccessLogRecorder:
    """Writes one AccessLog row per attempt and mirrors it to the audit trail.

    Recording happens synchronously, before the response is sent, but a
    failed write is logged and swallowed: the gate still gets its answer.
    """

    def __init__(self, orchestrator: VerificationOrchestrator, audit: AuditService):
        self.orchestrator = orchestrator
        self.audit = audit

    def record(
        self,
        qr_code: str,
        access_point_id: str,
        device_info: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
        result: Optional[VerificationResult] = None,
        access_type: AccessType = AccessType.ENTRY
    ) -> Optional[AccessLog]:
        if result is None:
            result = self.orchestrator.verify(qr_code, now=timestamp)

        student_id = int(result.student.id) if result.student else None
        if student_id is None and result.pass_ is not None:
            student_id = int(result.pass_.student_id)
        pass_id = result.pass_.id if result.pass_ else None
        outcome = AccessOutcome.GRANTED if result.access_granted else AccessOutcome.DENIED

        try:
            entry = AccessLog(
                student_id=student_id,
                pass_id=pass_id,
                access_point_id=access_point_id,
                access_time=timestamp or utcnow(),
                access_type=access_type,
                status=outcome,
                reason=result.reason,
                device_info=device_info
            )
            db.session.add(entry)
            db.session.commit()

            self.audit.log(
                action='ACCESS_ATTEMPT',
                resource_type='AccessLog',
                resource_id=entry.id,
                new_values={
                    'student_id': student_id,
                    'pass_id': pass_id,
                    'access_point_id': access_point_id,
                    'status': outcome.value,
                    'reason': result.reason
                }
            )
            return entry
        except Exception:
            db.session.rollback()
            logger.exception("Failed to record access attempt at %s", access_point_id)
            return None
