"""Verification of several QR codes submitted in one request."""
import logging
from typing import Any, Dict, List, Optional

from campus_access.services.access_log_service import AccessLogRecorder
from campus_access.services.verification_service import (
    REASON_ERROR,
    VerificationOrchestrator,
    VerificationResult,
)
from campus_access.utils.helpers import utcnow
from campus_access.utils.validators import ValidationError, Validator

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100

class BatchVerifier:
    """Runs the orchestrator over a bounded list of codes, in order.

    Oversized or empty batches raise ValidationError before any code is
    touched. After that, one entry failing never stops the others.
    """

    def __init__(
        self,
        orchestrator: VerificationOrchestrator,
        recorder: AccessLogRecorder,
        max_batch_size: int = MAX_BATCH_SIZE
    ):
        self.orchestrator = orchestrator
        self.recorder = recorder
        self.max_batch_size = max_batch_size

    def verify_batch(
        self,
        qr_codes: List[str],
        access_point_id: str,
        device_info: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        Validator.validate_qr_batch(qr_codes, self.max_batch_size)
        if not access_point_id:
            raise ValidationError("accessPointId is required")

        results = []
        for qr_code in qr_codes:
            now = utcnow()
            try:
                result = self.orchestrator.verify(qr_code, now=now)
            except Exception:
                logger.exception("Batch entry verification failed")
                result = VerificationResult.denied(REASON_ERROR)

            # A failed log write never replaces the verdict already reached
            try:
                self.recorder.record(
                    qr_code, access_point_id, device_info, timestamp=now, result=result
                )
            except Exception:
                logger.exception("Batch entry could not be recorded")

            results.append({'qrCode': qr_code, **result.to_response()})

        return results
