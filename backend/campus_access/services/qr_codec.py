"""Signed QR payload encoding and validation.

The QR code printed on a pass is a compact JSON object::

    {"passId": ..., "studentId": ..., "schoolId": ..., "timestamp": ...,
     ["expiresAt": ...,] ["type": "temporary",] "signature": <hex HMAC-SHA256>}

The signature covers the canonical serialization of every field except
``signature`` itself, with keys in the fixed order of ``SIGNED_FIELDS``.
"""
import hashlib
import hmac
import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

TEMPORARY_TYPE = 'temporary'

# Wire order of the signed fields; optional ones are omitted when empty.
SIGNED_FIELDS = ('passId', 'studentId', 'schoolId', 'timestamp', 'expiresAt', 'type')
REQUIRED_FIELDS = ('passId', 'studentId', 'schoolId', 'timestamp', 'signature')
ALLOWED_FIELDS = frozenset(SIGNED_FIELDS) | {'signature'}

_SIGNATURE_RE = re.compile(r'^[0-9a-f]{64}$')

class DecodeError(ValueError):
    """The QR string is not a well-formed payload."""

@dataclass(frozen=True)
class QRPayload:
    """Decoded QR payload. Optional fields are None when absent."""
    pass_id: str
    student_id: str
    school_id: str
    timestamp: str
    signature: str
    expires_at: Optional[str] = None
    type: Optional[str] = None

    @property
    def is_temporary(self) -> bool:
        return self.type == TEMPORARY_TYPE

    @property
    def issued_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def expires(self) -> Optional[datetime]:
        return parse_timestamp(self.expires_at) if self.expires_at else None

    def signed_fields(self) -> Dict[str, str]:
        """The canonical field set, in signing order."""
        values = {
            'passId': self.pass_id,
            'studentId': self.student_id,
            'schoolId': self.school_id,
            'timestamp': self.timestamp,
            'expiresAt': self.expires_at,
            'type': self.type,
        }
        return {key: values[key] for key in SIGNED_FIELDS if values[key]}

def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f'{moment.microsecond // 1000:03d}Z'

def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment

def _canonical(fields: Dict[str, str]) -> str:
    return json.dumps(fields, separators=(',', ':'), ensure_ascii=False)

class QRCodec:
    """Encodes, decodes and signs QR payloads.

    The only holder of the signing secret. Constructed once by the
    application factory and shared by every request.
    """

    def __init__(self, secret_key: str, replay_window: timedelta = timedelta(hours=24)):
        if not secret_key:
            raise ValueError("QR signing secret must not be empty")
        self._key = secret_key.encode('utf-8')
        self.replay_window = replay_window

    def sign(self, fields: Dict[str, str]) -> str:
        digest = hmac.new(self._key, _canonical(fields).encode('utf-8'), hashlib.sha256)
        return digest.hexdigest()

    def encode(
        self,
        pass_id: str,
        student_id: str,
        school_id: str,
        expires_at: Optional[datetime] = None,
        type: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> str:
        """Build and sign a payload, returning the flat QR string."""
        payload = QRPayload(
            pass_id=str(pass_id),
            student_id=str(student_id),
            school_id=str(school_id),
            timestamp=format_timestamp(timestamp or datetime.now(timezone.utc)),
            signature='',
            expires_at=format_timestamp(expires_at) if expires_at else None,
            type=type,
        )
        fields = payload.signed_fields()
        fields['signature'] = self.sign(fields)
        return _canonical(fields)

    def decode(self, qr_string: str) -> QRPayload:
        """Parse a QR string, failing closed on anything unexpected."""
        if not isinstance(qr_string, str) or not qr_string:
            raise DecodeError("QR code must be a non-empty string")

        try:
            data = json.loads(qr_string)
        except ValueError as e:
            raise DecodeError(f"QR code is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise DecodeError("QR code must encode an object")

        unknown = set(data) - ALLOWED_FIELDS
        if unknown:
            raise DecodeError(f"Unexpected fields: {', '.join(sorted(unknown))}")

        for field in REQUIRED_FIELDS:
            if not isinstance(data.get(field), str) or not data[field]:
                raise DecodeError(f"Missing field: {field}")

        for field in ('expiresAt', 'type'):
            if field in data and (not isinstance(data[field], str) or not data[field]):
                raise DecodeError(f"Invalid field: {field}")

        if 'type' in data and data['type'] != TEMPORARY_TYPE:
            raise DecodeError(f"Unknown QR code type: {data['type']}")

        if not _SIGNATURE_RE.match(data['signature']):
            raise DecodeError("Signature must be a hex HMAC-SHA256 digest")

        try:
            parse_timestamp(data['timestamp'])
            if 'expiresAt' in data:
                parse_timestamp(data['expiresAt'])
        except ValueError as e:
            raise DecodeError(f"Invalid timestamp: {e}") from e

        return QRPayload(
            pass_id=data['passId'],
            student_id=data['studentId'],
            school_id=data['schoolId'],
            timestamp=data['timestamp'],
            signature=data['signature'],
            expires_at=data.get('expiresAt'),
            type=data.get('type'),
        )

    def verify_signature(self, payload: QRPayload) -> bool:
        """Recompute the HMAC over the signed fields and compare exactly."""
        expected = self.sign(payload.signed_fields())
        return hmac.compare_digest(expected, payload.signature)

    def is_within_replay_window(self, payload: QRPayload, now: Optional[datetime] = None) -> bool:
        now = _aware(now or datetime.now(timezone.utc))
        return now - payload.issued_at <= self.replay_window

    def is_expired(self, payload: QRPayload, now: Optional[datetime] = None) -> bool:
        """True once a short-lived code's own ``expiresAt`` has passed."""
        expires = payload.expires
        if expires is None:
            return False
        now = _aware(now or datetime.now(timezone.utc))
        return now > expires
