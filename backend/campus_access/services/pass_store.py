"""Persistence of passes behind the contract the verification path needs."""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from campus_access import db
from campus_access.models.access_pass import Pass, PassStatus, PassType, sources_for
from campus_access.models.student import Student, StudentStatus
from campus_access.utils.helpers import utcnow

logger = logging.getLogger(__name__)

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None

@dataclass(frozen=True)
class StudentRecord:
    """Snapshot of the owning student as seen by the verification path."""
    id: str
    school_id: str
    student_number: str
    full_name: str
    status: StudentStatus

    @classmethod
    def from_model(cls, student: Student) -> 'StudentRecord':
        return cls(
            id=str(student.id),
            school_id=str(student.school_id),
            student_number=student.student_number,
            full_name=student.full_name,
            status=student.status,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'studentNumber': self.student_number,
            'fullName': self.full_name,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StudentRecord':
        return cls(
            id=data['id'],
            school_id=data['schoolId'],
            student_number=data['studentNumber'],
            full_name=data['fullName'],
            status=StudentStatus(data['status']),
        )

@dataclass(frozen=True)
class PassRecord:
    """Immutable snapshot of a pass row plus its student.

    This is both what the store returns and what the verification cache
    holds, so a cached entry and a fresh read are interchangeable.
    """
    id: str
    pass_number: str
    qr_code: str
    issue_date: datetime
    expiry_date: datetime
    pass_type: PassType
    status: PassStatus
    student: StudentRecord
    issued_by_id: Optional[int] = None
    revoked_by_id: Optional[int] = None
    revoked_at: Optional[datetime] = None
    revoke_reason: Optional[str] = None

    @property
    def student_id(self) -> str:
        return self.student.id

    @property
    def school_id(self) -> str:
        return self.student.school_id

    def with_status(self, status: PassStatus) -> 'PassRecord':
        return replace(self, status=status)

    @classmethod
    def from_model(cls, access_pass: Pass) -> 'PassRecord':
        return cls(
            id=access_pass.id,
            pass_number=access_pass.pass_number,
            qr_code=access_pass.qr_code,
            issue_date=access_pass.issue_date,
            expiry_date=access_pass.expiry_date,
            pass_type=access_pass.pass_type,
            status=access_pass.status,
            student=StudentRecord.from_model(access_pass.student),
            issued_by_id=access_pass.issued_by_id,
            revoked_by_id=access_pass.revoked_by_id,
            revoked_at=access_pass.revoked_at,
            revoke_reason=access_pass.revoke_reason,
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Fields shown to gate readers."""
        return {
            'id': self.id,
            'passNumber': self.pass_number,
            'expiryDate': _iso(self.expiry_date),
            'status': self.status.value,
            'passType': self.pass_type.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full record, used as the cache value."""
        return {
            **self.to_public_dict(),
            'qrCode': self.qr_code,
            'issueDate': _iso(self.issue_date),
            'student': self.student.to_dict(),
            'issuedById': self.issued_by_id,
            'revokedById': self.revoked_by_id,
            'revokedAt': _iso(self.revoked_at),
            'revokeReason': self.revoke_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PassRecord':
        return cls(
            id=data['id'],
            pass_number=data['passNumber'],
            qr_code=data['qrCode'],
            issue_date=_from_iso(data['issueDate']),
            expiry_date=_from_iso(data['expiryDate']),
            pass_type=PassType(data['passType']),
            status=PassStatus(data['status']),
            student=StudentRecord.from_dict(data['student']),
            issued_by_id=data.get('issuedById'),
            revoked_by_id=data.get('revokedById'),
            revoked_at=_from_iso(data.get('revokedAt')),
            revoke_reason=data.get('revokeReason'),
        )

class PassStore:
    """SQLAlchemy-backed source of truth for pass state.

    Lookups always reload rows, so a long-lived session never answers from
    its identity map with state another request has since changed.
    """

    # Columns callers may set alongside a status change
    METADATA_COLUMNS = ('revoked_by_id', 'revoked_at', 'revoke_reason')

    def find_by_qr_code(self, qr_code: str) -> Optional[PassRecord]:
        access_pass = Pass.query.filter_by(qr_code=qr_code).populate_existing().first()
        return PassRecord.from_model(access_pass) if access_pass else None

    def find_by_id(self, pass_id: str) -> Optional[PassRecord]:
        access_pass = db.session.get(Pass, pass_id, populate_existing=True)
        return PassRecord.from_model(access_pass) if access_pass else None

    def find_student(self, student_id) -> Optional[StudentRecord]:
        try:
            key = int(student_id)
        except (TypeError, ValueError):
            return None
        student = db.session.get(Student, key, populate_existing=True)
        return StudentRecord.from_model(student) if student else None

    def find_active_for_student(self, student_id, now: datetime) -> Optional[PassRecord]:
        """The student's active, unexpired pass, if any."""
        access_pass = Pass.query.filter(
            Pass.student_id == int(student_id),
            Pass.status == PassStatus.ACTIVE,
            Pass.expiry_date > now
        ).first()
        return PassRecord.from_model(access_pass) if access_pass else None

    def find_for_student(self, student_id) -> List[PassRecord]:
        passes = Pass.query.filter_by(student_id=int(student_id)) \
            .order_by(Pass.created_at.desc()).all()
        return [PassRecord.from_model(p) for p in passes]

    def find_overdue(self, now: datetime) -> List[PassRecord]:
        passes = Pass.query.filter(
            Pass.status == PassStatus.ACTIVE,
            Pass.expiry_date < now
        ).all()
        return [PassRecord.from_model(p) for p in passes]

    def next_pass_number(self, school_code: str, year: int) -> str:
        """``<schoolCode><year><6-digit sequence>``."""
        prefix = f"{school_code}{year}"
        last_pass = Pass.query.filter(
            Pass.pass_number.like(f"{prefix}%")
        ).order_by(Pass.pass_number.desc()).first()

        sequence = int(last_pass.pass_number[len(prefix):]) + 1 if last_pass else 1
        return f"{prefix}{sequence:06d}"

    def create(self, **fields) -> PassRecord:
        access_pass = Pass(**fields)
        db.session.add(access_pass)
        db.session.commit()
        return PassRecord.from_model(access_pass)

    def replace_qr_code(self, pass_id: str, qr_code: str) -> bool:
        """Swap the QR payload of an active pass."""
        updated = Pass.query.filter(
            Pass.id == pass_id,
            Pass.status == PassStatus.ACTIVE
        ).update({'qr_code': qr_code, 'updated_at': utcnow()}, synchronize_session=False)
        db.session.commit()
        return updated > 0

    def rollback(self) -> None:
        """Discard a transaction left unusable by a failed read or write."""
        db.session.rollback()

    def update_status(self, pass_id: str, new_status: PassStatus, **metadata) -> bool:
        """Move a pass to ``new_status`` if the state machine allows it.

        Implemented as a single conditional UPDATE, so two concurrent callers
        cannot both transition the row. Returns True only for the call that
        actually changed it; a repeat (or a move out of a terminal state) is
        a no-op returning False.
        """
        unknown = set(metadata) - set(self.METADATA_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown pass metadata: {', '.join(sorted(unknown))}")

        sources = sources_for(new_status)
        if not sources:
            return False

        values = {'status': new_status, 'updated_at': utcnow(), **metadata}
        updated = Pass.query.filter(
            Pass.id == pass_id,
            Pass.status.in_(list(sources))
        ).update(values, synchronize_session=False)
        db.session.commit()

        if updated:
            logger.info("Pass %s moved to %s", pass_id, new_status.value)
        return updated > 0
