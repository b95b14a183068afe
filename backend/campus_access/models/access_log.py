"""Append-only record of gate verification attempts."""
import enum
from campus_access import db
from campus_access.models.base import BaseModel
from campus_access.utils.helpers import utcnow

class AccessType(enum.Enum):
    ENTRY = 'entry'
    EXIT = 'exit'

class AccessOutcome(enum.Enum):
    GRANTED = 'granted'
    DENIED = 'denied'

class AccessLog(BaseModel):
    """One verification attempt at one access point. Never updated."""

    __tablename__ = 'access_logs'

    # Resolved identities, empty when the code could not be resolved
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=True, index=True)
    pass_id = db.Column(db.String(36), db.ForeignKey('passes.id'), nullable=True, index=True)

    access_point_id = db.Column(db.String(64), nullable=False, index=True)
    access_time = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    access_type = db.Column(db.Enum(AccessType), nullable=False, default=AccessType.ENTRY)
    status = db.Column(db.Enum(AccessOutcome), nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=True)
    device_info = db.Column(db.JSON, nullable=True)

    student = db.relationship('Student')
    access_pass = db.relationship('Pass')

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'student_number': self.student.student_number if self.student else None,
            'pass_id': self.pass_id,
            'pass_number': self.access_pass.pass_number if self.access_pass else None,
            'access_point_id': self.access_point_id,
            'access_time': self.access_time.isoformat(),
            'access_type': self.access_type.value,
            'status': self.status.value,
            'reason': self.reason,
            'device_info': self.device_info
        }
