"""Physical access pass and its lifecycle state machine."""
import enum
import uuid
from typing import Dict, FrozenSet

from campus_access import db
from campus_access.models.base import BaseModel

class PassStatus(enum.Enum):
    """Pass lifecycle states. Expired and revoked are terminal."""
    ACTIVE = 'active'
    EXPIRED = 'expired'
    REVOKED = 'revoked'

class PassType(enum.Enum):
    STANDARD = 'standard'

class InvalidTransition(ValueError):
    """Raised for a lifecycle move the state machine does not allow."""

    def __init__(self, current: PassStatus, target: PassStatus):
        super().__init__(f"Cannot move pass from {current.value} to {target.value}")
        self.current = current
        self.target = target

PASS_TRANSITIONS: Dict[PassStatus, FrozenSet[PassStatus]] = {
    PassStatus.ACTIVE: frozenset({PassStatus.EXPIRED, PassStatus.REVOKED}),
    PassStatus.EXPIRED: frozenset(),
    PassStatus.REVOKED: frozenset(),
}

def transition(current: PassStatus, target: PassStatus) -> PassStatus:
    """Return the status after moving ``current`` to ``target``.

    Re-applying the current status is a no-op, so concurrent auto-expiry of
    the same pass is safe. Any other move out of a terminal state raises
    InvalidTransition.
    """
    if current == target:
        return current
    if target not in PASS_TRANSITIONS[current]:
        raise InvalidTransition(current, target)
    return target

def sources_for(target: PassStatus) -> FrozenSet[PassStatus]:
    """Statuses from which ``target`` can be reached."""
    return frozenset(
        status for status, targets in PASS_TRANSITIONS.items() if target in targets
    )

def new_pass_id() -> str:
    return str(uuid.uuid4())

class Pass(BaseModel):
    """A campus access credential issued to one student."""

    __tablename__ = 'passes'

    id = db.Column(db.String(36), primary_key=True, default=new_pass_id)
    pass_number = db.Column(db.String(32), unique=True, nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)

    # Signed payload printed in the QR code
    qr_code = db.Column(db.String(1024), unique=True, nullable=False, index=True)

    issue_date = db.Column(db.DateTime, nullable=False)
    expiry_date = db.Column(db.DateTime, nullable=False, index=True)
    pass_type = db.Column(db.Enum(PassType), nullable=False, default=PassType.STANDARD)
    status = db.Column(db.Enum(PassStatus), nullable=False, default=PassStatus.ACTIVE, index=True)

    issued_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    revoked_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoke_reason = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return f'<Pass {self.pass_number} {self.status.value if self.status else None}>'
