"""General audit trail shared by every subsystem."""
from campus_access import db
from campus_access.models.base import BaseModel

class AuditLog(BaseModel):
    """Audit event; ``user_id`` is empty for anonymous gate scans."""

    __tablename__ = 'audit_logs'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    resource_type = db.Column(db.String(64), nullable=False)
    resource_id = db.Column(db.String(64), nullable=True, index=True)
    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)
