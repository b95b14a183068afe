"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .student import School, Student, StudentStatus
from .access_pass import Pass, PassStatus, PassType, InvalidTransition
from .access_log import AccessLog, AccessType, AccessOutcome
from .audit_log import AuditLog

__all__ = [
    'BaseModel', 'User', 'UserRole',
    'School', 'Student', 'StudentStatus',
    'Pass', 'PassStatus', 'PassType', 'InvalidTransition',
    'AccessLog', 'AccessType', 'AccessOutcome',
    'AuditLog'
]
