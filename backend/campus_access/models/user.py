"""Operator accounts for the administrative endpoints."""
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from campus_access import db
from campus_access.models.base import BaseModel

class UserRole(Enum):
    """User roles enumeration."""
    ADMIN = 'admin'
    SCHOOL_ADMIN = 'school_admin'
    SECURITY = 'security'
    STAFF = 'staff'
    STUDENT = 'student'

class User(BaseModel):
    """Platform user: administrators, gate security staff and students."""

    __tablename__ = 'users'

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.STAFF)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)

    # Scope for school admins, link to a student record for student accounts
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'), nullable=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=True, unique=True)

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def can_access_school(self, school_id) -> bool:
        """Admins see every school; everyone else only their own."""
        if self.role == UserRole.ADMIN:
            return True
        return self.school_id is not None and str(self.school_id) == str(school_id)

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        exclude = (exclude or []) + ['password_hash']
        return super().to_dict(exclude=exclude)

    def __repr__(self) -> str:
        return f'<User {self.email}>'
