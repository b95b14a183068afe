"""School and student records owned by the student records system."""
import enum
from campus_access import db
from campus_access.models.base import BaseModel

class StudentStatus(enum.Enum):
    """Student status enumeration."""
    ACTIVE = 'active'
    SUSPENDED = 'suspended'
    GRADUATED = 'graduated'
    WITHDRAWN = 'withdrawn'

class School(BaseModel):
    """A tenant school; its code prefixes every pass number."""

    __tablename__ = 'schools'

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(10), unique=True, nullable=False, index=True)

    students = db.relationship('Student', backref='school', lazy='dynamic')

class Student(BaseModel):
    """Student profile, read by the verification path for its status."""

    __tablename__ = 'students'

    school_id = db.Column(db.Integer, db.ForeignKey('schools.id'), nullable=False, index=True)
    student_number = db.Column(db.String(30), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.Enum(StudentStatus), nullable=False, default=StudentStatus.ACTIVE)

    passes = db.relationship('Pass', backref='student', lazy='dynamic',
                             order_by='Pass.created_at.desc()')
