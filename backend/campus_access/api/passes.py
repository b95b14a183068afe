"""Pass issuance and lifecycle endpoints."""
from flask import Blueprint, abort, current_app, request
from campus_access import db
from campus_access.models.student import Student
from campus_access.models.user import User, UserRole
from campus_access.services import get_services
from campus_access.services.pass_store import PassRecord
from campus_access.utils.decorators import current_user, roles_required
from campus_access.utils.helpers import error_response, success_response
from campus_access.utils.validators import ValidationError, Validator

passes_bp = Blueprint('passes', __name__)

ISSUERS = (UserRole.ADMIN, UserRole.SCHOOL_ADMIN)

def _pass_dict(record: PassRecord) -> dict:
    return {
        'id': record.id,
        'pass_number': record.pass_number,
        'student_id': int(record.student_id),
        'school_id': int(record.school_id),
        'student_name': record.student.full_name,
        'qr_code': record.qr_code,
        'issue_date': record.issue_date.isoformat(),
        'expiry_date': record.expiry_date.isoformat(),
        'pass_type': record.pass_type.value,
        'status': record.status.value,
        'issued_by_id': record.issued_by_id,
        'revoked_by_id': record.revoked_by_id,
        'revoked_at': record.revoked_at.isoformat() if record.revoked_at else None,
        'revoke_reason': record.revoke_reason
    }

def _get_pass_or_404(pass_id: str) -> PassRecord:
    record = get_services().store.find_by_id(pass_id)
    if record is None:
        abort(404, description="Pass not found")
    return record

def _ensure_can_view(user: User, record: PassRecord) -> None:
    """Students see their own passes; school staff see their school's."""
    if user.role == UserRole.STUDENT:
        if str(user.student_id) != record.student_id:
            abort(403, description="You can only access your own passes")
    elif not user.can_access_school(record.school_id):
        abort(403, description="Pass belongs to another school")

def _get_student_or_404(student_id) -> Student:
    if not isinstance(student_id, int) or isinstance(student_id, bool):
        abort(400, description="student_id must be an integer")
    student = db.session.get(Student, student_id)
    if student is None:
        abort(404, description="Student not found")
    return student

@passes_bp.route('', methods=['POST'])
@roles_required(*ISSUERS)
def issue_pass():
    """Issue a pass to a student whose application was approved."""
    user = current_user()
    data = request.get_json(silent=True)
    try:
        Validator.require_fields(data, ['student_id'])
    except ValidationError as e:
        return error_response(e.message, 400)

    student = _get_student_or_404(data['student_id'])
    if not user.can_access_school(student.school_id):
        return error_response("Student belongs to another school", 403)

    record, error = get_services().pass_service.issue_pass(student.id, issued_by_id=user.id)
    if error:
        return error_response(error, 400)

    return success_response(
        data=_pass_dict(record),
        message="Pass issued successfully",
        status_code=201
    )

@passes_bp.route('/temporary', methods=['POST'])
@roles_required(UserRole.ADMIN, UserRole.SCHOOL_ADMIN, UserRole.SECURITY)
def generate_temporary_qr():
    """Generate a short-lived signed QR code for a student."""
    user = current_user()
    data = request.get_json(silent=True)
    try:
        Validator.require_fields(data, ['student_id'])
    except ValidationError as e:
        return error_response(e.message, 400)

    student = _get_student_or_404(data['student_id'])
    if not user.can_access_school(student.school_id):
        return error_response("Student belongs to another school", 403)

    result, error = get_services().pass_service.generate_temporary_qr(
        student.id,
        validity_minutes=data.get(
            'validity_minutes', current_app.config['TEMPORARY_QR_DEFAULT_MINUTES']
        ),
        issued_by_id=user.id
    )
    if error:
        return error_response(error, 400)

    return success_response(data=result, message="Temporary QR code generated", status_code=201)

@passes_bp.route('/<pass_id>', methods=['GET'])
@roles_required()
def get_pass(pass_id):
    """Get pass details."""
    record = _get_pass_or_404(pass_id)
    _ensure_can_view(current_user(), record)
    return success_response(data=_pass_dict(record))

@passes_bp.route('/<pass_id>/qr', methods=['GET'])
@roles_required()
def get_pass_qr(pass_id):
    """QR string and rendered image for a pass."""
    record = _get_pass_or_404(pass_id)
    _ensure_can_view(current_user(), record)

    return success_response(data={
        'pass_id': record.id,
        'qr_code': record.qr_code,
        'qr_image': get_services().pass_service.qr_image(record)
    })

@passes_bp.route('/<pass_id>/revoke', methods=['POST'])
@roles_required(*ISSUERS)
def revoke_pass(pass_id):
    """Revoke an active pass."""
    user = current_user()
    record = _get_pass_or_404(pass_id)
    if not user.can_access_school(record.school_id):
        return error_response("Pass belongs to another school", 403)

    data = request.get_json(silent=True) or {}
    reason = data.get('reason')
    if not isinstance(reason, str) or not reason.strip():
        return error_response("Revocation reason is required", 400)

    revoked, error = get_services().pass_service.revoke_pass(
        record.id, revoked_by_id=user.id, reason=reason.strip()[:255]
    )
    if error:
        return error_response(error, 400)

    return success_response(data=_pass_dict(revoked), message="Pass revoked successfully")

@passes_bp.route('/<pass_id>/refresh-qr', methods=['POST'])
@roles_required(UserRole.ADMIN, UserRole.SCHOOL_ADMIN, UserRole.STUDENT)
def refresh_qr(pass_id):
    """Re-sign the pass QR code so it falls inside the replay window again."""
    user = current_user()
    record = _get_pass_or_404(pass_id)
    _ensure_can_view(user, record)

    refreshed, error = get_services().pass_service.refresh_qr_code(record.id, user_id=user.id)
    if error:
        return error_response(error, 400)

    return success_response(data={
        'pass_id': refreshed.id,
        'qr_code': refreshed.qr_code,
        'qr_image': get_services().pass_service.qr_image(refreshed)
    }, message="QR code refreshed")

@passes_bp.route('/student/<int:student_id>', methods=['GET'])
@roles_required()
def get_student_passes(student_id):
    """All passes of a student, newest first."""
    user = current_user()
    student = _get_student_or_404(student_id)

    if user.role == UserRole.STUDENT:
        if user.student_id != student.id:
            return error_response("You can only access your own passes", 403)
    elif not user.can_access_school(student.school_id):
        return error_response("Student belongs to another school", 403)

    passes = get_services().pass_service.student_passes(student.id)
    return success_response(data=[_pass_dict(record) for record in passes])

