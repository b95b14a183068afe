"""Gate verification and access log endpoints."""
from flask import Blueprint, current_app, jsonify, request
from campus_access import limiter
from campus_access.models.access_log import AccessLog, AccessOutcome
from campus_access.models.student import Student
from campus_access.models.user import UserRole
from campus_access.services import get_services
from campus_access.utils.decorators import current_user, roles_required
from campus_access.utils.helpers import error_response, parse_date, success_response, utcnow
from campus_access.utils.validators import ValidationError, Validator

access_bp = Blueprint('access', __name__)

def _verify_limit():
    return current_app.config['VERIFY_RATE_LIMIT']

@access_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Access service is running')

@access_bp.route('/verify', methods=['POST'])
@limiter.limit(_verify_limit)
def verify_pass():
    """Verify a scanned QR code for a gate or card reader.

    Always answers 200 with a verification body for a well-formed request;
    denials are data, not errors.
    """
    data = request.get_json(silent=True)
    try:
        Validator.require_fields(data, ['qrCode', 'accessPointId'])
        device_info = Validator.validate_device_info(data.get('deviceInfo'))
    except ValidationError:
        return error_response("QR code and access point ID are required", 400)

    if not isinstance(data['qrCode'], str) or not isinstance(data['accessPointId'], str):
        return error_response("QR code and access point ID must be strings", 400)

    services = get_services()
    now = utcnow()
    result = services.orchestrator.verify(data['qrCode'], now=now)

    services.recorder.record(
        data['qrCode'],
        data['accessPointId'],
        device_info,
        timestamp=now,
        result=result
    )

    return jsonify(result.to_response()), 200

@access_bp.route('/verify-batch', methods=['POST'])
@roles_required(UserRole.ADMIN, UserRole.SCHOOL_ADMIN, UserRole.SECURITY)
def verify_pass_batch():
    """Verify up to MAX_BATCH_SIZE codes queued by a reader."""
    data = request.get_json(silent=True)
    try:
        Validator.require_fields(data, ['qrCodes', 'accessPointId'])
        device_info = Validator.validate_device_info(data.get('deviceInfo'))
        results = get_services().batch_verifier.verify_batch(
            data['qrCodes'], data['accessPointId'], device_info
        )
    except ValidationError as e:
        return error_response(e.message, 400)

    return jsonify(results), 200

@access_bp.route('/logs', methods=['GET'])
@roles_required(UserRole.ADMIN, UserRole.SCHOOL_ADMIN, UserRole.STAFF, UserRole.SECURITY)
def get_access_logs():
    """List access attempts with filtering and pagination."""
    user = current_user()
    page = request.args.get('page', 1, type=int)
    per_page = min(
        request.args.get('limit', current_app.config['DEFAULT_PAGE_SIZE'], type=int),
        current_app.config['MAX_PAGE_SIZE']
    )

    query = AccessLog.query

    # School-scoped roles only see attempts by their own students
    if user.role != UserRole.ADMIN:
        query = query.join(Student, AccessLog.student_id == Student.id) \
            .filter(Student.school_id == user.school_id)

    student_number = request.args.get('student_id')
    if student_number:
        query = query.filter(AccessLog.student.has(
            Student.student_number.ilike(f"%{student_number}%")
        ))

    access_point_id = request.args.get('access_point_id')
    if access_point_id:
        query = query.filter(AccessLog.access_point_id == access_point_id)

    status = request.args.get('status')
    if status:
        try:
            query = query.filter(AccessLog.status == AccessOutcome(status))
        except ValueError:
            return error_response(f"Invalid status: {status}", 400)

    from_date = parse_date(request.args.get('from_date'))
    if from_date:
        query = query.filter(AccessLog.access_time >= from_date)

    to_date = parse_date(request.args.get('to_date'))
    if to_date:
        query = query.filter(AccessLog.access_time <= to_date)

    pagination = query.order_by(AccessLog.access_time.desc(), AccessLog.id.desc()).paginate(
        page=page,
        per_page=per_page,
        error_out=False
    )

    return success_response(data={
        'logs': [log.to_dict() for log in pagination.items],
        'pagination': {
            'page': pagination.page,
            'limit': per_page,
            'total': pagination.total,
            'total_pages': pagination.pages
        }
    })
