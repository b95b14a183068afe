"""Application entry point."""
import os
import click
from flask.cli import with_appcontext
from dotenv import load_dotenv

# Load environment variables before the config classes read them
load_dotenv()

from campus_access import create_app, db  # noqa: E402

# Create Flask app
app = create_app(os.getenv('FLASK_ENV', 'development'))

@app.cli.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create a demo school, student and operator accounts."""
    from campus_access.models import School, Student, User, UserRole

    db.create_all()

    school = School.query.filter_by(code='DEMO').first()
    if not school:
        school = School(name='Demo High School', code='DEMO').save()

    student = Student.query.filter_by(student_number='DEMO0001').first()
    if not student:
        student = Student(
            school_id=school.id,
            student_number='DEMO0001',
            full_name='Demo Student'
        ).save()

    accounts = [
        ('admin@campus.local', 'System Administrator', UserRole.ADMIN, None),
        ('security@campus.local', 'Gate Security', UserRole.SECURITY, school.id),
    ]
    for email, name, role, school_id in accounts:
        if not User.query.filter_by(email=email).first():
            user = User(email=email, name=name, role=role, school_id=school_id)
            user.set_password('change-me-now')
            user.save()

    click.echo('Demo data created. Operator password: change-me-now')

if __name__ == '__main__':
    # Development server
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '127.0.0.1')
    debug = os.environ.get('FLASK_ENV') == 'development'

    app.run(host=host, port=port, debug=debug)
