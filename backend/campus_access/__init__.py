"""Campus Access - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import redis

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)

def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from campus_access.config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    if not app.config.get('QR_SECRET_KEY'):
        raise RuntimeError('QR_SECRET_KEY must be set')

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

    # Build the verification core
    setup_services(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Campus Access',
            'version': '1.0.0'
        })

    return app

def setup_services(app: Flask) -> None:
    """Create the codec, cache, store and verification services."""
    from campus_access.services import EXTENSION_KEY, build_services

    redis_client = None
    if app.config.get('REDIS_URL'):
        redis_client = redis.Redis.from_url(app.config['REDIS_URL'], decode_responses=True)
    else:
        app.logger.warning('REDIS_URL not set, pass verification cache disabled')

    app.extensions[EXTENSION_KEY] = build_services(app.config, redis_client)

def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from campus_access.api.auth import auth_bp
    from campus_access.api.access import access_bp
    from campus_access.api.passes import passes_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(access_bp, url_prefix='/api/access')
    app.register_blueprint(passes_bp, url_prefix='/api/passes')

def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from campus_access.utils.helpers import handle_error
    from campus_access.utils.validators import ValidationError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return handle_error(error, 400)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e, e.code)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error('Internal server error', 500)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({
            'error': True,
            'message': 'Token has expired',
            'status_code': 401
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Invalid token',
            'status_code': 401
        }), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Authorization token required',
            'status_code': 401
        }), 401

def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    if not app.debug and not app.testing:
        log_dir = os.path.dirname(app.config['LOG_FILE'])
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(app.config['LOG_FILE'])
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.info('Campus Access startup')

def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        from campus_access import models  # noqa: F401

        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

    @app.cli.command('create-admin')
    def create_admin():
        """Create admin user."""
        from campus_access.models.user import User, UserRole

        email = click.prompt('Admin email')
        name = click.prompt('Admin name')
        password = click.prompt('Password', hide_input=True, confirmation_prompt=True)

        if User.query.filter_by(email=email.lower().strip()).first():
            raise click.ClickException(f'User already exists: {email}')

        admin = User(
            email=email.lower().strip(),
            name=name,
            role=UserRole.ADMIN
        )
        admin.set_password(password)
        admin.save()
        click.echo(f'Admin user created: {admin.email}')

    @app.cli.command('expire-passes')
    def expire_passes():
        """Expire every active pass past its expiry date."""
        from campus_access.services import get_services

        count = get_services().pass_service.expire_overdue()
        click.echo(f'Expired {count} passes.')
