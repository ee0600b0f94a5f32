import logging

from flask import Flask, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_bcrypt import Bcrypt
from flask_marshmallow import Marshmallow
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException


db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
bcrypt = Bcrypt()
ma = Marshmallow()


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('seatledger').setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object='seatledger.config.Config'):
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_object)
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    CORS(app)
    bcrypt.init_app(app)
    ma.init_app(app)

    from seatledger import models  # noqa: F401  (register tables with the metadata)

    with app.app_context():
        from seatledger.database_setup import initialize_database, register_db_commands

        # Register CLI commands
        register_db_commands(app)

        if app.config.get('AUTO_INIT_DB'):
            initialize_database()

    # Register blueprints
    from seatledger.routes.auth import auth_bp
    from seatledger.routes.renewals import renewals_bp
    from seatledger.routes.cron import cron_bp
    from seatledger.routes.analytics import analytics_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(renewals_bp)
    app.register_blueprint(cron_bp, url_prefix='/cron')
    app.register_blueprint(analytics_bp, url_prefix='/analytics')

    @app.route('/health')
    def health_check():
        return {
            'ok': True,
            'data': {'status': 'healthy', 'message': 'Seat ledger API is running!'}
        }, 200

    register_error_handlers(app)
    return app


def register_error_handlers(app):
    from seatledger.errors import LedgerError, StorageFailure
    from seatledger.utils.responses import error

    @app.errorhandler(LedgerError)
    def ledger_error(exc):
        if isinstance(exc, StorageFailure):
            # Context was already logged where the failure happened
            return error(StorageFailure.message, exc.status_code, code=exc.code)
        fields = getattr(exc, 'fields', None)
        return error(exc.message, exc.status_code, fields=fields, code=exc.code)

    @app.errorhandler(ValidationError)
    def validation_error(exc):
        return error('Validation error', 422, fields=exc.messages, code='invalid_input')

    @app.errorhandler(404)
    def not_found(exc):
        return error(f'The endpoint {request.path} does not exist.', 404, code='not_found')

    @app.errorhandler(HTTPException)
    def http_error(exc):
        return error(exc.description, exc.code)

    @app.errorhandler(Exception)
    def internal_error(exc):
        db.session.rollback()
        app.logger.exception('Unhandled error on %s %s', request.method, request.path)
        return error('Something went wrong on the server.', 500, code='internal_error')
