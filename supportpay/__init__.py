from flask import Flask, jsonify

from supportpay.errors import AppError

__version__ = '1.0.0'


def create_app(config_name='development'):
    """Application factory pattern"""
    from supportpay.api import register_blueprints
    from supportpay.config import MpesaSettings, config
    from supportpay.extensions import cors, redis_client
    from supportpay.utils.logger import RequestLogger, configure_app_logging

    app = Flask(__name__)

    # Load configuration (a name from config, or a Config subclass)
    if isinstance(config_name, str):
        app.config.from_object(config.get(config_name, config['default']))
    else:
        app.config.from_object(config_name)

    # Fail at startup, not halfway through a payment
    app.extensions['mpesa_settings'] = MpesaSettings.from_mapping(app.config)

    # Initialize extensions
    redis_client.init_app(app)
    cors.init_app(app)
    configure_app_logging(app)
    RequestLogger(app)

    register_blueprints(app)

    # Error handlers
    register_error_handlers(app)

    return app


def register_error_handlers(app):
    """Register error handlers"""

    @app.errorhandler(AppError)
    def app_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'error': 'Bad request', 'message': str(error)}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found', 'message': str(error)}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'message': str(error)}), 405

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Internal server error', 'message': str(error)}), 500
