"""
API Blueprints Package
Registers all API blueprints
"""

from supportpay.api.health import health_bp
from supportpay.api.mpesa import mpesa_bp

# Export blueprints
__all__ = [
    'mpesa_bp',
    'health_bp'
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app

    Args:
        app: Flask application instance
    """

    url_base : str = '/api'

    app.register_blueprint(mpesa_bp, url_prefix=f'{url_base}/mpesa')
    app.register_blueprint(health_bp, url_prefix=url_base)
