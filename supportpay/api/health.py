"""
Health Check Endpoints
"""

import os
from datetime import datetime, timezone

from flask import Blueprint, jsonify

from supportpay import __version__

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Liveness check. The functions are stateless, so there is nothing else to probe.
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'service': 'supportpay',
        'version': __version__
    }), 200


@health_bp.route('/version', methods=['GET'])
def version():
    """
    Get application version information
    """
    return jsonify({
        'service': 'supportpay',
        'version': __version__,
        'environment': os.getenv('FLASK_ENV', 'production')
    }), 200
