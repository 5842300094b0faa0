"""
M-Pesa API Endpoints
STK Push initiation, status query and the gateway result callback
"""

from flask import Blueprint, current_app, jsonify, request

from supportpay.errors import AppError
from supportpay.providers import get_provider, get_settings
from supportpay.services.callback_service import ACK_ACCEPTED_WITH_ERROR, CallbackService
from supportpay.services.payment_service import PaymentService
from supportpay.utils.logger import get_logger

mpesa_bp = Blueprint('mpesa', __name__)
logger = get_logger(__name__)


def _payment_service() -> PaymentService:
    return PaymentService(
        settings=get_settings(),
        provider=get_provider(),
        dedup_window=current_app.config.get('DEDUP_WINDOW_SECONDS', 0),
    )


@mpesa_bp.route('/stkpush', methods=['POST'])
@mpesa_bp.route('/stk-push', methods=['POST'])
def initiate_stk_push():
    """
    Send an STK Push to the payer's phone

    Headers:
        - Idempotency-Key: optional; defaults to a hash of phone + amount + reference

    Body:
        {
            "phoneNumber": "0712345678",
            "amount": 500,
            "accountReference": "Mwenda-Coffee",   // optional
            "transactionDesc": "Support: Coffee tier"  // optional
        }

    Returns the gateway acknowledgement unchanged. An acknowledgement only means
    the prompt was sent; the payment outcome arrives on /callback.
    """
    try:
        outcome = _payment_service().initiate(
            request.get_json(silent=True),
            idempotency_key=request.headers.get('Idempotency-Key'),
        )
        return jsonify(outcome.response), 200

    except AppError as e:
        return jsonify(e.to_dict()), e.status_code

    except Exception as e:
        logger.exception(f'STK Push Error: {str(e)}')
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@mpesa_bp.route('/status', methods=['POST'])
def query_stk_status():
    """
    Poll the gateway for the result of an earlier push

    Body:
        {"checkoutRequestId": "ws_CO_..."}
    """
    try:
        data = _payment_service().query_status(request.get_json(silent=True))
        return jsonify(data), 200

    except AppError as e:
        return jsonify(e.to_dict()), e.status_code

    except Exception as e:
        logger.exception(f'STK status query error: {str(e)}')
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@mpesa_bp.route('/callback', methods=['POST'])
def receive_callback():
    """
    Receive the STK Push result from Safaricom

    Always answers 200 with ResultCode 0, even for failed payments or
    unreadable bodies, otherwise the gateway retries for up to 24 hours.
    """
    try:
        service = CallbackService(on_result=current_app.config.get('CALLBACK_RESULT_HANDLER'))
        ack = service.handle(request.get_json(silent=True))
        return jsonify(ack), 200

    except Exception as e:
        logger.exception(f'Callback Error: {str(e)}')
        return jsonify(ACK_ACCEPTED_WITH_ERROR), 200
