"""
Online payment routes for Razorpay.
Customer pays the job's final price -> platform keeps its commission ->
the professional's share becomes available for payout.
"""
from flask import Blueprint, current_app, g, jsonify, request

from fixitnow.extensions import limiter
from fixitnow.services import online_payments
from fixitnow.services.jobs import get_job
from fixitnow.utils import get_json_body
from fixitnow.utils.auth import require_auth, require_role

payments_bp = Blueprint('payments', __name__)
webhook_bp = Blueprint('webhooks', __name__)


@payments_bp.route('/gateway/key', methods=['GET'])
@require_auth
def gateway_key(user_id):
    """Public key id for the client-side checkout"""
    return jsonify({
        'success': True,
        'key_id': current_app.config.get('RAZORPAY_KEY_ID') or None,
        'currency': current_app.config['CURRENCY'],
    }), 200


@payments_bp.route('/<job_id>/order', methods=['POST'])
@limiter.limit("10 per minute")
@require_auth
@require_role('customer')
def create_order(user_id, job_id):
    """
    Create a gateway order for a completed online job
    POST /api/payments/:job_id/order
    """
    order = online_payments.create_order(get_job(job_id), g.current_user)
    return jsonify({
        'success': True,
        'order': order,
        'key_id': current_app.config.get('RAZORPAY_KEY_ID') or None,
    }), 201


@payments_bp.route('/<job_id>/verify', methods=['POST'])
@limiter.limit("10 per minute")
@require_auth
@require_role('customer')
def verify_payment(user_id, job_id):
    """
    Verify the checkout signature
    POST /api/payments/:job_id/verify
    Body: {"order_id": "...", "payment_id": "...", "signature": "..."}
    """
    data = get_json_body('order_id', 'payment_id', 'signature')
    job = online_payments.verify_payment(
        get_job(job_id),
        g.current_user,
        data.get('order_id'),
        data.get('payment_id'),
        data.get('signature'),
    )
    return jsonify({
        'success': True,
        'message': 'Payment verified successfully',
        'payment_status': job.payment_status,
        'job': job.to_dict(),
    }), 200


@webhook_bp.route('/razorpay', methods=['POST'])
@limiter.exempt
def razorpay_webhook():
    """
    Razorpay webhook
    POST /api/webhooks/razorpay
    Headers: X-Razorpay-Signature, X-Razorpay-Event-Id
    """
    raw_body = request.get_data()
    payload = request.get_json(silent=True)

    event = online_payments.handle_webhook(
        raw_body,
        request.headers.get('X-Razorpay-Signature', ''),
        request.headers.get('X-Razorpay-Event-Id'),
        payload,
    )
    return jsonify({'success': True, 'status': event.status}), 200
