"""
Cash payment routes: the dual-confirmation hand-off for cash jobs.
"""
from flask import Blueprint, g, jsonify

from fixitnow.extensions import limiter
from fixitnow.services import cash_payments
from fixitnow.services.jobs import get_job
from fixitnow.utils import get_json_body
from fixitnow.utils.auth import current_professional, require_auth, require_role

cash_payments_bp = Blueprint('cash_payments', __name__)


@cash_payments_bp.route('/<job_id>/mark-received', methods=['POST'])
@limiter.limit("10 per minute")
@require_auth
@require_role('professional')
def mark_received(user_id, job_id):
    """
    Professional marks the cash as received
    POST /api/cash-payments/:job_id/mark-received
    """
    job = cash_payments.mark_cash_received(get_job(job_id), current_professional())
    return jsonify({
        'success': True,
        'message': 'Payment marked as received. Waiting for customer confirmation.',
        'payment_status': job.payment_status,
        'cash_details': job.cash_details(),
    }), 200


@cash_payments_bp.route('/<job_id>/confirm', methods=['POST'])
@limiter.limit("10 per minute")
@require_auth
@require_role('customer')
def confirm_payment(user_id, job_id):
    """
    Customer confirms the cash payment
    POST /api/cash-payments/:job_id/confirm
    Body: {"tip_amount"?: 50, "verification_code"?: "123456"}
    """
    data = get_json_body('verification_code')
    job = cash_payments.confirm_cash_payment(
        get_job(job_id),
        g.current_user,
        tip_amount=data.get('tip_amount'),
        verification_code=data.get('verification_code'),
    )
    return jsonify({
        'success': True,
        'message': 'Payment confirmed successfully',
        'job': job.to_dict(),
    }), 200


@cash_payments_bp.route('/<job_id>/dispute', methods=['POST'])
@require_auth
def raise_dispute(user_id, job_id):
    """
    Either party raises a payment dispute
    POST /api/cash-payments/:job_id/dispute
    Body: {"reason": "..."}
    """
    data = get_json_body()
    job = cash_payments.raise_dispute(get_job(job_id), g.current_user, data.get('reason'))
    return jsonify({
        'success': True,
        'message': 'Dispute raised successfully. Our support team will review this case.',
        'cash_details': job.cash_details(),
    }), 200


@cash_payments_bp.route('/<job_id>/receipts', methods=['POST'])
@require_auth
def add_receipt(user_id, job_id):
    """
    Attach a receipt photo (already uploaded to storage)
    POST /api/cash-payments/:job_id/receipts
    Body: {"url": "https://..."}
    """
    data = get_json_body('url')
    photo = cash_payments.add_receipt_photo(get_job(job_id), g.current_user, data.get('url'))
    return jsonify({'success': True, 'receipt': photo}), 201


@cash_payments_bp.route('/<job_id>/status', methods=['GET'])
@require_auth
def payment_status(user_id, job_id):
    status = cash_payments.payment_status(get_job(job_id), g.current_user)
    return jsonify({'success': True, **status}), 200
