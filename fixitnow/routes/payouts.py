"""
Payout routes for professionals: bank account, balance, requests, history.
"""
from flask import Blueprint, jsonify, request

from fixitnow.extensions import limiter
from fixitnow.services import payouts as payout_service
from fixitnow.services.ledger import balance_to_dict, compute_balance
from fixitnow.utils import get_json_body, paginate_query
from fixitnow.utils.auth import current_professional, require_auth, require_role

payouts_bp = Blueprint('payouts', __name__)

BANK_COLUMNS = [
    'account_holder_name', 'account_number', 'ifsc_code', 'bank_name', 'branch_name', 'account_type',
]


def serialize_payout(payout):
    data = payout.to_dict(exclude=BANK_COLUMNS)
    data['bank_account'] = payout.bank_details()
    return data


@payouts_bp.route('/bank-account', methods=['PUT'])
@limiter.limit("5 per minute")
@require_auth
@require_role('professional')
def update_bank_account(user_id):
    """
    Add or replace the bank account used for future payouts
    PUT /api/payouts/bank-account
    Body: {
        "account_holder_name", "account_number", "ifsc_code",
        "bank_name", "branch_name"?, "account_type": "savings" | "current"
    }
    """
    data = get_json_body('account_number', 'ifsc_code')
    professional = payout_service.update_bank_account(current_professional(), data)
    return jsonify({
        'success': True,
        'message': 'Bank account updated successfully',
        'professional': professional.to_dict(),
    }), 200


@payouts_bp.route('/balance', methods=['GET'])
@require_auth
@require_role('professional')
def get_balance(user_id):
    balance = compute_balance(current_professional().id)
    return jsonify({'success': True, 'balance': balance_to_dict(balance)}), 200


@payouts_bp.route('', methods=['POST'])
@limiter.limit("10 per minute")
@require_auth
@require_role('professional')
def request_payout(user_id):
    """
    Request a payout
    POST /api/payouts
    Body: {"amount": 500, "notes"?: "..."}
    """
    data = get_json_body()
    payout = payout_service.request_payout(
        current_professional(), data.get('amount'), data.get('notes'),
    )
    return jsonify({
        'success': True,
        'message': 'Payout request submitted successfully',
        'payout': serialize_payout(payout),
    }), 201


@payouts_bp.route('', methods=['GET'])
@require_auth
@require_role('professional')
def list_payouts(user_id):
    """
    Payout history, newest first
    GET /api/payouts?page=1&per_page=10
    """
    query = payout_service.list_payouts(current_professional().id)
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 10, type=int)
    result = paginate_query(query, page, per_page)
    result['items'] = [serialize_payout(p) for p in result['items']]
    return jsonify({'success': True, **result}), 200
