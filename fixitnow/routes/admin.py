"""
Admin routes: payout disbursement queue.
"""
import logging

from flask import Blueprint, g, jsonify, request

from fixitnow.services import payouts as payout_service
from fixitnow.utils import get_json_body, paginate_query
from fixitnow.utils.auth import require_auth, require_role
from .payouts import serialize_payout

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/payouts', methods=['GET'])
@require_auth
@require_role('admin')
def list_payouts(user_id):
    """
    List payouts across professionals
    GET /api/admin/payouts?status=pending&professional_id=...
    """
    query = payout_service.list_payouts(
        professional_id=request.args.get('professional_id'),
        status=request.args.get('status'),
    )
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)
    result = paginate_query(query, page, per_page)
    result['items'] = [serialize_payout(p) for p in result['items']]
    return jsonify({'success': True, **result}), 200


@admin_bp.route('/payouts/<payout_id>', methods=['PATCH'])
@require_auth
@require_role('admin')
def update_payout(user_id, payout_id):
    """
    Advance a payout
    PATCH /api/admin/payouts/:id
    Body: {
        "status": "processing" | "completed" | "failed",
        "transaction_reference"?, "failure_reason"?, "admin_notes"?, "processing_fee"?
    }
    """
    data = get_json_body('transaction_reference')
    payout = payout_service.advance_payout(
        payout_service.get_payout(payout_id),
        data.get('status'),
        transaction_reference=data.get('transaction_reference'),
        failure_reason=data.get('failure_reason'),
        admin_notes=data.get('admin_notes'),
        processing_fee=data.get('processing_fee'),
    )
    logger.info("Admin %s set payout %s to %s", g.current_user.id, payout.id, payout.status)
    return jsonify({'success': True, 'payout': serialize_payout(payout)}), 200
