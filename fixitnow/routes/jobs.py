"""
Job routes: booking lifecycle from creation to completion.
"""
from flask import Blueprint, g, jsonify, request

from fixitnow.extensions import limiter
from fixitnow.services import jobs as job_service
from fixitnow.utils import get_json_body, paginate_query
from fixitnow.utils.auth import current_professional, require_auth, require_role

jobs_bp = Blueprint('jobs', __name__)


def _serialize(job, user):
    """Assigned professionals see the cash verification code; customers do not."""
    profile = user.professional_profile
    include_code = profile is not None and job.professional_id == profile.id
    return job.to_dict(include_code=include_code)


@jobs_bp.route('', methods=['POST'])
@require_auth
@require_role('customer')
def create_job(user_id):
    """
    Create a job
    POST /api/jobs
    Body: {
        "category": "plumbing", "address": "...", "city": "Mumbai",
        "title"?, "description"?, "budget_min"?, "budget_max"?, "scheduled_at"?
    }
    """
    job = job_service.create_job(g.current_user, get_json_body())
    return jsonify({'success': True, 'job': job.to_dict()}), 201


@jobs_bp.route('', methods=['GET'])
@require_auth
def list_jobs(user_id):
    """
    List jobs
    GET /api/jobs?page=1&per_page=20&status=completed
    GET /api/jobs?scope=available   (professionals: open jobs in their city)
    """
    user = g.current_user
    if request.args.get('scope') == 'available':
        query = job_service.list_open_jobs(current_professional())
    else:
        query = job_service.list_jobs_for(user, status=request.args.get('status'))

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)
    result = paginate_query(query, page, per_page)
    result['items'] = [_serialize(job, user) for job in result['items']]

    return jsonify({'success': True, **result}), 200


@jobs_bp.route('/<job_id>', methods=['GET'])
@require_auth
def get_job(user_id, job_id):
    job = job_service.get_job_for(job_id, g.current_user)
    return jsonify({'success': True, 'job': _serialize(job, g.current_user)}), 200


@jobs_bp.route('/<job_id>/accept', methods=['POST'])
@require_auth
@require_role('professional')
def accept_job(user_id, job_id):
    job = job_service.accept_job(job_service.get_job(job_id), current_professional())
    return jsonify({'success': True, 'job': _serialize(job, g.current_user)}), 200


@jobs_bp.route('/<job_id>/start', methods=['POST'])
@require_auth
@require_role('professional')
def start_job(user_id, job_id):
    job = job_service.start_job(job_service.get_job(job_id), current_professional())
    return jsonify({'success': True, 'job': _serialize(job, g.current_user)}), 200


@jobs_bp.route('/<job_id>/complete', methods=['POST'])
@limiter.limit("10 per minute")
@require_auth
@require_role('professional')
def complete_job(user_id, job_id):
    """
    Complete a job and fix its price and payment method
    POST /api/jobs/:id/complete
    Body: {"final_price": 500, "payment_method": "cash" | "online"}

    Responds with the commission breakdown.
    """
    data = get_json_body()
    job = job_service.complete_job(
        job_service.get_job(job_id),
        current_professional(),
        data.get('final_price'),
        data.get('payment_method') or 'online',
    )
    return jsonify({
        'success': True,
        'message': 'Job completed successfully',
        'job': _serialize(job, g.current_user),
        'commission': job.commission(),
    }), 200


@jobs_bp.route('/<job_id>/cancel', methods=['POST'])
@require_auth
def cancel_job(user_id, job_id):
    """
    Cancel a job
    POST /api/jobs/:id/cancel
    Body: {"reason"?: "..."}
    """
    data = get_json_body()
    job = job_service.cancel_job(job_service.get_job(job_id), g.current_user, data.get('reason'))
    return jsonify({'success': True, 'job': _serialize(job, g.current_user)}), 200
