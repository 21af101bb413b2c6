"""
Notification inbox routes.
"""
from flask import Blueprint, jsonify, request

from fixitnow import db
from fixitnow.errors import NotFoundError
from fixitnow.models import Notification
from fixitnow.services.notifications import mark_all_read, mark_read
from fixitnow.utils import paginate_query
from fixitnow.utils.auth import require_auth

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('', methods=['GET'])
@require_auth
def list_notifications(user_id):
    """
    GET /api/notifications?page=1&per_page=20&unread=true
    """
    query = Notification.query.filter_by(user_id=user_id)
    if request.args.get('unread') == 'true':
        query = query.filter_by(is_read=False)
    query = query.order_by(Notification.created_at.desc())

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)
    result = paginate_query(query, page, per_page)
    result['items'] = [n.to_dict() for n in result['items']]
    result['unread_count'] = Notification.query.filter_by(user_id=user_id, is_read=False).count()

    return jsonify({'success': True, **result}), 200


@notifications_bp.route('/<notification_id>/read', methods=['POST'])
@require_auth
def read_notification(user_id, notification_id):
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError('Notification not found')
    mark_read(notification)
    return jsonify({'success': True, 'notification': notification.to_dict()}), 200


@notifications_bp.route('/read-all', methods=['POST'])
@require_auth
def read_all(user_id):
    count = mark_all_read(user_id)
    return jsonify({'success': True, 'updated': count}), 200
