"""
In-app notification writer.

IMPORTANT: No function in this module should ever raise an exception.
Notifications are written after the money-moving transition has been
committed, so a failure here is logged and dropped and never undoes a
completed payment, confirmation or payout request.
"""
import logging

from fixitnow import db
from fixitnow.models import Notification, utcnow

logger = logging.getLogger(__name__)


def notify(user_id, type, title, message, job_id=None, data=None, priority='normal'):
    """Store a notification for ``user_id``. Returns the row or None. Never raises."""
    try:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            job_id=job_id,
            data=data or {},
            priority=priority,
        )
        db.session.add(notification)
        db.session.commit()
        logger.info("Notification %s sent to user %s", type, user_id)
        return notification
    except Exception:
        logger.exception("Failed to store %s notification for user %s", type, user_id)
        db.session.rollback()
        return None


def mark_read(notification):
    notification.is_read = True
    notification.read_at = utcnow()
    db.session.commit()
    return notification


def mark_all_read(user_id):
    """Mark every unread notification of the user as read; returns the count."""
    count = (
        Notification.query
        .filter_by(user_id=user_id, is_read=False)
        .update({'is_read': True, 'read_at': utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return count
