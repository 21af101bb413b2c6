"""Notification model"""
from fixitnow import db
from .base import BaseModel

NOTIFICATION_TYPES = (
    'job_accepted',
    'job_started',
    'job_completed',
    'job_cancelled',
    'payment_confirmation_required',
    'payment_due',
    'payment_received',
    'payment_confirmed',
    'payment_dispute',
    'payment_failed',
    'payout_requested',
    'payout_processed',
    'payout_failed',
    'bank_account_updated',
)


class Notification(BaseModel):
    """In-app notification; delivery over push/SMS/email is handled elsewhere."""
    __tablename__ = 'notifications'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    job_id = db.Column(db.String(36), db.ForeignKey('jobs.id'))
    data = db.Column(db.JSON, default=dict)
    priority = db.Column(db.String(10), nullable=False, default='normal')

    is_read = db.Column(db.Boolean, default=False, nullable=False, index=True)
    read_at = db.Column(db.DateTime(timezone=True))

    def __repr__(self):
        return f'<Notification {self.type} -> {self.user_id}>'
