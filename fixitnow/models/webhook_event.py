"""Webhook delivery log, used for idempotency and auditing"""
from fixitnow import db
from .base import BaseModel


class WebhookEvent(BaseModel):
    __tablename__ = 'webhook_events'

    event_id = db.Column(db.String(100), unique=True, nullable=False, index=True)
    event_type = db.Column(db.String(100), nullable=False)
    payload = db.Column(db.JSON)
    status = db.Column(db.String(20), nullable=False, default='received')  # received, processed, ignored, failed
    error_message = db.Column(db.Text)
    processed_at = db.Column(db.DateTime(timezone=True))

    def __repr__(self):
        return f'<WebhookEvent {self.event_type} {self.event_id}>'
