"""Database models"""
from .base import BaseModel, as_utc, generate_uuid, utcnow, save_changes
from .user import User
from .professional import Professional
from .job import Job
from .payout import Payout
from .notification import Notification
from .webhook_event import WebhookEvent

__all__ = [
    'BaseModel',
    'as_utc',
    'generate_uuid',
    'utcnow',
    'save_changes',
    'User',
    'Professional',
    'Job',
    'Payout',
    'Notification',
    'WebhookEvent',
]
