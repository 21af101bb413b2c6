"""API routes package"""
from .auth import auth_bp
from .jobs import jobs_bp
from .cash_payments import cash_payments_bp
from .payments import payments_bp, webhook_bp
from .payouts import payouts_bp
from .admin import admin_bp
from .notifications import notifications_bp

__all__ = [
    'auth_bp',
    'jobs_bp',
    'cash_payments_bp',
    'payments_bp',
    'webhook_bp',
    'payouts_bp',
    'admin_bp',
    'notifications_bp',
]
