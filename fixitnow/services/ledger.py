"""
Earnings ledger, derived from job and payout rows on every call.

A completed job contributes to a professional's earnings only once its money
is confirmed: online jobs contribute ``provider_earnings`` once ``paid``;
cash jobs contribute ``final_price`` (tip included) once ``cash_verified``.
Payouts that are pending, processing or completed are deducted.
"""
from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, case, func, or_

from fixitnow import db
from fixitnow.models import Job, Payout
from fixitnow.models.payout import ACTIVE_PAYOUT_STATUSES, COMMITTED_PAYOUT_STATUSES
from fixitnow.utils.helpers import config_decimal, quantize_money


def _sum(query):
    value = query.scalar()
    return quantize_money(Decimal(str(value))) if value is not None else Decimal('0.00')


def compute_balance(professional_id):
    """
    Recompute a professional's balance.

    Returns:
        dict: Decimal ``total_earnings``, ``total_paid_out``,
        ``pending_amount``, ``available_balance`` and ``minimum_payout``
    """
    online_paid = and_(Job.payment_method == 'online', Job.payment_status == 'paid')
    cash_verified = and_(Job.payment_method == 'cash', Job.payment_status == 'cash_verified')

    earned = func.sum(
        case(
            (online_paid, Job.provider_earnings),
            (cash_verified, Job.final_price),
            else_=0,
        )
    )
    total_earnings = _sum(
        db.session.query(earned)
        .filter(Job.professional_id == professional_id, Job.status == 'completed')
        .filter(or_(online_paid, cash_verified))
    )

    total_paid_out = _sum(
        db.session.query(func.sum(Payout.amount))
        .filter(Payout.professional_id == professional_id)
        .filter(Payout.status.in_(COMMITTED_PAYOUT_STATUSES))
    )
    pending_amount = _sum(
        db.session.query(func.sum(Payout.amount))
        .filter(Payout.professional_id == professional_id)
        .filter(Payout.status.in_(ACTIVE_PAYOUT_STATUSES))
    )

    return {
        'total_earnings': total_earnings,
        'total_paid_out': total_paid_out,
        'pending_amount': pending_amount,
        'available_balance': total_earnings - total_paid_out,
        'minimum_payout': config_decimal('MINIMUM_PAYOUT_AMOUNT'),
        'currency': current_app.config['CURRENCY'],
    }


def balance_to_dict(balance):
    return {
        key: float(value) if isinstance(value, Decimal) else value
        for key, value in balance.items()
    }
