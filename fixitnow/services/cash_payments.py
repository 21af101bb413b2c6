"""
Cash payment dual-confirmation workflow.

After a cash job is completed it sits in ``cash_pending``. The professional
may flag that cash was received (informational), either party may attach a
receipt or raise a dispute, and the customer's confirmation alone moves the
job to ``cash_verified``, which is what releases the earnings to the ledger.
"""
import hmac
import logging

from fixitnow.errors import (
    AuthorizationError, InvalidVerificationCode, StateConflictError, ValidationError,
)
from fixitnow.models import save_changes, utcnow
from fixitnow.services.notifications import notify
from fixitnow.utils.helpers import quantize_money, to_decimal

logger = logging.getLogger(__name__)

MAX_DISPUTE_REASON_LENGTH = 1000


def _require_completed_cash_job(job):
    if job.status != 'completed':
        raise StateConflictError('Job is not completed yet', status=job.status)
    if not job.is_cash:
        raise StateConflictError('Job is not a cash payment', payment_method=job.payment_method)


def _role_in_job(job, user):
    """'customer' or 'professional' for a participant, else AuthorizationError."""
    if job.customer_id == user.id:
        return 'customer'
    profile = user.professional_profile
    if profile is not None and job.professional_id == profile.id:
        return 'professional'
    raise AuthorizationError('Not authorized')


def mark_cash_received(job, professional):
    """Professional records that the cash was handed over."""
    if professional is None or job.professional_id != professional.id:
        raise AuthorizationError('Not authorized')
    _require_completed_cash_job(job)
    if job.professional_marked_received:
        raise StateConflictError('Cash has already been marked as received')

    job.professional_marked_received = True
    job.professional_received_at = utcnow()
    save_changes()

    logger.info("Professional %s marked cash received for job %s", professional.id, job.id)
    notify(
        job.customer_id, 'payment_received', 'Payment Received',
        f'The professional has marked the cash payment for "{job.title}" as received. '
        'Please confirm the payment.',
        job_id=job.id, priority='high',
    )
    return job


def confirm_cash_payment(job, customer, tip_amount=None, verification_code=None):
    """
    Customer confirms the cash payment, optionally adding a tip.

    A supplied verification code must match the one issued at completion and
    must not have expired. Confirmation consumes the code.
    The tip widens ``final_price`` and ``cash_amount`` but the commission
    stamped at completion is left untouched.
    """
    if job.customer_id != customer.id:
        raise AuthorizationError('Not authorized')
    _require_completed_cash_job(job)
    if job.payment_status != 'cash_pending':
        raise StateConflictError(
            'Cash payment is not awaiting confirmation', payment_status=job.payment_status
        )

    if verification_code not in (None, ''):
        if not job.verification_code or not hmac.compare_digest(
            str(verification_code).encode(), job.verification_code.encode()
        ):
            raise InvalidVerificationCode()
        if job.verification_code_expired():
            raise InvalidVerificationCode('Verification code has expired', expired=True)

    tip = None
    if tip_amount not in (None, ''):
        tip = quantize_money(to_decimal(tip_amount, 'tip_amount'))
        if tip < 0:
            raise ValidationError('tip_amount cannot be negative', field='tip_amount')

    if tip:
        job.tip_amount = tip
        job.final_price = job.final_price + tip
        job.cash_amount = (job.cash_amount or 0) + tip

    now = utcnow()
    job.customer_confirmed = True
    job.customer_confirmed_at = now
    job.payment_status = 'cash_verified'
    job.verification_code = None
    job.verification_code_expires_at = None
    job.paid_at = now
    save_changes()

    logger.info("Cash payment for job %s confirmed (tip=%s)", job.id, tip or 0)

    tip_message = f' (includes ₹{tip:.2f} tip)' if tip else ''
    notify(
        job.professional.user_id, 'payment_confirmed', 'Payment Confirmed',
        f'Customer has confirmed payment of ₹{job.final_price:.2f} for job '
        f'"{job.title}"{tip_message}. Transaction complete.',
        job_id=job.id, data={'amount': float(job.final_price)},
    )
    return job


def raise_dispute(job, user, reason):
    """Either party flags the cash hand-off for manual review."""
    raised_by = _role_in_job(job, user)
    _require_completed_cash_job(job)

    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('A reason is required to raise a dispute', field='reason')
    if len(reason) > MAX_DISPUTE_REASON_LENGTH:
        raise ValidationError('Dispute reason is too long', field='reason')
    if job.payment_status != 'cash_pending':
        raise StateConflictError(
            'Disputes can only be raised while the cash payment is pending',
            payment_status=job.payment_status,
        )
    if job.dispute_raised:
        raise StateConflictError('A dispute has already been raised for this job')

    job.dispute_raised = True
    job.dispute_details = {
        'raised_by': raised_by,
        'reason': reason,
        'raised_at': utcnow().isoformat(),
        'status': 'pending',
    }
    save_changes()

    logger.warning("Payment dispute raised on job %s by %s", job.id, raised_by)

    counterparty = job.professional.user_id if raised_by == 'customer' else job.customer_id
    notify(
        counterparty, 'payment_dispute', 'Payment Dispute Raised',
        f'A payment dispute has been raised for job "{job.title}". '
        'Our support team will review this case.',
        job_id=job.id, priority='high',
    )
    return job


def add_receipt_photo(job, user, url):
    """Record a receipt photo URL uploaded by either party."""
    uploaded_by = _role_in_job(job, user)
    _require_completed_cash_job(job)
    if not url or not isinstance(url, str):
        raise ValidationError('Receipt url is required', field='url')

    photo = {'url': url, 'uploaded_by': uploaded_by, 'uploaded_at': utcnow().isoformat()}
    # Reassign so the JSON column is flagged dirty
    job.receipt_photos = list(job.receipt_photos or []) + [photo]
    save_changes()
    return photo


def payment_status(job, user):
    _role_in_job(job, user)
    return {
        'job_id': job.id,
        'payment_status': job.payment_status,
        'payment_method': job.payment_method,
        'final_price': float(job.final_price) if job.final_price is not None else None,
        'tip_amount': float(job.tip_amount or 0),
        'cash_details': job.cash_details() if job.is_cash else None,
        'commission': job.commission(),
    }
