"""
Job lifecycle: create, accept, start, complete, cancel.

Completion is where money enters the system: the final price and payment
method are fixed, the commission split is stamped onto the job and, for cash
jobs, the dual-confirmation hand-off is opened.
"""
import logging
import secrets
from datetime import datetime, timedelta

from flask import current_app

from fixitnow import db
from fixitnow.errors import (
    AuthorizationError, NotFoundError, StateConflictError, ValidationError,
)
from fixitnow.models import Job, save_changes, utcnow
from fixitnow.services.commission import calculate_commission
from fixitnow.services.notifications import notify
from fixitnow.utils.helpers import quantize_money, to_decimal

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = ('accepted', 'in_progress')
CANCELLABLE_STATUSES = ('pending', 'accepted', 'in_progress')


def generate_verification_code():
    """Random 6-digit code the assigned professional reads out at the cash hand-off"""
    return str(secrets.randbelow(900000) + 100000)


def get_job(job_id):
    job = db.session.get(Job, job_id)
    if job is None:
        raise NotFoundError('Job not found')
    return job


def get_job_for(job_id, user):
    """Load a job the user participates in (admins see every job)."""
    job = get_job(job_id)
    if not (user.is_admin() or job.is_participant(user)):
        raise AuthorizationError('Not authorized to access this job')
    return job


def _require_assigned(job, professional):
    if professional is None or job.professional_id != professional.id:
        raise AuthorizationError('Job is not assigned to you')


def _optional_money(data, field):
    value = data.get(field)
    if value is None or value == '':
        return None
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f'{field} cannot be negative', field=field)
    return quantize_money(amount)


# ----------------------------------------------------------------
# Customer actions
# ----------------------------------------------------------------

def create_job(customer, data):
    """Create a pending job for ``customer`` from request data."""
    missing = [f for f in ('category', 'address', 'city') if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    budget_min = _optional_money(data, 'budget_min')
    budget_max = _optional_money(data, 'budget_max')
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise ValidationError('budget_min cannot exceed budget_max', field='budget_min')

    scheduled_at = None
    if data.get('scheduled_at'):
        try:
            scheduled_at = datetime.fromisoformat(str(data['scheduled_at']))
        except ValueError:
            raise ValidationError('scheduled_at must be an ISO 8601 datetime', field='scheduled_at')

    job = Job(
        customer_id=customer.id,
        title=data.get('title') or data['category'],
        description=data.get('description'),
        category=data['category'],
        address=data['address'],
        city=data['city'],
        scheduled_at=scheduled_at,
        budget_min=budget_min,
        budget_max=budget_max,
        status='pending',
        payment_status='pending',
        receipt_photos=[],
    )
    db.session.add(job)
    save_changes()

    logger.info("Job %s created by customer %s", job.id, customer.id)
    return job


def cancel_job(job, user, reason=None):
    """
    Cancel a job that has not been completed.

    The customer who owns the job or the assigned professional may cancel;
    an assigned professional is freed for new work.
    """
    profile = user.professional_profile
    is_owner = job.customer_id == user.id
    is_assignee = profile is not None and job.professional_id == profile.id
    if not (is_owner or is_assignee):
        raise AuthorizationError('Not authorized to cancel this job')

    if job.status not in CANCELLABLE_STATUSES:
        raise StateConflictError(f'Cannot cancel a job that is {job.status}', status=job.status)

    job.status = 'cancelled'
    job.cancelled_at = utcnow()
    job.cancellation_reason = reason

    professional = job.professional
    if professional is not None and professional.current_job_id == job.id:
        professional.is_busy = False
        professional.current_job_id = None

    save_changes()
    logger.info("Job %s cancelled by user %s", job.id, user.id)

    recipient = None
    if is_owner and professional is not None:
        recipient = professional.user_id
    elif is_assignee:
        recipient = job.customer_id
    if recipient:
        notify(
            recipient, 'job_cancelled', 'Job Cancelled',
            f'The job "{job.title}" has been cancelled.',
            job_id=job.id, data={'reason': reason},
        )
    return job


# ----------------------------------------------------------------
# Professional actions
# ----------------------------------------------------------------

def accept_job(job, professional):
    if job.status != 'pending' or job.professional_id is not None:
        raise StateConflictError('Job is no longer available', status=job.status)
    if professional.is_busy:
        raise StateConflictError('You already have a job in progress')
    if (professional.city or '').strip().lower() != (job.city or '').strip().lower():
        raise AuthorizationError('Job is outside your service city')

    job.professional_id = professional.id
    job.status = 'accepted'
    job.accepted_at = utcnow()
    professional.is_busy = True
    professional.current_job_id = job.id

    save_changes()
    logger.info("Job %s accepted by professional %s", job.id, professional.id)

    notify(
        job.customer_id, 'job_accepted', 'Job Accepted',
        f'{professional.user.name} has accepted your job "{job.title}".',
        job_id=job.id,
    )
    return job


def start_job(job, professional):
    _require_assigned(job, professional)
    if job.status != 'accepted':
        raise StateConflictError(f'Cannot start a job that is {job.status}', status=job.status)

    job.status = 'in_progress'
    job.started_at = utcnow()
    save_changes()

    notify(
        job.customer_id, 'job_started', 'Job Started',
        f'{professional.user.name} has started working on "{job.title}".',
        job_id=job.id,
    )
    return job


def complete_job(job, professional, final_price, payment_method='online'):
    """
    Complete a job and stamp its commission.

    The price must lie within the job's budget bounds where they are set.
    Cash jobs move to ``cash_pending`` with a fresh verification code; online
    jobs wait in ``pending`` for the gateway.
    """
    _require_assigned(job, professional)
    if job.status not in COMPLETABLE_STATUSES:
        raise StateConflictError(f'Cannot complete a job that is {job.status}', status=job.status)
    if final_price is None:
        raise ValidationError('Final price is required for completion', field='final_price')

    commission = calculate_commission(
        final_price, payment_method,
        online_rate=current_app.config['PLATFORM_COMMISSION_RATE'],
    )
    price = commission.total

    if job.budget_min is not None and price < job.budget_min:
        raise ValidationError('Final price cannot be below minimum budget', field='final_price')
    if job.budget_max is not None and price > job.budget_max:
        raise ValidationError('Final price cannot exceed maximum budget', field='final_price')

    job.final_price = price
    job.payment_method = payment_method
    job.commission_total = commission.total
    job.company_fee = commission.company_fee
    job.provider_earnings = commission.provider_earnings
    job.commission_rate = commission.commission_rate
    job.commission_payment_method = commission.payment_method

    job.status = 'completed'
    job.completed_at = utcnow()

    if payment_method == 'cash':
        job.payment_status = 'cash_pending'
        job.cash_amount = price
        job.professional_marked_received = False
        job.customer_confirmed = False
        job.verification_code = generate_verification_code()
        job.verification_code_expires_at = job.completed_at + timedelta(
            hours=current_app.config['VERIFICATION_CODE_TTL_HOURS']
        )
    else:
        job.payment_status = 'pending'

    professional.is_busy = False
    professional.current_job_id = None

    save_changes()
    logger.info(
        "Job %s completed: price=%s method=%s fee=%s",
        job.id, price, payment_method, commission.company_fee,
    )

    notify(
        job.customer_id, 'job_completed', 'Job Completed Successfully',
        f'{professional.user.name} has completed your job "{job.title}". '
        + ('Please confirm the cash payment once made.' if payment_method == 'cash'
           else 'Please make payment online.'),
        job_id=job.id,
    )
    if payment_method == 'cash':
        notify(
            job.customer_id, 'payment_confirmation_required', 'Cash Payment Confirmation Required',
            f'Please confirm the cash payment of ₹{price:.2f} for job "{job.title}" '
            'once you have paid the professional.',
            job_id=job.id, data={'amount': float(price)}, priority='high',
        )
    else:
        notify(
            job.customer_id, 'payment_due', 'Payment Due',
            f'Payment of ₹{price:.2f} is due for job "{job.title}".',
            job_id=job.id, data={'amount': float(price)}, priority='high',
        )
    return job


def list_jobs_for(user, status=None):
    """Jobs the user owns (customer) or is assigned to (professional), newest first."""
    query = Job.query
    if user.is_admin():
        pass
    elif user.professional_profile is not None:
        query = query.filter(Job.professional_id == user.professional_profile.id)
    else:
        query = query.filter(Job.customer_id == user.id)
    if status:
        query = query.filter(Job.status == status)
    return query.order_by(Job.created_at.desc())


def list_open_jobs(professional):
    """Pending, unassigned jobs in the professional's city."""
    return (
        Job.query
        .filter(Job.status == 'pending', Job.professional_id.is_(None))
        .filter(db.func.lower(Job.city) == (professional.city or '').lower())
        .order_by(Job.created_at.desc())
    )
