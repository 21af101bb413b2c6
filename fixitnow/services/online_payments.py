"""
Online payment path via the Razorpay Orders API.

Flow: the customer asks for a gateway order for a completed online job, pays
in the Razorpay checkout, then posts the ``order_id``/``payment_id``/
``signature`` triple back for verification. Razorpay also calls the webhook
endpoint; both paths converge on the same ``pending -> paid`` transition.

Signatures are HMAC-SHA256 hex digests compared in constant time:

* checkout: ``HMAC(key_secret, "{order_id}|{payment_id}")``
* webhook:  ``HMAC(webhook_secret, raw_request_body)``
"""
import hashlib
import hmac
import logging
import uuid
from decimal import Decimal

import requests
from flask import current_app
from sqlalchemy.exc import IntegrityError

from fixitnow import db
from fixitnow.errors import (
    AuthorizationError, GatewayError, InvalidSignature, StateConflictError, ValidationError,
)
from fixitnow.models import Job, WebhookEvent, save_changes, utcnow
from fixitnow.services.notifications import notify

logger = logging.getLogger(__name__)

PAID_EVENTS = ('payment.captured', 'order.paid')
FAILED_EVENTS = ('payment.failed',)
# Deliveries in these states are applied again when the gateway redelivers
RETRYABLE_EVENT_STATUSES = ('received', 'failed')


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------

def compute_hmac_sha256(secret, payload):
    """Compute HMAC-SHA256 signature of payload (str or bytes) as hex"""
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    return hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()


def constant_time_compare(a, b):
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))


def verify_payment_signature(order_id, payment_id, signature, secret):
    """True when ``signature`` is the checkout signature for the order/payment pair"""
    if not secret:
        return False
    expected = compute_hmac_sha256(secret, f'{order_id}|{payment_id}')
    return constant_time_compare(expected, signature)


def verify_webhook_signature(raw_body, signature, secret):
    if not secret:
        return False
    expected = compute_hmac_sha256(secret, raw_body)
    return constant_time_compare(expected, signature)


# ---------------------------------------------------------------------------
# Gateway client
# ---------------------------------------------------------------------------

def _to_paise(amount):
    """Razorpay expects amounts in the smallest currency unit."""
    return int((Decimal(str(amount)) * Decimal('100')).quantize(Decimal('1')))


def create_gateway_order(amount, receipt, notes=None):
    """
    Create a Razorpay order.

    Without API keys (local development) a dev order id is returned and no
    network call is made.

    Returns:
        dict: ``{'id', 'amount', 'currency', 'receipt'}``

    Raises:
        GatewayError: the gateway was unreachable or rejected the request
    """
    key_id = current_app.config.get('RAZORPAY_KEY_ID')
    key_secret = current_app.config.get('RAZORPAY_KEY_SECRET')
    currency = current_app.config['CURRENCY']
    amount_paise = _to_paise(amount)

    if not key_id or not key_secret:
        order_id = f'order_dev_{uuid.uuid4().hex[:14]}'
        logger.info("[DEV] Razorpay order %s for %s paise", order_id, amount_paise)
        return {'id': order_id, 'amount': amount_paise, 'currency': currency, 'receipt': receipt}

    url = f"{current_app.config['RAZORPAY_API_BASE']}/orders"
    payload = {
        'amount': amount_paise,
        'currency': currency,
        'receipt': receipt,
        'notes': notes or {},
    }

    try:
        response = requests.post(url, auth=(key_id, key_secret), json=payload, timeout=30)
    except requests.exceptions.Timeout:
        logger.error("Razorpay order creation timed out")
        raise GatewayError('Payment gateway timed out')
    except requests.exceptions.RequestException as e:
        logger.error("Razorpay order creation failed: %s", e)
        raise GatewayError('Payment gateway unreachable')

    data = response.json() if response.content else {}
    if response.status_code != 200 or not data.get('id'):
        error = (data.get('error') or {}).get('description') or str(data)
        logger.error("Razorpay order rejected (%s): %s", response.status_code, error)
        raise GatewayError(f'Payment gateway rejected the order: {error}')

    logger.info("Razorpay order %s created for receipt %s", data['id'], receipt)
    return {
        'id': data['id'],
        'amount': data.get('amount', amount_paise),
        'currency': data.get('currency', currency),
        'receipt': data.get('receipt', receipt),
    }


# ---------------------------------------------------------------------------
# Job transitions
# ---------------------------------------------------------------------------

def _require_payable(job, customer):
    if job.customer_id != customer.id:
        raise AuthorizationError('Not authorized')
    if job.status != 'completed':
        raise StateConflictError('Job is not completed yet', status=job.status)
    if not job.is_online:
        raise StateConflictError('Job is not an online payment', payment_method=job.payment_method)
    if job.payment_status == 'paid':
        raise StateConflictError('Job has already been paid')


def create_order(job, customer):
    """Open (or reuse) a gateway order for the job's final price."""
    _require_payable(job, customer)

    if job.gateway_order_id and job.payment_status == 'pending':
        return {
            'id': job.gateway_order_id,
            'amount': _to_paise(job.final_price),
            'currency': current_app.config['CURRENCY'],
            'receipt': job.id,
        }

    order = create_gateway_order(
        job.final_price, receipt=job.id, notes={'job_id': job.id, 'customer_id': customer.id},
    )
    job.gateway_order_id = order['id']
    save_changes()
    return order


def _mark_paid(job, payment_id, order_id=None, signature=None):
    if payment_id:
        other = (
            Job.query
            .filter(Job.gateway_payment_id == payment_id, Job.id != job.id)
            .first()
        )
        if other is not None:
            raise StateConflictError('Payment has already been applied to another job')
    job.payment_status = 'paid'
    job.gateway_payment_id = payment_id
    if order_id:
        job.gateway_order_id = order_id
    if signature:
        job.gateway_signature = signature
    job.paid_at = utcnow()


def _notify_paid(job):
    notify(
        job.professional.user_id, 'payment_received', 'Payment Received',
        f'Payment of ₹{job.final_price:.2f} for job "{job.title}" has been received. '
        f'Your earnings: ₹{job.provider_earnings:.2f}.',
        job_id=job.id, data={'amount': float(job.provider_earnings)},
    )


def verify_payment(job, customer, order_id, payment_id, signature):
    """
    Verify the checkout signature and mark the job paid.

    Raises:
        ValidationError: missing fields or an order id that is not the job's
        InvalidSignature: signature mismatch or no key secret configured
        StateConflictError: job already paid, no order opened yet, or the
            payment id already settled another job
    """
    if not (order_id and payment_id and signature):
        raise ValidationError('order_id, payment_id and signature are required')
    _require_payable(job, customer)

    if not job.gateway_order_id:
        raise StateConflictError('No payment order has been created for this job')
    if order_id != job.gateway_order_id:
        raise ValidationError('Order id does not belong to this job', field='order_id')

    secret = current_app.config.get('RAZORPAY_KEY_SECRET')
    if not verify_payment_signature(order_id, payment_id, signature, secret):
        logger.warning("Invalid payment signature for job %s (order %s)", job.id, order_id)
        raise InvalidSignature()

    _mark_paid(job, payment_id, order_id=order_id, signature=signature)
    save_changes()
    logger.info("Online payment %s verified for job %s", payment_id, job.id)

    _notify_paid(job)
    return job


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------

def _find_job_for_entity(entity):
    notes = entity.get('notes') or {}
    job_id = notes.get('job_id') if isinstance(notes, dict) else None
    if job_id:
        job = db.session.get(Job, job_id)
        if job is not None:
            return job
    order_id = entity.get('order_id') or entity.get('id')
    if order_id:
        return Job.query.filter_by(gateway_order_id=order_id).first()
    return None


def _apply_event(event_type, payload):
    """Apply a verified webhook event. Returns the resulting WebhookEvent status."""
    if event_type not in PAID_EVENTS + FAILED_EVENTS:
        return 'ignored'

    entities = payload.get('payload') or {}
    payment = (entities.get('payment') or {}).get('entity') or {}
    order = (entities.get('order') or {}).get('entity') or {}

    job = _find_job_for_entity(payment) or _find_job_for_entity(order)
    if job is None or not job.is_online:
        logger.warning("Webhook %s did not match an online job", event_type)
        return 'ignored'

    if event_type in PAID_EVENTS:
        if job.payment_status == 'paid':
            return 'ignored'
        _mark_paid(job, payment.get('id'), order_id=payment.get('order_id') or order.get('id'))
        save_changes()
        logger.info("Webhook marked job %s paid", job.id)
        _notify_paid(job)
        return 'processed'

    if job.payment_status != 'pending':
        return 'ignored'
    job.payment_status = 'failed'
    save_changes()
    logger.info("Webhook marked job %s payment failed", job.id)
    notify(
        job.customer_id, 'payment_failed', 'Payment Failed',
        f'Your payment for job "{job.title}" failed. Please try again.',
        job_id=job.id, priority='high',
    )
    return 'processed'


def handle_webhook(raw_body, signature, event_id, payload):
    """
    Verify and apply a Razorpay webhook delivery.

    Every verified delivery is logged in ``webhook_events``. A delivery whose
    event id was already processed or ignored is acknowledged without
    reapplying; one whose earlier attempt failed or never finished is applied
    again.

    Returns:
        WebhookEvent: the log row for this delivery
    """
    secret = current_app.config.get('RAZORPAY_WEBHOOK_SECRET')
    if not verify_webhook_signature(raw_body, signature, secret):
        logger.warning("Rejected Razorpay webhook with invalid signature")
        raise InvalidSignature('Invalid webhook signature')

    if not isinstance(payload, dict):
        raise ValidationError('Webhook payload must be a JSON object')

    event_type = payload.get('event') or 'unknown'
    event_id = event_id or hashlib.sha256(raw_body).hexdigest()

    event = WebhookEvent.query.filter_by(event_id=event_id).first()
    if event is not None and event.status not in RETRYABLE_EVENT_STATUSES:
        logger.info("Duplicate webhook %s (%s) acknowledged", event_id, event_type)
        return event

    if event is None:
        event = WebhookEvent(event_id=event_id, event_type=event_type, payload=payload)
        db.session.add(event)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return WebhookEvent.query.filter_by(event_id=event_id).first()
    else:
        logger.info("Retrying webhook %s (%s) after status %s", event_id, event_type, event.status)

    try:
        event.status = _apply_event(event_type, payload)
        event.error_message = None
    except StateConflictError as e:
        logger.warning("Webhook %s could not be applied: %s", event_id, e.message)
        event.status = 'failed'
        event.error_message = e.message
    event.processed_at = utcnow()
    db.session.commit()
    return event
