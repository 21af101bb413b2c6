"""
Payout requests and their administration.

A professional may hold at most one open (pending or processing) payout.
Requests are validated against the earnings ledger; the professional row is
touched in the same transaction so two concurrent requests cannot both pass
the checks and commit.
"""
import logging

from fixitnow import db
from fixitnow.errors import (
    BelowMinimumPayout, InsufficientBalance, MissingBankDetails, NotFoundError,
    PayoutAlreadyPending, StateConflictError, ValidationError,
)
from fixitnow.models import Payout, save_changes, utcnow
from fixitnow.models.payout import ACTIVE_PAYOUT_STATUSES, PAYOUT_STATUSES
from fixitnow.services.ledger import compute_balance
from fixitnow.services.notifications import notify
from fixitnow.utils.helpers import quantize_money, to_decimal
from fixitnow.utils.validators import validate_account_number, validate_ifsc

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500
ACCOUNT_TYPES = ('savings', 'current')

# Allowed admin transitions
PAYOUT_TRANSITIONS = {
    'pending': ('processing', 'failed'),
    'processing': ('completed', 'failed'),
}


# ----------------------------------------------------------------
# Bank account
# ----------------------------------------------------------------

def _text(data, key, min_len, max_len, required=True):
    value = (data.get(key) or '').strip()
    if not value:
        if required:
            raise ValidationError(f'{key} is required', field=key)
        return None
    if not (min_len <= len(value) <= max_len):
        raise ValidationError(
            f'{key} must be between {min_len} and {max_len} characters', field=key
        )
    return value


def update_bank_account(professional, data):
    """Validate and store the professional's bank account. Existing payouts keep their snapshot."""
    holder = _text(data, 'account_holder_name', 2, 100)
    account_number = (data.get('account_number') or '').strip()
    if not validate_account_number(account_number):
        raise ValidationError(
            'Account number must be between 8 and 20 characters', field='account_number'
        )
    ifsc = (data.get('ifsc_code') or '').strip().upper()
    if not validate_ifsc(ifsc):
        raise ValidationError('IFSC code must be exactly 11 characters', field='ifsc_code')
    bank_name = _text(data, 'bank_name', 2, 100)
    branch_name = _text(data, 'branch_name', 0, 100, required=False)
    account_type = data.get('account_type') or 'savings'
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError('Account type must be savings or current', field='account_type')

    professional.bank_account_holder_name = holder
    professional.bank_account_number = account_number
    professional.bank_ifsc_code = ifsc
    professional.bank_name = bank_name
    professional.bank_branch_name = branch_name
    professional.bank_account_type = account_type
    save_changes()

    logger.info("Bank account updated for professional %s", professional.id)
    notify(
        professional.user_id, 'bank_account_updated', 'Bank Account Updated',
        'Your bank account details have been updated and will be used for future payouts.',
    )
    return professional


# ----------------------------------------------------------------
# Payout requests
# ----------------------------------------------------------------

def request_payout(professional, amount, notes=None):
    """
    Create a pending payout for ``professional``.

    Checks run in order and the first failure wins: bank details on file,
    no open payout, amount at or above the minimum, amount within the
    available balance. Zero and negative amounts fall under the minimum.

    Returns:
        Payout: the new pending payout with a bank snapshot
    """
    amount = quantize_money(to_decimal(amount, 'amount'))
    if notes is not None and not isinstance(notes, str):
        raise ValidationError('notes must be text', field='notes')
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(
            f'notes cannot exceed {MAX_NOTES_LENGTH} characters', field='notes'
        )

    if not professional.has_bank_details:
        raise MissingBankDetails()

    open_payout = (
        Payout.query
        .filter(Payout.professional_id == professional.id)
        .filter(Payout.status.in_(ACTIVE_PAYOUT_STATUSES))
        .first()
    )
    if open_payout is not None:
        raise PayoutAlreadyPending(payout_id=open_payout.id)

    balance = compute_balance(professional.id)
    minimum = balance['minimum_payout']
    if amount < minimum:
        raise BelowMinimumPayout(
            f'Minimum payout amount is ₹{minimum:.2f}', minimum_payout=float(minimum)
        )
    available = balance['available_balance']
    if amount > available:
        raise InsufficientBalance(
            f'Insufficient balance. Available: ₹{available:.2f}',
            available_balance=float(available),
        )

    snapshot = professional.bank_snapshot()
    payout = Payout(
        professional_id=professional.id,
        amount=amount,
        processing_fee=0,
        net_amount=amount,
        status='pending',
        notes=notes or None,
        requested_at=utcnow(),
        **snapshot,
    )
    db.session.add(payout)
    # Bumps the professional's version so a concurrent request loses the race
    professional.last_payout_requested_at = payout.requested_at
    save_changes()

    logger.info("Payout %s requested by professional %s: %s", payout.id, professional.id, amount)
    notify(
        professional.user_id, 'payout_requested', 'Payout Request Submitted',
        f'Your payout request for ₹{amount:.2f} has been submitted and is being processed.',
        data={'payout_id': payout.id, 'amount': float(amount)},
    )
    return payout


def list_payouts(professional_id=None, status=None):
    query = Payout.query
    if professional_id is not None:
        query = query.filter(Payout.professional_id == professional_id)
    if status:
        query = query.filter(Payout.status == status)
    return query.order_by(Payout.requested_at.desc())


def get_payout(payout_id):
    payout = db.session.get(Payout, payout_id)
    if payout is None:
        raise NotFoundError('Payout not found')
    return payout


# ----------------------------------------------------------------
# Disbursement (admin)
# ----------------------------------------------------------------

def advance_payout(payout, status, transaction_reference=None, failure_reason=None,
                   admin_notes=None, processing_fee=None):
    """
    Move a payout along ``pending -> processing -> completed``, or to ``failed``.

    A failed payout no longer counts against the professional's balance.
    """
    if status not in PAYOUT_STATUSES:
        raise ValidationError(f'Unknown payout status: {status}', field='status')
    allowed = PAYOUT_TRANSITIONS.get(payout.status, ())
    if status not in allowed:
        raise StateConflictError(
            f'Cannot move payout from {payout.status} to {status}',
            status=payout.status,
        )
    if status == 'failed' and not failure_reason:
        raise ValidationError('failure_reason is required when failing a payout', field='failure_reason')

    if processing_fee is not None:
        fee = quantize_money(to_decimal(processing_fee, 'processing_fee'))
        if fee < 0 or fee > payout.amount:
            raise ValidationError('processing_fee must be between 0 and the payout amount',
                                  field='processing_fee')
        payout.processing_fee = fee
        payout.net_amount = payout.amount - fee

    now = utcnow()
    payout.status = status
    if status == 'processing':
        payout.processed_at = now
    elif status == 'completed':
        payout.completed_at = now
    else:
        payout.failure_reason = failure_reason
        payout.processed_at = payout.processed_at or now

    if transaction_reference:
        payout.transaction_reference = transaction_reference
    if admin_notes:
        payout.admin_notes = admin_notes

    save_changes()
    logger.info("Payout %s moved to %s", payout.id, status)

    user_id = payout.professional.user_id
    if status == 'completed':
        notify(
            user_id, 'payout_processed', 'Payout Completed',
            f'Your payout of ₹{payout.net_amount:.2f} has been transferred to your bank account.',
            data={'payout_id': payout.id, 'transaction_reference': payout.transaction_reference},
        )
    elif status == 'failed':
        notify(
            user_id, 'payout_failed', 'Payout Failed',
            f'Your payout of ₹{payout.amount:.2f} failed: {failure_reason}',
            data={'payout_id': payout.id}, priority='high',
        )
    return payout
