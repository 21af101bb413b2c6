"""
Typed failures raised by the FixItNow services.

Every error carries a stable machine-checkable ``kind`` and an HTTP status so
clients can branch on the kind without string-matching the message. The
Flask error handler registered in ``create_app`` renders them as::

    {"success": false, "error": "<message>", "kind": "<kind>", ...details}
"""


class FixItNowError(Exception):
    """Base class for all expected (user-visible) failures."""

    kind = 'error'
    status_code = 400
    default_message = 'Request could not be processed'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {'success': False, 'error': self.message, 'kind': self.kind}
        data.update(self.details)
        return data


class ValidationError(FixItNowError):
    """Malformed or out-of-range input (negative price, price outside budget...)."""
    kind = 'validation_error'
    status_code = 400
    default_message = 'Invalid input'


class AuthenticationError(FixItNowError):
    kind = 'authentication_error'
    status_code = 401
    default_message = 'Unauthorized'


class AuthorizationError(FixItNowError):
    """Actor is not the job's customer/professional (or lacks the role)."""
    kind = 'authorization_error'
    status_code = 403
    default_message = 'Not authorized'


class NotFoundError(FixItNowError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Resource not found'


class StateConflictError(FixItNowError):
    """Transition attempted from an incompatible state, or a lost write race."""
    kind = 'state_conflict'
    status_code = 409
    default_message = 'The record is not in a state that allows this action'


class MissingBankDetails(FixItNowError):
    kind = 'missing_bank_details'
    status_code = 400
    default_message = 'Bank account details are required for payouts'


class PayoutAlreadyPending(FixItNowError):
    kind = 'payout_already_pending'
    status_code = 409
    default_message = 'You already have a pending payout request'


class BelowMinimumPayout(FixItNowError):
    kind = 'below_minimum_payout'
    status_code = 400
    default_message = 'Payout amount is below the minimum'


class InsufficientBalance(FixItNowError):
    kind = 'insufficient_balance'
    status_code = 400
    default_message = 'Insufficient balance'


class InvalidSignature(FixItNowError):
    kind = 'invalid_signature'
    status_code = 400
    default_message = 'Payment signature verification failed'


class InvalidVerificationCode(FixItNowError):
    kind = 'invalid_verification_code'
    status_code = 400
    default_message = 'Invalid verification code'


class GatewayError(FixItNowError):
    """The payment gateway could not be reached or rejected the call."""
    kind = 'gateway_error'
    status_code = 502
    default_message = 'Payment gateway error'
