"""
Job model - the aggregate root for a booking.

A job carries its lifecycle status, the price agreed at completion, the
commission split stamped at completion and the payment sub-state for either
the cash hand-off or the online gateway.
"""
from fixitnow import db
from .base import BaseModel, as_utc, utcnow

# ----------------------------------------------------------------
# Enumerations
# ----------------------------------------------------------------

JOB_STATUSES = ('pending', 'accepted', 'in_progress', 'completed', 'cancelled')

PAYMENT_METHODS = ('cash', 'online')

PAYMENT_STATUSES = (
    'pending',
    'cash_pending',
    'cash_verified',
    'payment_received',
    'payment_confirmed',
    'paid',
    'failed',
)


class Job(BaseModel):
    """Booking between a customer and a professional"""
    __tablename__ = 'jobs'

    customer_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    professional_id = db.Column(db.String(36), db.ForeignKey('professionals.id'), index=True)

    # Descriptive
    title = db.Column(db.String(255))
    description = db.Column(db.Text)
    category = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(500), nullable=False)
    city = db.Column(db.String(100), nullable=False, index=True)
    scheduled_at = db.Column(db.DateTime(timezone=True))

    status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    # Pricing
    budget_min = db.Column(db.Numeric(10, 2))
    budget_max = db.Column(db.Numeric(10, 2))
    final_price = db.Column(db.Numeric(10, 2))
    tip_amount = db.Column(db.Numeric(10, 2), default=0)

    payment_method = db.Column(db.String(20))
    payment_status = db.Column(db.String(30), nullable=False, default='pending', index=True)

    # Commission (stamped once at completion)
    commission_total = db.Column(db.Numeric(10, 2))
    company_fee = db.Column(db.Numeric(10, 2))
    provider_earnings = db.Column(db.Numeric(10, 2))
    commission_rate = db.Column(db.Numeric(5, 4))
    commission_payment_method = db.Column(db.String(20))

    # Cash hand-off
    professional_marked_received = db.Column(db.Boolean, default=False, nullable=False)
    professional_received_at = db.Column(db.DateTime(timezone=True))
    customer_confirmed = db.Column(db.Boolean, default=False, nullable=False)
    customer_confirmed_at = db.Column(db.DateTime(timezone=True))
    cash_amount = db.Column(db.Numeric(10, 2))
    verification_code = db.Column(db.String(6))
    verification_code_expires_at = db.Column(db.DateTime(timezone=True))
    receipt_photos = db.Column(db.JSON, default=list)
    dispute_raised = db.Column(db.Boolean, default=False, nullable=False)
    dispute_details = db.Column(db.JSON)

    # Online gateway
    gateway_order_id = db.Column(db.String(100), index=True)
    gateway_payment_id = db.Column(db.String(100), unique=True)
    gateway_signature = db.Column(db.String(255))
    paid_at = db.Column(db.DateTime(timezone=True))

    # Lifecycle timestamps
    accepted_at = db.Column(db.DateTime(timezone=True))
    started_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    cancelled_at = db.Column(db.DateTime(timezone=True))
    cancellation_reason = db.Column(db.Text)

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'accepted', 'in_progress', 'completed', 'cancelled')",
            name='ck_job_status',
        ),
        db.CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('cash', 'online')",
            name='ck_job_payment_method',
        ),
    )

    customer = db.relationship('User', foreign_keys=[customer_id])
    professional = db.relationship('Professional', foreign_keys=[professional_id])

    def __repr__(self):
        return f'<Job {self.id} {self.status}/{self.payment_status}>'

    @property
    def is_cash(self):
        return self.payment_method == 'cash'

    @property
    def is_online(self):
        return self.payment_method == 'online'

    def is_participant(self, user):
        """True when the user is the job's customer or assigned professional."""
        if user.id == self.customer_id:
            return True
        profile = user.professional_profile
        return profile is not None and profile.id == self.professional_id

    def verification_code_expired(self, now=None):
        expires_at = as_utc(self.verification_code_expires_at)
        return expires_at is not None and (now or utcnow()) >= expires_at

    def cash_details(self):
        return {
            'professional_marked_received': self.professional_marked_received,
            'professional_received_at': _iso(self.professional_received_at),
            'customer_confirmed': self.customer_confirmed,
            'customer_confirmed_at': _iso(self.customer_confirmed_at),
            'cash_amount': _money(self.cash_amount),
            'receipt_photos': self.receipt_photos or [],
            'dispute_raised': self.dispute_raised,
            'dispute_details': self.dispute_details,
        }

    def commission(self):
        return {
            'total': _money(self.commission_total),
            'company_fee': _money(self.company_fee),
            'provider_earnings': _money(self.provider_earnings),
            'commission_rate': _money(self.commission_rate),
            'payment_method': self.commission_payment_method,
        }

    def to_dict(self, exclude=None, include_code=False):
        """
        Serialize the job.

        The verification code is only included when ``include_code`` is set,
        i.e. when the caller is the professional who reads it to the customer.
        """
        exclude = list(exclude or [])
        if not include_code:
            exclude.extend(['verification_code', 'verification_code_expires_at'])
        return super().to_dict(exclude=exclude)


def _money(value):
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value else None
