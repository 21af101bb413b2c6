"""Payout model"""
from fixitnow import db
from .base import BaseModel, utcnow

PAYOUT_STATUSES = ('pending', 'processing', 'completed', 'failed')

# Statuses that hold money against the professional's balance
ACTIVE_PAYOUT_STATUSES = ('pending', 'processing')
COMMITTED_PAYOUT_STATUSES = ('pending', 'processing', 'completed')


class Payout(BaseModel):
    """
    A professional's request to withdraw earnings.

    The bank columns are a snapshot taken when the request is made; later
    edits to the professional's bank account never touch existing rows.
    """
    __tablename__ = 'payouts'

    professional_id = db.Column(db.String(36), db.ForeignKey('professionals.id'), nullable=False, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    processing_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    # Bank snapshot
    account_holder_name = db.Column(db.String(255))
    account_number = db.Column(db.String(20), nullable=False)
    ifsc_code = db.Column(db.String(11))
    bank_name = db.Column(db.String(255))
    branch_name = db.Column(db.String(255))
    account_type = db.Column(db.String(20))

    notes = db.Column(db.String(500))
    admin_notes = db.Column(db.Text)
    transaction_reference = db.Column(db.String(100))
    failure_reason = db.Column(db.Text)

    requested_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='ck_payout_status',
        ),
        db.CheckConstraint('amount > 0', name='ck_payout_amount_positive'),
    )

    professional = db.relationship('Professional', back_populates='payouts')

    def __repr__(self):
        return f'<Payout {self.id} {self.amount} {self.status}>'

    def bank_details(self):
        return {
            'account_holder_name': self.account_holder_name,
            'account_number': self.account_number,
            'ifsc_code': self.ifsc_code,
            'bank_name': self.bank_name,
            'branch_name': self.branch_name,
            'account_type': self.account_type,
        }
