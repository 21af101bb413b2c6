"""Professional profile model"""
from fixitnow import db
from .base import BaseModel


class Professional(BaseModel):
    """
    Service-provider profile attached to a professional user.

    Holds the availability flags used by job assignment and the bank account
    that payout requests snapshot. The ``version`` counter guards concurrent
    writers: two requests that read the same version cannot both commit.
    """
    __tablename__ = 'professionals'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), unique=True, nullable=False, index=True)
    city = db.Column(db.String(100), index=True)
    services = db.Column(db.JSON, default=list)

    is_busy = db.Column(db.Boolean, default=False, nullable=False)
    current_job_id = db.Column(db.String(36))

    # Bank account (copied into each payout at request time)
    bank_account_holder_name = db.Column(db.String(255))
    bank_account_number = db.Column(db.String(20))
    bank_ifsc_code = db.Column(db.String(11))
    bank_name = db.Column(db.String(255))
    bank_branch_name = db.Column(db.String(255))
    bank_account_type = db.Column(db.String(20), default='savings')

    last_payout_requested_at = db.Column(db.DateTime(timezone=True))

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    user = db.relationship('User', back_populates='professional_profile')
    payouts = db.relationship('Payout', back_populates='professional', lazy='dynamic')

    def __repr__(self):
        return f'<Professional {self.id} city={self.city}>'

    @property
    def has_bank_details(self):
        return bool(self.bank_account_number)

    def bank_snapshot(self):
        """Bank details as stored on a payout row."""
        return {
            'account_holder_name': self.bank_account_holder_name,
            'account_number': self.bank_account_number,
            'ifsc_code': self.bank_ifsc_code,
            'bank_name': self.bank_name,
            'branch_name': self.bank_branch_name,
            'account_type': self.bank_account_type,
        }

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        if self.bank_account_number and 'bank_account_number' not in (exclude or []):
            data['bank_account_number'] = mask_account_number(self.bank_account_number)
        if self.user is not None:
            data['name'] = self.user.name
        return data


def mask_account_number(number):
    if not number or len(number) <= 4:
        return number
    return '*' * (len(number) - 4) + number[-4:]
