"""User model"""
from werkzeug.security import generate_password_hash, check_password_hash

from fixitnow import db
from .base import BaseModel

ROLES = ('customer', 'professional', 'admin')


class User(BaseModel):
    """
    User model - customers, professionals and admins share one account table;
    professionals additionally own a Professional profile.
    """
    __tablename__ = 'users'

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20))

    role = db.Column(db.String(20), nullable=False, default='customer')
    status = db.Column(db.String(20), nullable=False, default='active')

    last_login_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.CheckConstraint("role IN ('customer', 'professional', 'admin')", name='ck_user_role'),
    )

    professional_profile = db.relationship(
        'Professional', back_populates='user', uselist=False, lazy='joined'
    )

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against hash"""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def is_professional(self):
        return self.role == 'professional'

    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=['password_hash'] + (exclude or []))
        if self.professional_profile is not None:
            data['professional_id'] = self.professional_profile.id
        return data
