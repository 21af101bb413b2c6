"""
Authentication routes: register, login, current user.
"""
import logging

from flask import Blueprint, g, jsonify

from fixitnow import db
from fixitnow.errors import AuthenticationError, StateConflictError, ValidationError
from fixitnow.extensions import limiter
from fixitnow.models import Professional, User, save_changes, utcnow
from fixitnow.utils import get_json_body, validate_email, validate_phone
from fixitnow.utils.auth import generate_token, require_auth

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 8
SELF_SERVICE_ROLES = ('customer', 'professional')


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """
    Register a customer or professional
    POST /api/auth/register
    Body: {
        "email", "password", "name", "phone"?,
        "role": "customer" | "professional",
        "city"?, "services"?  (professionals)
    }
    """
    data = get_json_body('password')

    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    name = (data.get('name') or '').strip()
    phone = data.get('phone')
    role = data.get('role') or 'customer'

    if not validate_email(email):
        raise ValidationError('A valid email is required', field='email')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f'Password must be at least {MIN_PASSWORD_LENGTH} characters', field='password'
        )
    if not name:
        raise ValidationError('Name is required', field='name')
    if phone and not validate_phone(phone):
        raise ValidationError('Invalid phone number', field='phone')
    if role not in SELF_SERVICE_ROLES:
        raise ValidationError('Role must be customer or professional', field='role')
    if role == 'professional' and not data.get('city'):
        raise ValidationError('City is required for professionals', field='city')

    if User.query.filter_by(email=email).first():
        raise StateConflictError('Email already registered', field='email')

    user = User(email=email, name=name, phone=phone, role=role)
    user.set_password(password)
    db.session.add(user)

    if role == 'professional':
        services = data.get('services') or []
        if not isinstance(services, list):
            raise ValidationError('services must be a list', field='services')
        db.session.add(Professional(user=user, city=data['city'], services=services))

    save_changes()
    logger.info("Registered %s %s", role, user.id)

    return jsonify({
        'success': True,
        'token': generate_token(user.id, user.role),
        'user': user.to_dict(),
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """
    Login with email/password
    POST /api/auth/login
    Body: {"email": "...", "password": "..."}
    """
    data = get_json_body('password')
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        raise AuthenticationError('Invalid email or password')
    if user.status != 'active':
        raise AuthenticationError('Account is not active')

    user.last_login_at = utcnow()
    db.session.commit()

    return jsonify({
        'success': True,
        'token': generate_token(user.id, user.role),
        'user': user.to_dict(),
    }), 200


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me(user_id):
    """Get current user (with professional profile, if any)"""
    user = g.current_user
    data = {'success': True, 'user': user.to_dict()}
    if user.professional_profile is not None:
        data['professional'] = user.professional_profile.to_dict()
    return jsonify(data), 200
