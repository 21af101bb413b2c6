"""
JWT authentication helpers and route decorators
"""
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, request

from fixitnow import db
from fixitnow.errors import AuthenticationError, AuthorizationError
from fixitnow.models import User


def generate_token(user_id: str, role: str) -> str:
    """Generate JWT token for user"""
    now = datetime.now(timezone.utc)
    payload = {
        'user_id': user_id,
        'role': role,
        'iat': now,
        'exp': now + timedelta(days=current_app.config['JWT_EXPIRES_DAYS']),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm='HS256')


def verify_token(token: str):
    """Verify JWT token and return its payload, or None when invalid/expired"""
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def require_auth(f):
    """Decorator to require authentication; injects ``user_id``"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.headers.get('Authorization', '').replace('Bearer ', '', 1).strip()
        payload = verify_token(token) if token else None
        if not payload:
            raise AuthenticationError('Missing or invalid token')

        user = db.session.get(User, payload.get('user_id'))
        if user is None or user.status != 'active':
            raise AuthenticationError()

        g.current_user = user
        return f(user_id=user.id, *args, **kwargs)
    return decorated_function


def current_professional():
    """Professional profile of the authenticated user"""
    profile = g.current_user.professional_profile
    if profile is None:
        raise AuthorizationError('Professional profile required')
    return profile


def require_role(*roles):
    """Decorator to require specific role(s); must sit below ``require_auth``"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('current_user')
            if user is None:
                raise AuthenticationError('Authentication required')
            if user.role not in roles:
                raise AuthorizationError('Insufficient permissions')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
