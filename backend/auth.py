# backend/auth.py
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, request
from sqlalchemy import select
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthenticationError, ConfigurationError, ValidationError
from models import Admin

logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'
INVALID_CREDENTIALS = 'Invalid credentials.'

# compared against when the username is unknown so both failures cost the same
_DUMMY_HASH = generate_password_hash('not-a-real-password')


def _secret(secret=None):
    secret = secret or current_app.config.get('JWT_SECRET')
    if not secret:
        logger.error('JWT_SECRET is not configured.')
        raise ConfigurationError('Authentication not configured.')
    return secret


def authenticate(session, username, password):
    """Return the Admin for (username, password) or raise AuthenticationError."""
    username = username.strip() if isinstance(username, str) else ''
    if not username or not password or not isinstance(password, str):
        raise ValidationError('Username and password are required.')

    admin = session.scalars(select(Admin).where(Admin.username == username)).first()
    if admin is None:
        check_password_hash(_DUMMY_HASH, password)
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not check_password_hash(admin.password_hash, password):
        raise AuthenticationError(INVALID_CREDENTIALS)
    return admin


def issue_token(admin, secret=None, ttl_hours=None):
    if ttl_hours is None:
        ttl_hours = current_app.config.get('TOKEN_TTL_HOURS', 8)
    now = datetime.now(timezone.utc)
    payload = {
        'id': admin.id,
        'username': admin.username,
        'iat': now,
        'exp': now + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, _secret(secret), algorithm=JWT_ALGORITHM)


def verify_token(token, secret=None):
    """Decode a token into its {id, username} claims. Any defect is the same 401."""
    secret = _secret(secret)
    if not token:
        raise AuthenticationError('Missing authorization token.')
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={'require': ['exp']})
    except jwt.InvalidTokenError as e:
        logger.warning('Invalid token: %s', e)
        raise AuthenticationError('Invalid or expired token.')
    if not payload.get('username') or payload.get('id') is None:
        raise AuthenticationError('Invalid or expired token.')
    return payload


def token_from_header(header_value):
    header_value = header_value or ''
    if not header_value.lower().startswith('bearer '):
        return None
    return header_value[7:].strip() or None


def require_admin(view):
    """Route guard: a valid bearer token is required; its claims land in g.admin."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        secret = _secret()
        token = token_from_header(request.headers.get('Authorization'))
        g.admin = verify_token(token, secret)
        return view(*args, **kwargs)
    return wrapper


def set_password(session, username, password):
    """Create the admin or replace its password."""
    username = (username or '').strip()
    if not username or not password:
        raise ValidationError('Username and password are required.')
    admin = session.scalars(select(Admin).where(Admin.username == username)).first()
    created = admin is None
    if created:
        admin = Admin(username=username)
        session.add(admin)
    admin.password_hash = generate_password_hash(password)
    session.commit()
    return admin, created


def ensure_default_admin(session, username, password):
    if session.scalars(select(Admin).where(Admin.username == username)).first() is not None:
        return None
    admin, _ = set_password(session, username, password)
    logger.warning('Created default admin "%s". Change its password immediately!', username)
    return admin
