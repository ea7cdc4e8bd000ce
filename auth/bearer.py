"""
Bearer Token Authentication.

API callers authenticate with ``Authorization: Bearer <token>`` where the
token is an itsdangerous signature over the user id, minted with the
app's SECRET_KEY.
"""

from functools import wraps
from flask import request, g, abort, current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from models.database import db, User

TOKEN_SALT = 'judge-api'


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'])


def make_token(user_id):
    """Create a signed, time-limited API token for a user."""
    return _serializer().dumps({'user_id': user_id}, salt=TOKEN_SALT)


def verify_token(token, max_age=None):
    """Verify and decode an API token.

    Returns the user id, or None if the token is invalid / expired.
    """
    if max_age is None:
        max_age = current_app.config['TOKEN_MAX_AGE']
    try:
        data = _serializer().loads(token, salt=TOKEN_SALT, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None
    if not isinstance(data, dict):
        return None
    return data.get('user_id')


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def _load_user():
    token = _bearer_token()
    if token is None:
        abort(401, description='Missing authorization header')

    user_id = verify_token(token)
    user = db.session.get(User, user_id) if user_id else None
    if user is None:
        abort(401, description='Unauthorized')
    return user


def require_auth(f):
    """Decorator to ensure the request carries a valid bearer token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        g.user = _load_user()
        return f(*args, **kwargs)
    return decorated


def require_author(f):
    """Decorator to ensure the caller may author problems."""
    @wraps(f)
    def decorated(*args, **kwargs):
        g.user = _load_user()
        if g.user.role != 'author':
            abort(403, description='Author access required.')
        return f(*args, **kwargs)
    return decorated
