from functools import wraps
from flask import current_app, request, jsonify, g
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from werkzeug.security import generate_password_hash, check_password_hash
from models import db, User

AUTH_COOKIE = 'auth-token'
TOKEN_MAX_AGE = 60 * 60 * 24 * 7  # 7 days
TOKEN_SALT = 'auth-token'


# ---------------------- Passwords ----------------------
def hash_password(plaintext):
    return generate_password_hash(plaintext)


def verify_password(plaintext, password_hash):
    if not plaintext or not password_hash:
        return False
    try:
        return check_password_hash(password_hash, plaintext)
    except ValueError:
        # unknown hash method stored for this row
        return False


# ---------------------- Tokens ----------------------
def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def create_token(user_id):
    return _serializer().dumps({'uid': user_id})


def verify_token(token):
    """Return the user id carried by ``token`` or None when it is expired, forged or malformed."""
    if not token:
        return None
    max_age = current_app.config.get('AUTH_TOKEN_MAX_AGE', TOKEN_MAX_AGE)
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info('Rejected expired auth token')
        return None
    except BadSignature:
        return None
    if not isinstance(data, dict):
        return None
    return data.get('uid')


# ---------------------- Cookie ----------------------
def set_auth_cookie(response, token):
    response.set_cookie(
        AUTH_COOKIE,
        token,
        max_age=current_app.config.get('AUTH_TOKEN_MAX_AGE', TOKEN_MAX_AGE),
        path='/',
        httponly=True,
        samesite='Strict',
        secure=current_app.config.get('AUTH_COOKIE_SECURE', False),
    )
    return response


def clear_auth_cookie(response):
    response.delete_cookie(
        AUTH_COOKIE,
        path='/',
        httponly=True,
        samesite='Strict',
        secure=current_app.config.get('AUTH_COOKIE_SECURE', False),
    )
    return response


# ---------------------- Session helpers ----------------------
def _request_token():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return request.cookies.get(AUTH_COOKIE)


def current_user():
    if 'current_user' not in g:
        uid = verify_token(_request_token())
        g.current_user = db.session.get(User, uid) if uid is not None else None
    return g.current_user


def login_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not current_user():
            return jsonify({'error': 'Authentication required.'}), 401
        return view_func(*args, **kwargs)
    return wrapped
