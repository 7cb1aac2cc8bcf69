import os
import re
import json
from datetime import datetime
from dotenv import load_dotenv
from flask import Flask, Blueprint, current_app, request, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException
from models import db, User, Transaction, TRANSACTION_TYPES, format_display_date
from auth import (
    TOKEN_MAX_AGE, hash_password, verify_password, create_token,
    set_auth_cookie, clear_auth_cookie, current_user, login_required,
)
from ml.summary import monthly_summary, available_months, month_breakdown
from ml.forecast import predict_next_month_expense

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 8
INVALID_CREDENTIALS = 'Email or password is incorrect.'

bp = Blueprint('api', __name__, url_prefix='/api')


def create_app(test_config=None):
    load_dotenv()
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///finance.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    app.config['APP_ENV'] = os.environ.get('APP_ENV', 'development')
    app.config['AUTH_TOKEN_MAX_AGE'] = TOKEN_MAX_AGE
    if test_config:
        app.config.update(test_config)
    app.config.setdefault('AUTH_COOKIE_SECURE', app.config['APP_ENV'] == 'production')

    db.init_app(app)
    app.register_blueprint(bp)
    app.register_error_handler(HTTPException, _http_error)
    app.register_error_handler(Exception, _server_error)
    with app.app_context():
        db.create_all()
    return app


# ---------------------- Error Handlers ----------------------
def _http_error(err):
    return jsonify({'error': err.description}), err.code


def _server_error(err):
    current_app.logger.exception('Unhandled error on %s %s', request.method, request.path)
    db.session.rollback()
    return jsonify({'error': 'Internal server error.'}), 500


# ---------------------- Request Helpers ----------------------
def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _owner_mismatch(user_id):
    """Error response when ``user_id`` is not the authenticated user, else None.

    400 for a value that is not an integer id, 403 for someone else's id.
    """
    if isinstance(user_id, bool) or (isinstance(user_id, float) and not user_id.is_integer()):
        return jsonify({'error': 'userId must be an integer.'}), 400
    try:
        user_id = int(user_id)
    except (TypeError, ValueError, OverflowError):
        return jsonify({'error': 'userId must be an integer.'}), 400
    if user_id != current_user().id:
        return jsonify({'error': 'You may only access your own transactions.'}), 403
    return None


def _parse_transaction(data):
    """Validate a transaction payload. Returns (fields, error message)."""
    if not isinstance(data, dict):
        return None, 'Transaction must be an object.'
    ttype = data.get('type')
    amount = data.get('amount')
    description = data.get('description')
    date_str = data.get('date')
    if not ttype or amount in (None, '') or not description or not date_str:
        return None, 'Missing required fields.'
    if ttype not in TRANSACTION_TYPES:
        return None, 'Type must be income or expense.'
    if isinstance(amount, bool):
        return None, 'Amount must be a number.'
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        return None, 'Amount must be a number.'
    if not amount > 0 or amount == float('inf'):
        return None, 'Amount must be positive.'
    try:
        tdate = datetime.strptime(str(date_str), '%Y-%m-%d').date()
    except ValueError:
        return None, 'Invalid date format.'
    formatted = data.get('formattedDate') or format_display_date(tdate)
    return {
        'ttype': ttype,
        'amount': amount,
        'description': str(description),
        'date': tdate,
        'formatted_date': str(formatted),
    }, None


# ---------------------- Routes: Auth ----------------------
@bp.route('/auth/signup', methods=['POST'])
def signup():
    data = _json_body()
    email = str(data.get('email') or '').lower().strip()
    password = data.get('password') or ''
    name = (str(data.get('name') or '').strip()) or None
    if not email or not password:
        return jsonify({'error': 'Email and password are required.'}), 400
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({'error': f'Password must be at least {MIN_PASSWORD_LENGTH} characters.'}), 400
    if not EMAIL_RE.match(email):
        return jsonify({'error': 'Enter a valid email address.'}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered.'}), 409

    user = User(email=email, name=name, password_hash=hash_password(password))
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Email already registered.'}), 409

    token = create_token(user.id)
    response = jsonify({'user': user.to_dict(), 'token': token, 'message': 'Account created.'})
    response.status_code = 201
    return set_auth_cookie(response, token)


@bp.route('/auth/login', methods=['POST'])
def login():
    data = _json_body()
    email = str(data.get('email') or '').lower().strip()
    password = data.get('password') or ''
    user = User.query.filter_by(email=email).first() if email else None
    if not user or not isinstance(password, str) or not verify_password(password, user.password_hash):
        current_app.logger.info('Failed login attempt for %s', email or '<blank>')
        return jsonify({'error': INVALID_CREDENTIALS}), 401
    token = create_token(user.id)
    response = jsonify({'user': user.to_dict(), 'token': token})
    return set_auth_cookie(response, token)


@bp.route('/auth/logout', methods=['POST'])
def logout():
    return clear_auth_cookie(jsonify({'message': 'Logged out.'}))


@bp.route('/auth/me')
@login_required
def me():
    return jsonify({'user': current_user().to_dict()})


# ---------------------- Routes: Transactions ----------------------
@bp.route('/transactions', methods=['GET'])
@login_required
def list_transactions():
    user_id = request.args.get('userId')
    if not user_id:
        return jsonify({'error': 'userId is required.'}), 400
    denied = _owner_mismatch(user_id)
    if denied:
        return denied
    txs = Transaction.query.filter_by(user_id=current_user().id) \
        .order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()
    return jsonify([tx.to_dict() for tx in txs])


@bp.route('/transactions', methods=['POST'])
@login_required
def create_transaction():
    data = _json_body()
    if not data.get('userId'):
        return jsonify({'error': 'Missing required fields.'}), 400
    denied = _owner_mismatch(data['userId'])
    if denied:
        return denied
    fields, error = _parse_transaction(data)
    if error:
        return jsonify({'error': error}), 400
    tx = Transaction(user_id=current_user().id, **fields)
    db.session.add(tx)
    db.session.commit()
    return jsonify(tx.to_dict())


@bp.route('/transactions', methods=['DELETE'])
@login_required
def delete_transactions():
    user_id = request.args.get('userId')
    if not user_id:
        return jsonify({'error': 'userId is required.'}), 400
    denied = _owner_mismatch(user_id)
    if denied:
        return denied
    count = Transaction.query.filter_by(user_id=current_user().id).delete()
    db.session.commit()
    return jsonify({'message': f'Deleted {count} transactions.'})


@bp.route('/transactions/import', methods=['POST'])
@login_required
def import_transactions():
    """Insert a batch of transactions all-or-nothing.

    Every row is validated before anything is written; a single bad row
    rejects the whole batch and the response lists which rows failed.
    """
    data = _json_body()
    if not data.get('userId'):
        return jsonify({'error': 'userId is required.'}), 400
    denied = _owner_mismatch(data['userId'])
    if denied:
        return denied
    rows = data.get('transactions')
    if not isinstance(rows, list):
        return jsonify({'error': 'transactions must be a list.'}), 400

    parsed, failures = [], []
    for index, row in enumerate(rows):
        fields, error = _parse_transaction(row)
        if error:
            failures.append({'index': index, 'error': error})
        else:
            parsed.append(fields)
    if failures:
        return jsonify({'error': f'{len(failures)} of {len(rows)} rows are invalid; nothing was imported.',
                        'failures': failures}), 400

    uid = current_user().id
    txs = [Transaction(user_id=uid, **fields) for fields in parsed]
    db.session.add_all(txs)
    db.session.commit()
    return jsonify({'imported': len(txs), 'transactions': [tx.to_dict() for tx in txs]}), 201


# ---------------------- Routes: Summary ----------------------
@bp.route('/monthly-summary')
def api_monthly_summary():
    """Monthly income/expense for a transaction snapshot.

    The snapshot comes URL-encoded in ``data``; without it the signed-in
    user's stored transactions are used.
    """
    raw = request.args.get('data')
    if raw is not None:
        try:
            records = json.loads(raw)
        except ValueError:
            return jsonify({'error': 'data must be a JSON array.'}), 400
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            return jsonify({'error': 'data must be a JSON array.'}), 400
    else:
        user = current_user()
        if not user:
            return jsonify({'error': 'Authentication required.'}), 401
        records = [tx.to_dict() for tx in Transaction.query.filter_by(user_id=user.id)
                   .order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()]

    months = available_months(records)
    selected = request.args.get('month') or (months[0] if months else None)
    return jsonify({
        'months': monthly_summary(records),
        'availableMonths': months,
        'selectedMonth': selected,
        'breakdown': month_breakdown(records, selected) if selected else {'income': 0.0, 'expense': 0.0},
        'projectedExpense': predict_next_month_expense(records),
    })


# ---------------------- Run App ----------------------
if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
