import json
import logging
from dataclasses import dataclass
from datetime import date as date_cls
from typing import Callable, List, Optional
from urllib.parse import urlencode

import requests

from models import DEFAULT_DESCRIPTIONS, format_display_date
from ml.summary import balance_of

log = logging.getLogger(__name__)

EXPORT_FIELDS = ('id', 'type', 'amount', 'description', 'date', 'formattedDate')


class ApiError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class SessionUser:
    id: int
    email: str
    name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload):
        """Build from the ``user`` object of an auth response, rejecting anything malformed."""
        if not isinstance(payload, dict):
            raise ValueError('user payload must be an object')
        uid, email = payload.get('id'), payload.get('email')
        if isinstance(uid, bool) or not isinstance(uid, (int, str)) or uid == '':
            raise ValueError('user payload has no valid id')
        if not isinstance(email, str) or '@' not in email:
            raise ValueError('user payload has no valid email')
        name = payload.get('name')
        return cls(
            id=uid,
            email=email,
            name=name if isinstance(name, str) else None,
            created_at=payload.get('createdAt'),
            updated_at=payload.get('updatedAt'),
        )


def _default_alert(message):
    log.warning('ALERT: %s', message)


class MoneyManager:
    """Client-side ledger state backed by the HTTP API.

    Holds the signed-in user, their transactions (newest first) and the
    balance derived from them. Every mutating action runs with ``loading``
    set; actions requested while a request is in flight are ignored. On a
    failed request the error is logged and passed to ``alert`` and the
    previous state is left as it was.
    """

    def __init__(self, base_url='http://localhost:5000', session=None,
                 alert: Optional[Callable[[str], None]] = None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.alert = alert or _default_alert
        self.timeout = timeout
        self.user: Optional[SessionUser] = None
        self.transactions: List[dict] = []
        self.balance = 0.0
        self.loading = False

    # ---------------------- HTTP ----------------------
    def _api(self, method, path, **kwargs):
        response = self.session.request(method, self.base_url + path, timeout=self.timeout, **kwargs)
        try:
            data = response.json()
        except ValueError:
            data = None
        if not response.ok:
            message = data.get('error') if isinstance(data, dict) else None
            raise ApiError(message or f'API Error: {response.status_code}', response.status_code)
        return data

    def _set_transactions(self, transactions):
        self.transactions = list(transactions)
        self.balance = balance_of(self.transactions)

    def _run(self, action, failure_message):
        if self.loading:
            log.debug('Ignoring action while a request is in flight')
            return None
        self.loading = True
        try:
            return action()
        except (requests.RequestException, ApiError, ValueError) as e:
            log.error('%s: %s', failure_message, e)
            self.alert(failure_message)
            return None
        finally:
            self.loading = False

    # ---------------------- Auth ----------------------
    def _accept_user(self, data):
        self.user = SessionUser.from_payload((data or {}).get('user'))
        return self.user

    def signup(self, email, password, name=None):
        """Create an account; raises ApiError so a form can show the message."""
        data = self._api('POST', '/api/auth/signup', json={'email': email, 'password': password, 'name': name})
        return self._accept_user(data)

    def login(self, email, password):
        data = self._api('POST', '/api/auth/login', json={'email': email, 'password': password})
        return self._accept_user(data)

    def logout(self):
        try:
            self._api('POST', '/api/auth/logout')
        except (requests.RequestException, ApiError) as e:
            log.error('Logout failed: %s', e)
        finally:
            # local state is cleared even when the request fails
            self.user = None
            self._set_transactions([])

    def check_session(self):
        """Restore the signed-in user from the session cookie, or None."""
        try:
            return self._accept_user(self._api('GET', '/api/auth/me'))
        except ApiError:
            self.user = None
            return None
        except (requests.RequestException, ValueError) as e:
            log.error('Session check failed: %s', e)
            self.user = None
            return None

    # ---------------------- Transactions ----------------------
    def refresh(self):
        """Fetch the user's transactions and recompute the balance."""
        if not self.user:
            log.info('No user signed in')
            return None

        def action():
            data = self._api('GET', '/api/transactions', params={'userId': self.user.id})
            if not isinstance(data, list):
                raise ValueError('transaction list expected')
            self._set_transactions(data)
            return self.transactions

        return self._run(action, 'Could not load transactions.')

    def _add(self, ttype, amount, description='', on=None):
        if not self.user:
            return None
        try:
            value = float(amount)
        except (TypeError, ValueError):
            return None
        on = on or date_cls.today()
        payload = {
            'type': ttype,
            'amount': value,
            'description': description or DEFAULT_DESCRIPTIONS[ttype],
            'date': on.isoformat(),
            'formattedDate': format_display_date(on),
            'userId': self.user.id,
        }

        def action():
            saved = self._api('POST', '/api/transactions', json=payload)
            record = {k: payload[k] for k in EXPORT_FIELDS if k != 'id'}
            record['id'] = saved['id']
            self._set_transactions([record] + self.transactions)
            return record

        return self._run(action, 'Could not save the transaction.')

    def add_income(self, amount, description='', on=None):
        return self._add('income', amount, description, on)

    def add_expense(self, amount, description='', on=None):
        return self._add('expense', amount, description, on)

    def reset(self):
        """Delete every transaction of the user. Irreversible."""
        if not self.user:
            return False

        def action():
            self._api('DELETE', '/api/transactions', params={'userId': self.user.id})
            self._set_transactions([])
            return True

        return bool(self._run(action, 'Could not reset the data.'))

    # ---------------------- Import / Export ----------------------
    def export_records(self):
        return [{k: t.get(k) for k in EXPORT_FIELDS} for t in self.transactions]

    def export_to_file(self, path):
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.export_records(), f, indent=2, ensure_ascii=False)
        return path

    def import_from_file(self, path):
        """Upload the transactions of an exported file as one batch.

        Returns the number of imported rows, or None when the file could not
        be read or the server rejected the batch.
        """
        if not self.user:
            return None
        try:
            with open(path, encoding='utf-8') as f:
                loaded = json.load(f)
        except OSError as e:
            log.error('Could not read %s: %s', path, e)
            self.alert('Could not read the file.')
            return None
        except ValueError as e:
            log.error('Invalid JSON in %s: %s', path, e)
            self.alert('The file format is invalid.')
            return None
        if not isinstance(loaded, list):
            self.alert('The file format is invalid.')
            return None

        rows = []
        for t in loaded:
            if not isinstance(t, dict):
                self.alert('The file format is invalid.')
                return None
            row = {k: t.get(k) for k in ('type', 'amount', 'description', 'date')}
            row['formattedDate'] = t.get('formattedDate') or _display_date(t.get('date'))
            rows.append(row)

        def action():
            data = self._api('POST', '/api/transactions/import',
                             json={'userId': self.user.id, 'transactions': rows})
            # rows come back oldest first; the list is kept newest first
            saved = list(reversed(data['transactions']))
            self._set_transactions(saved + self.transactions)
            return data['imported']

        return self._run(action, 'The file could not be imported.')

    # ---------------------- Summary ----------------------
    def summary_query(self, month=None):
        """Query string carrying a snapshot of the transactions to the summary view."""
        params = {'data': json.dumps(self.export_records())}
        if month:
            params['month'] = month
        return urlencode(params)

    def monthly_summary(self, month=None):
        def action():
            return self._api('GET', '/api/monthly-summary?' + self.summary_query(month))
        return self._run(action, 'Could not load the monthly summary.')


def _display_date(value):
    try:
        return format_display_date(date_cls.fromisoformat(str(value)))
    except ValueError:
        return value
