from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

TRANSACTION_TYPES = ('income', 'expense')
DEFAULT_DESCRIPTIONS = {'income': 'Income', 'expense': 'Expense'}


def _utcnow():
    return datetime.now(timezone.utc)


def format_display_date(value):
    """Display string cached next to the ISO date, e.g. 'Tue, Apr 22, 2025'."""
    return f"{value.strftime('%a, %b')} {value.day}, {value.year}"


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)
    transactions = db.relationship('Transaction', backref='user', lazy=True)

    def to_dict(self):
        # password_hash never leaves the server
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }


class Transaction(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    formatted_date = db.Column(db.String(64), nullable=True)
    amount = db.Column(db.Float, nullable=False)  # always positive
    ttype = db.Column(db.String(20), nullable=False)  # 'income' or 'expense'
    description = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.ttype,
            'amount': self.amount,
            'description': self.description,
            'date': self.date.isoformat(),
            'formattedDate': self.formatted_date or format_display_date(self.date),
            'userId': self.user_id,
            'createdAt': self.created_at.isoformat(),
        }
