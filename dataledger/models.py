from dataledger import db
from dataledger.utils.password_handler import hash_password, verify_password
from flask_login import UserMixin
import datetime


PERMISSION_STATUSES = ('pending', 'active', 'revoked')
EARNING_STATUSES = ('pending', 'completed', 'failed')
ROLE_USER = 'user'
ROLE_OPERATOR = 'operator'
ROLES = (ROLE_USER, ROLE_OPERATOR)


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True,
                         nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    wallet_address = db.Column(db.String(42), unique=True, nullable=True, index=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)  # user, operator
    stripe_customer_id = db.Column(db.String(255))
    stripe_subscription_id = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    permissions = db.relationship('Permission', back_populates='user', lazy=True,
                                  order_by='Permission.id')
    earnings = db.relationship('Earning', back_populates='user', lazy=True,
                               order_by='Earning.id')
    privacy_footprints = db.relationship('PrivacyFootprint', back_populates='user', lazy=True,
                                         cascade='all, delete-orphan')

    def __str__(self):
        return self.username

    def set_password(self, password):
        self.password_hash = hash_password(password)

    def check_password(self, password):
        return verify_password(password, self.password_hash)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'walletAddress': self.wallet_address,
            'role': self.role,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Permission(db.Model):
    """Off-chain mirror of a license, plus the pending state the ledger does not know."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    company_name = db.Column(db.String(200), nullable=False)
    company_address = db.Column(db.String(42), index=True)
    company_logo = db.Column(db.String(500))
    access_types = db.Column(db.Text, nullable=False, default='')  # comma-joined tags
    monthly_payment = db.Column(db.Integer, nullable=False, default=0)  # fiat minor units
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    license_id = db.Column(db.Integer, index=True)
    blockchain_tx_hash = db.Column(db.String(66))
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow,
                           onupdate=datetime.datetime.utcnow)

    user = db.relationship('User', back_populates='permissions')
    earnings = db.relationship('Earning', back_populates='permission', lazy=True)

    def __str__(self):
        return f"Permission {self.id}: {self.company_name} ({self.status})"

    @property
    def access_type_list(self):
        return [t for t in (self.access_types or '').split(',') if t]

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'companyName': self.company_name,
            'companyAddress': self.company_address,
            'companyLogo': self.company_logo,
            'accessTypes': self.access_type_list,
            'monthlyPayment': self.monthly_payment,
            'status': self.status,
            'licenseId': self.license_id,
            'blockchainTxHash': self.blockchain_tx_hash,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class Earning(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    # Earnings created from PaymentMade events may not be attributable to a permission
    permission_id = db.Column(db.Integer, db.ForeignKey('permission.id'), nullable=True)
    amount = db.Column(db.Integer, nullable=False)  # fiat minor units
    status = db.Column(db.String(20), nullable=False, default='pending')
    stripe_payment_intent_id = db.Column(db.String(255))
    blockchain_tx_hash = db.Column(db.String(66))
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    user = db.relationship('User', back_populates='earnings')
    permission = db.relationship('Permission', back_populates='earnings')

    def __str__(self):
        return f"Earning {self.id}: {self.amount} ({self.status})"

    def to_dict(self, minor_units=100):
        return {
            'id': self.id,
            'userId': self.user_id,
            'permissionId': self.permission_id,
            'amount': self.amount / minor_units,
            'status': self.status,
            'stripePaymentIntentId': self.stripe_payment_intent_id,
            'blockchainTxHash': self.blockchain_tx_hash,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class PrivacyFootprint(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    platform = db.Column(db.String(100), nullable=False)
    percentage = db.Column(db.Integer, nullable=False)
    last_updated = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    user = db.relationship('User', back_populates='privacy_footprints')

    def to_dict(self):
        return {
            'platform': self.platform,
            'percentage': self.percentage,
            'lastUpdated': self.last_updated.isoformat() if self.last_updated else None,
        }


class ProcessedEvent(db.Model):
    """Ledger events already applied to the store, keyed by (tx hash, log index)."""
    __table_args__ = (
        db.UniqueConstraint('tx_hash', 'log_index', name='uq_processed_event_log'),
    )

    id = db.Column(db.Integer, primary_key=True)
    tx_hash = db.Column(db.String(66), nullable=False)
    log_index = db.Column(db.Integer, nullable=False)
    event_name = db.Column(db.String(32), nullable=False)
    block_number = db.Column(db.Integer)
    processed_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)


class OrphanEvent(db.Model):
    """A ledger event with no off-chain record to apply it to, parked for repair."""
    __table_args__ = (
        db.UniqueConstraint('tx_hash', 'log_index', name='uq_orphan_event_log'),
    )

    id = db.Column(db.Integer, primary_key=True)
    event_name = db.Column(db.String(32), nullable=False)
    tx_hash = db.Column(db.String(66), nullable=False)
    log_index = db.Column(db.Integer, nullable=False)
    block_number = db.Column(db.Integer)
    user_address = db.Column(db.String(42), nullable=False, index=True)
    company_address = db.Column(db.String(42), nullable=False)
    value = db.Column(db.String(78), nullable=False)  # uint256 as decimal text
    reason = db.Column(db.String(255))
    attempts = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default='open', index=True)  # open, resolved
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    resolved_at = db.Column(db.DateTime)

    def __str__(self):
        return f"OrphanEvent {self.id}: {self.event_name} {self.tx_hash}:{self.log_index} ({self.status})"

    def to_event(self):
        from dataledger.ledger.types import LedgerEvent
        return LedgerEvent(
            name=self.event_name,
            user=self.user_address,
            company=self.company_address,
            value=int(self.value),
            tx_hash=self.tx_hash,
            log_index=self.log_index,
            block_number=self.block_number or 0,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'eventName': self.event_name,
            'txHash': self.tx_hash,
            'logIndex': self.log_index,
            'blockNumber': self.block_number,
            'user': self.user_address,
            'company': self.company_address,
            'value': self.value,
            'reason': self.reason,
            'attempts': self.attempts,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'resolvedAt': self.resolved_at.isoformat() if self.resolved_at else None,
        }


class ReconcilerCursor(db.Model):
    """Last ledger block whose events are fully applied, per contract."""
    id = db.Column(db.Integer, primary_key=True)
    contract_address = db.Column(db.String(42), unique=True, nullable=False)
    last_block = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow,
                           onupdate=datetime.datetime.utcnow)
