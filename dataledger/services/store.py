"""
Application store: CRUD over users, permissions, earnings and privacy footprints.

Every write method takes ``commit``. Callers that need several writes to land
atomically (the event reconciler) pass ``commit=False`` and commit the
session themselves.
"""

import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy import func

from dataledger import db
from dataledger.models import (
    User, Permission, Earning, PrivacyFootprint,
    PERMISSION_STATUSES, EARNING_STATUSES
)

logger = logging.getLogger(__name__)

# Allowed permission status moves. 'active' is reached from the ledger or by
# manual approval; 'revoked' is terminal.
PERMISSION_TRANSITIONS = {
    'pending': {'active', 'revoked'},
    'active': {'revoked'},
    'revoked': set(),
}
EARNING_TRANSITIONS = {
    'pending': {'completed', 'failed'},
    'completed': set(),
    'failed': set(),
}


class RecordNotFoundError(LookupError):
    pass


class InvalidTransitionError(ValueError):
    pass


def _same_address(column, address):
    return func.lower(column) == address.lower()


class ApplicationStore:

    def _finish(self, commit: bool):
        if commit:
            db.session.commit()
        else:
            db.session.flush()

    # -- users --------------------------------------------------------------

    def get_user(self, user_id) -> Optional[User]:
        return db.session.get(User, int(user_id))

    def get_user_by_email(self, email: str) -> Optional[User]:
        return User.query.filter(func.lower(User.email) == email.strip().lower()).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return User.query.filter_by(username=username).first()

    def get_user_by_wallet(self, wallet_address: str) -> Optional[User]:
        if not wallet_address:
            return None
        return User.query.filter(_same_address(User.wallet_address, wallet_address)).first()

    def create_user(self, username: str, email: str, password: str,
                    wallet_address: Optional[str] = None, commit: bool = True) -> User:
        user = User(username=username, email=email.strip().lower(), wallet_address=wallet_address)
        user.set_password(password)
        db.session.add(user)
        self._finish(commit)
        return user

    def update_user_wallet(self, user_id, wallet_address: str, commit: bool = True) -> User:
        user = self._require(User, user_id)
        user.wallet_address = wallet_address
        self._finish(commit)
        return user

    # -- permissions ----------------------------------------------------------

    def get_user_permissions(self, user_id) -> List[Permission]:
        return Permission.query.filter_by(user_id=int(user_id)).order_by(Permission.id).all()

    def get_permission(self, permission_id) -> Optional[Permission]:
        return db.session.get(Permission, int(permission_id))

    def create_permission(self, user_id, company_name: str, access_types: Iterable[str],
                          monthly_payment: int, company_address: Optional[str] = None,
                          company_logo: Optional[str] = None, commit: bool = True) -> Permission:
        permission = Permission(
            user_id=int(user_id),
            company_name=company_name,
            company_address=company_address,
            company_logo=company_logo,
            access_types=','.join(t.strip() for t in access_types if t and t.strip()),
            monthly_payment=int(monthly_payment),
            status='pending',
        )
        db.session.add(permission)
        self._finish(commit)
        return permission

    def update_permission_status(self, permission_id, status: str, tx_hash: Optional[str] = None,
                                 license_id: Optional[int] = None, commit: bool = True) -> Permission:
        if status not in PERMISSION_STATUSES:
            raise InvalidTransitionError(f"Unknown permission status '{status}'")
        permission = self._require(Permission, permission_id)
        if status != permission.status:
            if status not in PERMISSION_TRANSITIONS[permission.status]:
                raise InvalidTransitionError(
                    f"Permission {permission.id} cannot move from {permission.status} to {status}")
            permission.status = status
        if tx_hash:
            permission.blockchain_tx_hash = tx_hash
        if license_id is not None:
            permission.license_id = int(license_id)
        self._finish(commit)
        return permission

    def attach_permission_tx(self, permission_id, tx_hash: str) -> bool:
        """Record the submitting transaction on a still-pending permission.

        Conditional update: if the reconciler already confirmed the row, its
        status and hash are left alone.
        """
        updated = Permission.query.filter_by(id=int(permission_id), status='pending') \
            .filter(Permission.blockchain_tx_hash.is_(None)) \
            .update({'blockchain_tx_hash': tx_hash}, synchronize_session='fetch')
        db.session.commit()
        return bool(updated)

    def discard_pending_permission(self, permission_id) -> bool:
        """Delete a pending permission whose ledger transaction will never confirm."""
        deleted = Permission.query.filter_by(id=int(permission_id), status='pending') \
            .delete(synchronize_session='fetch')
        db.session.commit()
        return bool(deleted)

    def find_pending_permission(self, user_id, company_address: str,
                                tx_hash: Optional[str] = None) -> Optional[Permission]:
        """Pending permission of the user for a company.

        The row already tagged with ``tx_hash`` wins; otherwise the most
        recently created pending row is returned.
        """
        query = Permission.query.filter_by(user_id=int(user_id), status='pending') \
            .filter(_same_address(Permission.company_address, company_address))
        if tx_hash:
            match = query.filter(func.lower(Permission.blockchain_tx_hash) == tx_hash.lower()).first()
            if match is not None:
                return match
        return query.order_by(Permission.created_at.desc(), Permission.id.desc()).first()

    def find_active_permission(self, user_id, company_address: str,
                               license_id: Optional[int] = None) -> Optional[Permission]:
        query = Permission.query.filter_by(user_id=int(user_id), status='active') \
            .filter(_same_address(Permission.company_address, company_address))
        if license_id is not None:
            match = query.filter_by(license_id=int(license_id)).first()
            if match is not None:
                return match
        return query.order_by(Permission.created_at.desc(), Permission.id.desc()).first()

    def find_unlinked_active_permission(self, user_id, company_address: str) -> Optional[Permission]:
        """Most recent active permission for a company not yet tied to a ledger license."""
        return Permission.query.filter_by(user_id=int(user_id), status='active') \
            .filter(_same_address(Permission.company_address, company_address)) \
            .filter(Permission.license_id.is_(None)) \
            .order_by(Permission.created_at.desc(), Permission.id.desc()).first()

    def find_permission_by_license(self, license_id: int) -> Optional[Permission]:
        return Permission.query.filter_by(license_id=int(license_id)).first()

    # -- earnings ---------------------------------------------------------------

    def get_user_earnings(self, user_id) -> List[Earning]:
        return Earning.query.filter_by(user_id=int(user_id)).order_by(Earning.id).all()

    def create_earning(self, user_id, amount: int, permission_id=None, status: str = 'pending',
                       blockchain_tx_hash: Optional[str] = None,
                       stripe_payment_intent_id: Optional[str] = None,
                       commit: bool = True) -> Earning:
        if status not in EARNING_STATUSES:
            raise InvalidTransitionError(f"Unknown earning status '{status}'")
        if int(amount) < 0:
            raise ValueError('Earning amount must not be negative')
        earning = Earning(
            user_id=int(user_id),
            permission_id=int(permission_id) if permission_id else None,
            amount=int(amount),
            status=status,
            blockchain_tx_hash=blockchain_tx_hash,
            stripe_payment_intent_id=stripe_payment_intent_id,
        )
        db.session.add(earning)
        self._finish(commit)
        return earning

    def update_earning_status(self, earning_id, status: str, payment_intent_id: Optional[str] = None,
                              tx_hash: Optional[str] = None, commit: bool = True) -> Earning:
        if status not in EARNING_STATUSES:
            raise InvalidTransitionError(f"Unknown earning status '{status}'")
        earning = self._require(Earning, earning_id)
        if status != earning.status:
            if status not in EARNING_TRANSITIONS[earning.status]:
                raise InvalidTransitionError(
                    f"Earning {earning.id} cannot move from {earning.status} to {status}")
            earning.status = status
        if payment_intent_id:
            earning.stripe_payment_intent_id = payment_intent_id
        if tx_hash:
            earning.blockchain_tx_hash = tx_hash
        self._finish(commit)
        return earning

    # -- privacy footprint ------------------------------------------------------

    def get_user_privacy_footprint(self, user_id) -> List[PrivacyFootprint]:
        return PrivacyFootprint.query.filter_by(user_id=int(user_id)) \
            .order_by(PrivacyFootprint.id).all()

    def update_privacy_footprint(self, user_id, footprints: Iterable[dict],
                                 commit: bool = True) -> List[PrivacyFootprint]:
        """Replace the user's footprint set with ``footprints`` ({platform, percentage})."""
        PrivacyFootprint.query.filter_by(user_id=int(user_id)).delete(synchronize_session='fetch')
        now = datetime.datetime.utcnow()
        rows = [PrivacyFootprint(user_id=int(user_id), platform=f['platform'],
                                 percentage=int(f['percentage']), last_updated=now)
                for f in footprints]
        db.session.add_all(rows)
        self._finish(commit)
        return rows

    # -- helpers ----------------------------------------------------------------

    def _require(self, model, record_id):
        record = db.session.get(model, int(record_id))
        if record is None:
            raise RecordNotFoundError(f"{model.__name__} {record_id} not found")
        return record
