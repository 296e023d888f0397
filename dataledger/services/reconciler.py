"""
Event reconciler.

Applies ledger events to the application store so Permission and Earning
rows converge on ledger state:

    AccessGranted  pending permission -> active (a manually approved row is
                   linked to the license; created when neither exists)
    AccessRevoked  active permission  -> revoked
    PaymentMade    new completed earning

Delivery is at-least-once. Each event is identified by (tx hash, log index)
and recorded in ProcessedEvent in the same database transaction as its
mutation, so a redelivered event is skipped and a failed write leaves the
event unacknowledged for the caller to redeliver. Events without an
off-chain counterpart are parked as OrphanEvent rows and replayed by
``retry_orphans``.
"""

import datetime
import logging
import threading
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from dataledger import db
from dataledger.ledger.client import LedgerClient
from dataledger.ledger.errors import (
    DuplicateEventError, LedgerSubmissionError, ReconciliationMismatchError
)
from dataledger.ledger.types import ACCESS_GRANTED, ACCESS_REVOKED, PAYMENT_MADE, LedgerEvent
from dataledger.ledger.units import native_to_fiat_minor, to_smallest_unit
from dataledger.models import OrphanEvent, ProcessedEvent
from dataledger.services.store import ApplicationStore
from dataledger.utils.audit_log import log_action

logger = logging.getLogger(__name__)

APPLIED = 'applied'
DUPLICATE = 'duplicate'
ORPHANED = 'orphaned'
NOOP = 'noop'

TRANSIENT_ERRORS = (OperationalError, LedgerSubmissionError)

# Events of one (user, company) pair always map to the same lock
LOCK_STRIPES = 64


class EventReconciler:

    def __init__(self, store: ApplicationStore, ledger: LedgerClient,
                 native_to_fiat_rate: Decimal = Decimal('1'), fiat_minor_units: int = 100,
                 store_retries: int = 3, retry_wait: float = 0.5):
        self.store = store
        self.ledger = ledger
        self.native_to_fiat_rate = Decimal(native_to_fiat_rate)
        self.fiat_minor_units = int(fiat_minor_units)
        self.store_retries = max(1, int(store_retries))
        self.retry_wait = retry_wait
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(LOCK_STRIPES)]
        self._handlers: Dict[str, Callable[[LedgerEvent], str]] = {
            ACCESS_GRANTED: self._on_access_granted,
            ACCESS_REVOKED: self._on_access_revoked,
            PAYMENT_MADE: self._on_payment_made,
        }

    # -- public API -----------------------------------------------------------

    def handle(self, event: LedgerEvent) -> str:
        """Apply one event. Returns 'applied', 'noop', 'duplicate' or 'orphaned'.

        Transient store/ledger failures are retried; if they persist the error
        propagates and nothing about the event is committed.
        """
        if event.name not in self._handlers:
            logger.warning('Reconciler: ignoring unknown event %s', event.name)
            return NOOP
        with self._pair_lock(event.pair):
            return self._with_retries(lambda: self._apply(event))

    def handle_many(self, events: List[LedgerEvent]) -> List[str]:
        return [self.handle(event) for event in events]

    def retry_orphans(self, limit: int = 100) -> Dict[str, int]:
        """Replay open orphan events. Returns counts of resolved / still-open orphans."""
        summary = {'resolved': 0, 'open': 0}
        orphans = OrphanEvent.query.filter_by(status='open') \
            .order_by(OrphanEvent.block_number, OrphanEvent.log_index).limit(limit).all()
        for orphan in orphans:
            event = orphan.to_event()
            with self._pair_lock(event.pair):
                resolved = self._with_retries(lambda: self._replay_orphan(orphan.id))
            summary['resolved' if resolved else 'open'] += 1
        if orphans:
            logger.info('Reconciler: orphan repair resolved %(resolved)s, %(open)s still open', summary)
        return summary

    def to_fiat_minor(self, wei: int) -> int:
        return native_to_fiat_minor(wei, self.native_to_fiat_rate, self.fiat_minor_units)

    # -- transaction wrapper --------------------------------------------------

    def _with_retries(self, fn):
        options = {
            'stop': stop_after_attempt(self.store_retries),
            'retry': retry_if_exception_type(TRANSIENT_ERRORS),
            'reraise': True,
        }
        if self.retry_wait:
            options['wait'] = wait_exponential(multiplier=self.retry_wait, max=30)
        return Retrying(**options)(fn)

    def _apply(self, event: LedgerEvent) -> str:
        try:
            if self._is_processed(event):
                raise DuplicateEventError(f'{event.name} {event.tx_hash}:{event.log_index}')
            try:
                outcome = self._handlers[event.name](event)
            except ReconciliationMismatchError as e:
                self._park_orphan(event, str(e))
                outcome = ORPHANED
            db.session.add(ProcessedEvent(
                tx_hash=event.tx_hash, log_index=event.log_index,
                event_name=event.name, block_number=event.block_number))
            db.session.commit()
        except DuplicateEventError:
            db.session.rollback()
            logger.debug('Reconciler: skipping already processed %s %s:%s',
                         event.name, event.tx_hash, event.log_index)
            return DUPLICATE
        except IntegrityError:
            db.session.rollback()
            # A concurrent delivery of the same event committed first
            if self._is_processed(event):
                return DUPLICATE
            raise
        except Exception:
            db.session.rollback()
            logger.exception('Reconciler: failed to apply %s %s:%s',
                             event.name, event.tx_hash, event.log_index)
            raise

        if outcome == ORPHANED:
            log_action('LEDGER_EVENT_ORPHANED', f'{event.name} has no matching record',
                       additional_info=event.to_dict())
        else:
            logger.info('Reconciler: %s %s:%s -> %s', event.name, event.tx_hash, event.log_index, outcome)
            log_action('LEDGER_EVENT_APPLIED', f'{event.name} reconciled ({outcome})',
                       additional_info=event.to_dict())
        return outcome

    def _replay_orphan(self, orphan_id: int) -> bool:
        orphan = db.session.get(OrphanEvent, orphan_id)
        if orphan is None or orphan.status != 'open':
            return True
        event = orphan.to_event()
        try:
            self._handlers[event.name](event)
        except ReconciliationMismatchError as e:
            orphan.attempts += 1
            orphan.reason = str(e)[:255]
            db.session.commit()
            return False
        except Exception:
            db.session.rollback()
            raise
        orphan.status = 'resolved'
        orphan.resolved_at = datetime.datetime.utcnow()
        db.session.commit()
        logger.info('Reconciler: orphan %s resolved', orphan)
        log_action('LEDGER_ORPHAN_RESOLVED', f'{event.name} reconciled on replay',
                   additional_info=event.to_dict())
        return True

    # -- handlers -------------------------------------------------------------
    # Handlers raise ReconciliationMismatchError before writing anything.

    def _resolve_user(self, event: LedgerEvent):
        user = self.store.get_user_by_wallet(event.user)
        if user is None:
            raise ReconciliationMismatchError(
                f'No user with wallet {event.user} for {event.name}', event=event)
        return user

    def _on_access_granted(self, event: LedgerEvent) -> str:
        existing = self.store.find_permission_by_license(event.license_id)
        if existing is not None and existing.status != 'pending':
            return NOOP
        user = self._resolve_user(event)
        permission = self.store.find_pending_permission(user.id, event.company, tx_hash=event.tx_hash)
        if permission is None:
            # Approved by hand before the ledger confirmed it
            permission = self.store.find_unlinked_active_permission(user.id, event.company)
        if permission is None:
            # Grant made outside the dashboard; rebuild the row from the ledger
            detail = self.ledger.get_license_details(event.license_id)
            permission = self.store.create_permission(
                user.id,
                company_name=event.company,
                company_address=event.company,
                access_types=detail.data_types.split(','),
                monthly_payment=self.to_fiat_minor(to_smallest_unit(detail.monthly_payment)),
                commit=False,
            )
        self.store.update_permission_status(
            permission.id, 'active', tx_hash=event.tx_hash, license_id=event.license_id, commit=False)
        return APPLIED

    def _on_access_revoked(self, event: LedgerEvent) -> str:
        user = self._resolve_user(event)
        permission = self.store.find_active_permission(user.id, event.company, license_id=event.license_id)
        if permission is None:
            known = self.store.find_permission_by_license(event.license_id)
            if known is not None and known.status == 'revoked':
                return NOOP
            raise ReconciliationMismatchError(
                f'No active permission of user {user.id} for {event.company}', event=event)
        self.store.update_permission_status(permission.id, 'revoked', commit=False)
        return APPLIED

    def _on_payment_made(self, event: LedgerEvent) -> str:
        user = self._resolve_user(event)
        permission = self.store.find_active_permission(user.id, event.company)
        self.store.create_earning(
            user.id,
            amount=self.to_fiat_minor(event.amount_wei),
            permission_id=permission.id if permission else None,
            status='completed',
            blockchain_tx_hash=event.tx_hash,
            commit=False,
        )
        return APPLIED

    # -- bookkeeping ------------------------------------------------------------

    def _is_processed(self, event: LedgerEvent) -> bool:
        return db.session.query(ProcessedEvent.id).filter_by(
            tx_hash=event.tx_hash, log_index=event.log_index).first() is not None

    def _park_orphan(self, event: LedgerEvent, reason: str) -> OrphanEvent:
        logger.warning('Reconciler: orphan %s %s:%s: %s', event.name, event.tx_hash, event.log_index, reason)
        orphan = OrphanEvent.query.filter_by(tx_hash=event.tx_hash, log_index=event.log_index).first()
        if orphan is None:
            orphan = OrphanEvent(
                event_name=event.name,
                tx_hash=event.tx_hash,
                log_index=event.log_index,
                block_number=event.block_number,
                user_address=event.user,
                company_address=event.company,
                value=str(event.value),
                reason=reason[:255],
            )
            db.session.add(orphan)
        else:
            orphan.attempts += 1
            orphan.reason = reason[:255]
        return orphan

    def _pair_lock(self, pair) -> threading.Lock:
        key = tuple(a.lower() for a in pair)
        return self._locks[hash(key) % LOCK_STRIPES]
