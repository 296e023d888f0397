"""
Consent orchestration for the HTTP layer.

Grant and revoke touch both stores without a shared transaction:

1. grant writes a ``pending`` Permission first, then submits the ledger
   transaction; the reconciler later flips the row to ``active`` when it
   sees ``AccessGranted``
2. submissions that never left the process are retried with backoff;
   a submission that timed out after broadcast is never resent, since the
   original may still confirm
3. a pending row whose transaction was rejected, or never sent, is
   discarded so it cannot be confirmed by an unrelated later grant
"""

import logging
from decimal import Decimal
from typing import Callable, List, Optional

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from dataledger.ledger.client import LedgerClient
from dataledger.ledger.errors import LedgerRevertedError, LedgerSubmissionError
from dataledger.ledger.types import LicenseDetail
from dataledger.ledger.units import native_to_fiat_minor, to_smallest_unit
from dataledger.models import Permission, User
from dataledger.services.store import ApplicationStore, RecordNotFoundError
from dataledger.utils.audit_log import log_action

logger = logging.getLogger(__name__)


def _never_broadcast(exc: BaseException) -> bool:
    return isinstance(exc, LedgerSubmissionError) and exc.tx_hash is None


class ConsentService:

    def __init__(self, ledger: LedgerClient, store: ApplicationStore,
                 native_to_fiat_rate: Decimal = Decimal('1'), fiat_minor_units: int = 100,
                 submit_retries: int = 3, retry_backoff: float = 1.0):
        self.ledger = ledger
        self.store = store
        self.native_to_fiat_rate = native_to_fiat_rate
        self.fiat_minor_units = fiat_minor_units
        self.submit_retries = max(1, int(submit_retries))
        self.retry_backoff = retry_backoff

    @classmethod
    def from_config(cls, config, ledger: LedgerClient, store: ApplicationStore) -> 'ConsentService':
        return cls(
            ledger, store,
            native_to_fiat_rate=Decimal(str(config.get('NATIVE_TO_FIAT_RATE', '1'))),
            fiat_minor_units=config.get('FIAT_MINOR_UNITS', 100),
            submit_retries=config.get('LEDGER_SUBMIT_RETRIES', 3),
            retry_backoff=config.get('LEDGER_RETRY_BACKOFF', 1.0),
        )

    def submit(self, operation: str, fn: Callable[[], str]) -> str:
        """Run a ledger submission, retrying only failures that never reached the ledger."""
        options = {
            'stop': stop_after_attempt(self.submit_retries),
            'retry': retry_if_exception(_never_broadcast),
            'reraise': True,
            'before_sleep': lambda state: logger.warning(
                'Ledger: %s attempt %s failed, retrying: %s',
                operation, state.attempt_number, state.outcome.exception()),
        }
        if self.retry_backoff:
            options['wait'] = wait_exponential(multiplier=self.retry_backoff, max=30)
        return Retrying(**options)(fn)

    # -- ledger operations --------------------------------------------------

    def register_user(self, user: User, username: str, wallet_address: str) -> str:
        tx_hash = self.submit('registerUser', lambda: self.ledger.register_user(wallet_address, username))
        if user.wallet_address != wallet_address:
            self.store.update_user_wallet(user.id, wallet_address)
        log_action('LEDGER_USER_REGISTERED', f'Wallet {wallet_address} registered as {username}',
                   subject=user, additional_info={'tx_hash': tx_hash})
        return tx_hash

    def grant_access(self, user: User, company_address: str, data_types: List[str],
                     monthly_payment: Decimal, duration_months: int,
                     company_name: Optional[str] = None) -> str:
        wei = to_smallest_unit(monthly_payment)
        permission = self.store.create_permission(
            user.id,
            company_name=company_name or company_address,
            company_address=company_address,
            access_types=data_types,
            monthly_payment=native_to_fiat_minor(wei, self.native_to_fiat_rate, self.fiat_minor_units),
        )
        permission_id = permission.id
        try:
            tx_hash = self.submit('grantAccess', lambda: self.ledger.grant_access(
                user.wallet_address, company_address, ','.join(data_types),
                monthly_payment, duration_months))
        except LedgerRevertedError as e:
            self.store.discard_pending_permission(permission_id)
            log_action('LEDGER_GRANT_REVERTED', e.reason, additional_info={
                'company': company_address, 'permission_id': permission_id})
            raise
        except LedgerSubmissionError as e:
            if e.tx_hash:
                # broadcast but unconfirmed; the reconciler settles the row
                self.store.attach_permission_tx(permission_id, e.tx_hash)
            else:
                self.store.discard_pending_permission(permission_id)
            log_action('LEDGER_GRANT_FAILED', str(e), additional_info={
                'company': company_address, 'tx_hash': e.tx_hash, 'permission_id': permission_id})
            raise

        self.store.attach_permission_tx(permission_id, tx_hash)
        log_action('LEDGER_GRANT_SUBMITTED', f'Access granted to {company_address}',
                   additional_info={'tx_hash': tx_hash, 'permission_id': permission_id})
        return tx_hash

    def revoke_access(self, user: User, company_address: str) -> str:
        try:
            tx_hash = self.submit('revokeAccess',
                                  lambda: self.ledger.revoke_access(user.wallet_address, company_address))
        except (LedgerRevertedError, LedgerSubmissionError) as e:
            log_action('LEDGER_REVOKE_FAILED', str(e), subject=user,
                       additional_info={'company': company_address})
            raise
        log_action('LEDGER_REVOKE_SUBMITTED', f'Access revoked from {company_address}', subject=user,
                   additional_info={'tx_hash': tx_hash})
        return tx_hash

    def pay_user(self, payer: User, user_address: str, amount: Decimal) -> str:
        sender = payer.wallet_address or None
        tx_hash = self.submit('payUser', lambda: self.ledger.pay_user(user_address, amount, sender=sender))
        log_action('LEDGER_PAYMENT_SUBMITTED', f'Paid {amount} to {user_address}', subject=payer,
                   additional_info={'tx_hash': tx_hash})
        return tx_hash

    # -- reads ----------------------------------------------------------------

    def get_earnings(self, wallet_address: str) -> Decimal:
        return self.ledger.get_user_earnings(wallet_address)

    def get_licenses(self, wallet_address: str) -> List[LicenseDetail]:
        return self.ledger.get_licenses_with_details(wallet_address)

    def is_access_active(self, wallet_address: str, company_address: str) -> bool:
        return self.ledger.is_access_active(wallet_address, company_address)

    def approve_permission(self, user: User, permission_id) -> Permission:
        """Manual approval of a pending permission, without a ledger transaction."""
        permission = self._owned_permission(user, permission_id)
        return self.store.update_permission_status(permission.id, 'active')

    def revoke_permission(self, user: User, permission_id) -> Permission:
        permission = self._owned_permission(user, permission_id)
        return self.store.update_permission_status(permission.id, 'revoked')

    def _owned_permission(self, user: User, permission_id) -> Permission:
        permission = self.store.get_permission(permission_id)
        if permission is None or permission.user_id != user.id:
            raise RecordNotFoundError(f'Permission {permission_id} not found')
        return permission
