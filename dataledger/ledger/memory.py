"""In-memory ledger client backed by :class:`LicenseLedger`.

Drop-in replacement for the web3 client in development and tests. New blocks
are pushed to registered listeners right after they are mined.
"""

import logging
import threading
from decimal import Decimal
from typing import Callable, List, Optional

from web3 import Web3

from dataledger.ledger.client import LedgerClient
from dataledger.ledger.errors import LedgerSubmissionError
from dataledger.ledger.state_machine import LicenseLedger, normalize_address
from dataledger.ledger.types import LedgerEvent, LicenseDetail
from dataledger.ledger.units import from_smallest_unit, to_smallest_unit

logger = logging.getLogger(__name__)

# First hardhat development account, used as the default operator
DEFAULT_OPERATOR = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'


def instance_address(ledger: LicenseLedger) -> str:
    """Contract address unique to one in-memory ledger.

    A restarted process gets a new ledger and so a new address, keeping its
    reconciler cursor apart from the previous run's.
    """
    digest = Web3.keccak(text=f'DataLicense:{ledger.instance_id}').hex()
    return Web3.to_checksum_address('0x' + digest[-40:])


class InMemoryLedgerClient(LedgerClient):
    backend_name = 'memory'

    def __init__(self, ledger: Optional[LicenseLedger] = None, operator: str = DEFAULT_OPERATOR,
                 clock: Optional[Callable[[], int]] = None, contract_address: Optional[str] = None):
        self.ledger = ledger or LicenseLedger(clock=clock)
        self._contract_address = (normalize_address(contract_address) if contract_address
                                  else instance_address(self.ledger))
        self.operator = normalize_address(operator)
        self._listeners: List[Callable[[int], None]] = []
        self._listeners_lock = threading.Lock()
        self._pending_failures = 0

    @property
    def contract_address(self) -> str:
        return self._contract_address

    def simulate_outage(self, calls: int = 1) -> None:
        """Make the next ``calls`` transactions fail before reaching the ledger."""
        self._pending_failures = calls

    def _check_reachable(self, operation: str) -> None:
        if self._pending_failures > 0:
            self._pending_failures -= 1
            raise LedgerSubmissionError(f'{operation}: ledger unreachable')

    def _notify(self) -> None:
        block = self.ledger.block_number
        with self._listeners_lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(block)
            except Exception:
                logger.exception('Block listener failed for block %s', block)

    def register_user(self, sender: str, username: str) -> str:
        self._check_reachable('registerUser')
        tx_hash = self.ledger.register_user(sender, username)
        logger.info('Ledger: registered %s as %r (%s)', sender, username, tx_hash)
        self._notify()
        return tx_hash

    def grant_access(self, sender: str, company: str, data_types: str,
                     monthly_payment: Decimal, duration_months: int) -> str:
        wei = to_smallest_unit(monthly_payment)
        self._check_reachable('grantAccess')
        license_id, tx_hash = self.ledger.grant_access(
            sender, company, data_types, wei, int(duration_months))
        logger.info('Ledger: license %s granted by %s to %s (%s)', license_id, sender, company, tx_hash)
        self._notify()
        return tx_hash

    def revoke_access(self, sender: str, company: str) -> str:
        self._check_reachable('revokeAccess')
        license_id, tx_hash = self.ledger.revoke_access(sender, company)
        logger.info('Ledger: license %s revoked by %s (%s)', license_id, sender, tx_hash)
        self._notify()
        return tx_hash

    def pay_user(self, user: str, amount: Decimal, sender: Optional[str] = None) -> str:
        wei = to_smallest_unit(amount)
        self._check_reachable('payUser')
        tx_hash = self.ledger.pay_user(sender or self.operator, user, wei, wei)
        logger.info('Ledger: paid %s wei to %s (%s)', wei, user, tx_hash)
        self._notify()
        return tx_hash

    def is_access_active(self, user: str, company: str) -> bool:
        return self.ledger.is_access_active(user, company)

    def get_user_earnings(self, user: str) -> Decimal:
        return from_smallest_unit(self.ledger.get_user_earnings(user))

    def get_user_licenses(self, user: str) -> List[int]:
        return self.ledger.get_user_licenses(user)

    def get_license_details(self, license_id: int) -> LicenseDetail:
        record = self.ledger.get_license_details(license_id)
        return LicenseDetail(
            license_id=record.license_id,
            user=record.user,
            company=record.company,
            data_types=record.data_types,
            monthly_payment=from_smallest_unit(record.monthly_payment),
            start_time=record.start_time,
            end_time=record.end_time,
            is_active=record.is_active,
        )

    def block_number(self) -> int:
        return self.ledger.block_number

    def fetch_events(self, from_block: int, to_block: int) -> List[LedgerEvent]:
        return self.ledger.events(from_block, to_block)

    def add_block_listener(self, callback: Callable[[int], None]) -> None:
        with self._listeners_lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_block_listener(self, callback: Callable[[int], None]) -> None:
        with self._listeners_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)
