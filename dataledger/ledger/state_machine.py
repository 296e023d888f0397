"""
In-process implementation of the DataLicense contract.

Mirrors the on-chain rules exactly so the in-memory client behaves like the
deployed contract:

* a license is created Active by ``grant_access`` and may only move to
  Revoked; re-granting the same (user, company) pair allocates a new id
* the current license of a pair is the most recently granted one, and only
  that license counts for ``is_access_active``
* earnings only grow, through ``pay_user``

Every mutating call validates before it writes and holds the ledger lock for
its whole duration, so a rejected call leaves no trace. Each successful call
is mined as its own block and emits its events with a transaction hash and
log index.
"""

import itertools
import secrets
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from web3 import Web3

from dataledger.ledger.errors import LedgerRevertedError
from dataledger.ledger.types import (
    ACCESS_GRANTED, ACCESS_REVOKED, PAYMENT_MADE, LedgerEvent
)

# Contract months are fixed 30-day periods of ledger seconds.
MONTH_SECONDS = 30 * 24 * 60 * 60
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'

# Revert reasons, worded as the contract's require() messages
REVERT_NO_ACTIVE_ACCESS = 'No active access to revoke'
REVERT_INVALID_COMPANY = 'Invalid company address'
REVERT_SELF_GRANT = 'Cannot grant access to yourself'
REVERT_INVALID_DURATION = 'Duration must be greater than zero'
REVERT_INVALID_PAYMENT = 'Monthly payment must be greater than zero'
REVERT_INVALID_AMOUNT = 'Payment amount must be greater than zero'
REVERT_AMOUNT_MISMATCH = 'Payment amount mismatch'
REVERT_INVALID_USER = 'Invalid user address'
REVERT_UNKNOWN_LICENSE = 'License does not exist'


@dataclass(frozen=True)
class LicenseRecord:
    license_id: int
    user: str
    company: str
    data_types: str
    monthly_payment: int  # wei
    start_time: int
    end_time: int
    is_active: bool


def normalize_address(address: str, reason: str = REVERT_INVALID_USER) -> str:
    """Checksum an address, reverting with ``reason`` when it is malformed."""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise LedgerRevertedError(reason)
    return Web3.to_checksum_address(address)


class LicenseLedger:
    """The license/earnings state machine with its append-only event log."""

    def __init__(self, clock: Optional[Callable[[], int]] = None, chain_id: int = 31337,
                 instance_id: Optional[str] = None):
        self._clock = clock or (lambda: int(time.time()))
        self._chain_id = chain_id
        # Distinguishes this ledger from any earlier one, which also restarts at block 0
        self.instance_id = instance_id or secrets.token_hex(8)
        self._lock = threading.RLock()
        self._next_license_id = itertools.count(1)
        self._licenses: Dict[int, LicenseRecord] = {}
        self._user_licenses: Dict[str, List[int]] = {}
        self._current: Dict[Tuple[str, str], int] = {}
        self._earnings: Dict[str, int] = {}
        self._usernames: Dict[str, str] = {}
        self._events: List[LedgerEvent] = []
        self._block_number = 0
        self._nonce = 0

    # -- transaction plumbing -------------------------------------------

    def now(self) -> int:
        return int(self._clock())

    @property
    def block_number(self) -> int:
        return self._block_number

    def _mine(self, sender: str, payloads: List[Tuple[str, str, str, int]]) -> str:
        """Append a block holding one transaction and its events. Caller holds the lock."""
        self._nonce += 1
        self._block_number += 1
        tx_hash = Web3.keccak(
            text=f'{self._chain_id}:{self.instance_id}:{sender}:{self._nonce}:{self._block_number}').hex()
        if not tx_hash.startswith('0x'):
            tx_hash = '0x' + tx_hash
        for log_index, (name, user, company, value) in enumerate(payloads):
            self._events.append(LedgerEvent(
                name=name, user=user, company=company, value=value,
                tx_hash=tx_hash, log_index=log_index, block_number=self._block_number,
            ))
        return tx_hash

    # -- mutating calls ---------------------------------------------------

    def register_user(self, sender: str, username: str) -> str:
        sender = normalize_address(sender)
        with self._lock:
            # Display-only association; re-registering overwrites the name.
            self._usernames[sender] = username
            return self._mine(sender, [])

    def grant_access(self, sender: str, company: str, data_types: str,
                     monthly_payment: int, duration_months: int) -> Tuple[int, str]:
        """Create a new Active license. Returns (license_id, tx_hash)."""
        user = normalize_address(sender)
        company = normalize_address(company, REVERT_INVALID_COMPANY)
        if company == ZERO_ADDRESS:
            raise LedgerRevertedError(REVERT_INVALID_COMPANY)
        if company == user:
            raise LedgerRevertedError(REVERT_SELF_GRANT)
        if int(duration_months) <= 0:
            raise LedgerRevertedError(REVERT_INVALID_DURATION)
        if int(monthly_payment) <= 0:
            raise LedgerRevertedError(REVERT_INVALID_PAYMENT)

        with self._lock:
            start = self.now()
            license_id = next(self._next_license_id)
            self._licenses[license_id] = LicenseRecord(
                license_id=license_id,
                user=user,
                company=company,
                data_types=data_types,
                monthly_payment=int(monthly_payment),
                start_time=start,
                end_time=start + int(duration_months) * MONTH_SECONDS,
                is_active=True,
            )
            self._user_licenses.setdefault(user, []).append(license_id)
            self._current[(user, company)] = license_id
            tx_hash = self._mine(user, [(ACCESS_GRANTED, user, company, license_id)])
            return license_id, tx_hash

    def revoke_access(self, sender: str, company: str) -> Tuple[int, str]:
        """Deactivate the current license of (sender, company). Returns (license_id, tx_hash)."""
        user = normalize_address(sender)
        company = normalize_address(company, REVERT_INVALID_COMPANY)
        with self._lock:
            license_id = self._current.get((user, company))
            record = self._licenses.get(license_id) if license_id is not None else None
            if record is None or not record.is_active:
                raise LedgerRevertedError(REVERT_NO_ACTIVE_ACCESS)
            self._licenses[license_id] = replace(record, is_active=False)
            tx_hash = self._mine(user, [(ACCESS_REVOKED, user, company, license_id)])
            return license_id, tx_hash

    def pay_user(self, sender: str, user: str, amount: int, value: int) -> str:
        """Credit ``user`` with ``amount`` wei. ``value`` is the attached payment.

        Any sender may pay any user, as the deployed contract allows.
        """
        payer = normalize_address(sender)
        user = normalize_address(user)
        if user == ZERO_ADDRESS:
            raise LedgerRevertedError(REVERT_INVALID_USER)
        if int(amount) <= 0:
            raise LedgerRevertedError(REVERT_INVALID_AMOUNT)
        if int(value) != int(amount):
            raise LedgerRevertedError(REVERT_AMOUNT_MISMATCH)
        with self._lock:
            self._earnings[user] = self._earnings.get(user, 0) + int(amount)
            return self._mine(payer, [(PAYMENT_MADE, user, payer, int(amount))])

    # -- views ------------------------------------------------------------

    def is_access_active(self, user: str, company: str) -> bool:
        user = normalize_address(user)
        company = normalize_address(company, REVERT_INVALID_COMPANY)
        with self._lock:
            license_id = self._current.get((user, company))
            if license_id is None:
                return False
            record = self._licenses[license_id]
            return record.is_active and self.now() <= record.end_time

    def get_user_earnings(self, user: str) -> int:
        user = normalize_address(user)
        with self._lock:
            return self._earnings.get(user, 0)

    def get_user_licenses(self, user: str) -> List[int]:
        user = normalize_address(user)
        with self._lock:
            return list(self._user_licenses.get(user, []))

    def get_license_details(self, license_id: int) -> LicenseRecord:
        with self._lock:
            record = self._licenses.get(int(license_id))
            if record is None:
                raise LedgerRevertedError(REVERT_UNKNOWN_LICENSE)
            return record

    def get_username(self, user: str) -> Optional[str]:
        return self._usernames.get(normalize_address(user))

    def events(self, from_block: int = 0, to_block: Optional[int] = None) -> List[LedgerEvent]:
        with self._lock:
            upper = self._block_number if to_block is None else to_block
            return [e for e in self._events if from_block <= e.block_number <= upper]
