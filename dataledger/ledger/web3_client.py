"""
web3.py client for the deployed DataLicense contract.

Transactions from the configured operator key are signed locally with
eth-account; any other sender must be an account managed (unlocked) by the
node, which is the case for hardhat/anvil development chains and custodial
signers.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from dataledger.ledger.abi import DATA_LICENSE_ABI, EVENT_VALUE_FIELDS
from dataledger.ledger.client import LedgerClient
from dataledger.ledger.errors import LedgerRevertedError, LedgerSubmissionError
from dataledger.ledger.types import EVENT_NAMES, LedgerEvent, LicenseDetail
from dataledger.ledger.units import from_smallest_unit, to_smallest_unit

logger = logging.getLogger(__name__)

REVERT_PREFIXES = ('execution reverted: ', 'execution reverted', 'VM Exception while processing transaction: reverted with reason string ')
TRANSPORT_ERRORS = (requests.exceptions.RequestException, ConnectionError, OSError)


def revert_reason(exc: Exception) -> str:
    """Extract the require() message from a web3 revert error."""
    message = getattr(exc, 'message', None) or str(exc)
    if isinstance(message, (tuple, list)):
        message = message[0] if message else ''
    message = str(message).strip()
    for prefix in REVERT_PREFIXES:
        if message.startswith(prefix):
            message = message[len(prefix):]
    message = message.strip().strip("'\"")
    return message or 'Transaction reverted'


class Web3LedgerClient(LedgerClient):
    backend_name = 'web3'

    def __init__(self, rpc_url: Optional[str] = None, contract_address: str = '',
                 private_key: Optional[str] = None, chain_id: Optional[int] = None,
                 tx_timeout: float = 120.0, confirmations: int = 0, w3: Optional[Web3] = None):
        if w3 is None:
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': min(tx_timeout, 30)}))
        self._w3 = w3
        self._address = Web3.to_checksum_address(contract_address)
        self._contract = w3.eth.contract(address=self._address, abi=DATA_LICENSE_ABI)
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        self._tx_timeout = tx_timeout
        self._confirmations = max(0, int(confirmations))

    @property
    def contract_address(self) -> str:
        return self._address

    @property
    def operator(self) -> Optional[str]:
        if self._account is not None:
            return self._account.address
        return self._w3.eth.default_account or None

    # -- transaction plumbing -------------------------------------------

    def _send(self, operation: str, fn, sender: str, value: int = 0) -> str:
        """Submit ``fn`` from ``sender`` and block until it is included."""
        sender = Web3.to_checksum_address(sender)
        params: Dict[str, Any] = {'from': sender}
        if value:
            params['value'] = value
        try:
            if self._account is not None and sender == self._account.address:
                params['nonce'] = self._w3.eth.get_transaction_count(sender, 'pending')
                params['chainId'] = self._chain_id or self._w3.eth.chain_id
                tx = fn.build_transaction(params)
                signed = self._account.sign_transaction(tx)
                raw = getattr(signed, 'raw_transaction', None) or signed.rawTransaction
                tx_hash = self._w3.eth.send_raw_transaction(raw)
            else:
                tx_hash = fn.transact(params)
        except ContractLogicError as e:
            reason = revert_reason(e)
            logger.warning('Ledger: %s from %s rejected: %s', operation, sender, reason)
            raise LedgerRevertedError(reason) from e
        except (Web3Exception, ValueError, TypeError) + TRANSPORT_ERRORS as e:
            logger.error('Ledger: %s from %s could not be submitted: %s', operation, sender, e)
            raise LedgerSubmissionError(f'{operation}: could not submit transaction') from e

        tx_hex = Web3.to_hex(tx_hash)
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._tx_timeout)
        except TimeExhausted as e:
            logger.error('Ledger: %s %s not included after %ss', operation, tx_hex, self._tx_timeout)
            raise LedgerSubmissionError(
                f'{operation}: transaction not confirmed within {self._tx_timeout}s', tx_hash=tx_hex) from e
        except (Web3Exception,) + TRANSPORT_ERRORS as e:
            raise LedgerSubmissionError(
                f'{operation}: lost connection while waiting for receipt', tx_hash=tx_hex) from e

        if receipt['status'] != 1:
            logger.warning('Ledger: %s %s reverted on inclusion', operation, tx_hex)
            raise LedgerRevertedError('Transaction reverted', tx_hash=tx_hex)
        logger.info('Ledger: %s included in block %s (%s)', operation, receipt['blockNumber'], tx_hex)
        return tx_hex

    def _call(self, operation: str, fn):
        try:
            return fn.call()
        except ContractLogicError as e:
            raise LedgerRevertedError(revert_reason(e)) from e
        except (Web3Exception,) + TRANSPORT_ERRORS as e:
            raise LedgerSubmissionError(f'{operation}: ledger unreachable') from e

    # -- mutating calls ---------------------------------------------------

    def register_user(self, sender: str, username: str) -> str:
        return self._send('registerUser', self._contract.functions.registerUser(username), sender)

    def grant_access(self, sender: str, company: str, data_types: str,
                     monthly_payment: Decimal, duration_months: int) -> str:
        fn = self._contract.functions.grantAccess(
            Web3.to_checksum_address(company), data_types,
            to_smallest_unit(monthly_payment), int(duration_months))
        return self._send('grantAccess', fn, sender)

    def revoke_access(self, sender: str, company: str) -> str:
        fn = self._contract.functions.revokeAccess(Web3.to_checksum_address(company))
        return self._send('revokeAccess', fn, sender)

    def pay_user(self, user: str, amount: Decimal, sender: Optional[str] = None) -> str:
        sender = sender or self.operator
        if not sender:
            raise LedgerSubmissionError('payUser: no operator account configured')
        wei = to_smallest_unit(amount)
        fn = self._contract.functions.payUser(Web3.to_checksum_address(user), wei)
        return self._send('payUser', fn, sender, value=wei)

    # -- views ------------------------------------------------------------

    def is_access_active(self, user: str, company: str) -> bool:
        fn = self._contract.functions.isAccessActive(
            Web3.to_checksum_address(user), Web3.to_checksum_address(company))
        return bool(self._call('isAccessActive', fn))

    def get_user_earnings(self, user: str) -> Decimal:
        fn = self._contract.functions.getUserEarnings(Web3.to_checksum_address(user))
        return from_smallest_unit(self._call('getUserEarnings', fn))

    def get_user_licenses(self, user: str) -> List[int]:
        fn = self._contract.functions.getUserLicenses(Web3.to_checksum_address(user))
        return [int(i) for i in self._call('getUserLicenses', fn)]

    def get_license_details(self, license_id: int) -> LicenseDetail:
        fn = self._contract.functions.getLicenseDetails(int(license_id))
        user, company, data_types, monthly_payment, start, end, active = self._call('getLicenseDetails', fn)
        return LicenseDetail(
            license_id=int(license_id),
            user=Web3.to_checksum_address(user),
            company=Web3.to_checksum_address(company),
            data_types=data_types,
            monthly_payment=from_smallest_unit(monthly_payment),
            start_time=int(start),
            end_time=int(end),
            is_active=bool(active),
        )

    # -- event source -----------------------------------------------------

    def block_number(self) -> int:
        try:
            head = self._w3.eth.block_number
        except (Web3Exception,) + TRANSPORT_ERRORS as e:
            raise LedgerSubmissionError('eth_blockNumber: ledger unreachable') from e
        return max(0, head - self._confirmations)

    def fetch_events(self, from_block: int, to_block: int) -> List[LedgerEvent]:
        if to_block < from_block:
            return []
        events = []
        try:
            for name in EVENT_NAMES:
                logs = getattr(self._contract.events, name)().get_logs(
                    from_block=from_block, to_block=to_block)
                events.extend(self._decode(name, log) for log in logs)
        except (Web3Exception,) + TRANSPORT_ERRORS as e:
            raise LedgerSubmissionError('eth_getLogs: ledger unreachable') from e
        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events

    @staticmethod
    def _decode(name: str, log) -> LedgerEvent:
        args = log['args']
        return LedgerEvent(
            name=name,
            user=Web3.to_checksum_address(args['user']),
            company=Web3.to_checksum_address(args['company']),
            value=int(args[EVENT_VALUE_FIELDS[name]]),
            tx_hash=Web3.to_hex(log['transactionHash']),
            log_index=int(log['logIndex']),
            block_number=int(log['blockNumber']),
        )
