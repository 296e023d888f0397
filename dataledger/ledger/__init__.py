"""
License ledger access.

``build_ledger_client`` picks the implementation once, at application
startup, from ``LEDGER_BACKEND``:

    memory  in-process DataLicense state machine (development, tests)
    web3    deployed contract over JSON-RPC
"""

import logging

from dataledger.ledger.client import LedgerClient
from dataledger.ledger.errors import (
    LedgerError, LedgerSubmissionError, LedgerRevertedError,
    ReconciliationMismatchError, DuplicateEventError
)
from dataledger.ledger.memory import InMemoryLedgerClient
from dataledger.ledger.types import LedgerEvent, LicenseDetail

logger = logging.getLogger(__name__)


def build_ledger_client(config) -> LedgerClient:
    """Create the ledger client described by an app config mapping."""
    backend = config.get('LEDGER_BACKEND', 'memory')
    if backend == 'web3':
        from dataledger.ledger.web3_client import Web3LedgerClient
        client = Web3LedgerClient(
            rpc_url=config['LEDGER_RPC_URL'],
            contract_address=config['LEDGER_CONTRACT_ADDRESS'],
            private_key=config.get('LEDGER_PRIVATE_KEY'),
            chain_id=config.get('LEDGER_CHAIN_ID'),
            tx_timeout=config.get('LEDGER_TX_TIMEOUT', 120.0),
            confirmations=config.get('LEDGER_CONFIRMATIONS', 0),
        )
    elif backend == 'memory':
        client = InMemoryLedgerClient()
    else:
        raise ValueError(f'Unknown ledger backend: {backend}')
    logger.info('Ledger backend: %s (contract %s)', client.backend_name, client.contract_address)
    return client


__all__ = [
    'build_ledger_client',
    'LedgerClient',
    'InMemoryLedgerClient',
    'LedgerEvent',
    'LicenseDetail',
    'LedgerError',
    'LedgerSubmissionError',
    'LedgerRevertedError',
    'ReconciliationMismatchError',
    'DuplicateEventError',
]
