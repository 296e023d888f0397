"""Error taxonomy for ledger access and event reconciliation."""

from typing import Optional


class LedgerError(Exception):
    """Base class for everything raised by a ledger client."""


class LedgerSubmissionError(LedgerError):
    """The transaction never reached the ledger, or its inclusion could not be confirmed.

    ``tx_hash`` is set when the transaction was broadcast but the receipt did not
    arrive within the configured timeout; the transaction may still confirm later.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class LedgerRevertedError(LedgerError):
    """The ledger rejected the call. Retrying the same call reverts again."""

    def __init__(self, reason: str, tx_hash: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.tx_hash = tx_hash


class ReconciliationMismatchError(Exception):
    """A ledger event has no matching off-chain record."""

    def __init__(self, message: str, event=None):
        super().__init__(message)
        self.event = event


class DuplicateEventError(Exception):
    """An event that was already applied to the store was delivered again."""
