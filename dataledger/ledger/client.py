"""
Ledger client interface.

One method per DataLicense operation. Amounts cross this boundary as Decimal
native units; implementations convert to and from wei. Mutating calls return
the transaction hash only once the ledger has included the transaction and
raise ``LedgerSubmissionError`` / ``LedgerRevertedError`` otherwise.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, List, Optional

from dataledger.ledger.types import LedgerEvent, LicenseDetail


class LedgerClient(ABC):
    """Typed access to the license ledger."""

    backend_name = 'abstract'

    @property
    @abstractmethod
    def contract_address(self) -> str:
        ...

    # mutating calls

    @abstractmethod
    def register_user(self, sender: str, username: str) -> str:
        ...

    @abstractmethod
    def grant_access(self, sender: str, company: str, data_types: str,
                     monthly_payment: Decimal, duration_months: int) -> str:
        ...

    @abstractmethod
    def revoke_access(self, sender: str, company: str) -> str:
        ...

    @abstractmethod
    def pay_user(self, user: str, amount: Decimal, sender: Optional[str] = None) -> str:
        """Credit ``user``; ``sender`` defaults to the client's own account."""

    # views

    @abstractmethod
    def is_access_active(self, user: str, company: str) -> bool:
        ...

    @abstractmethod
    def get_user_earnings(self, user: str) -> Decimal:
        ...

    @abstractmethod
    def get_user_licenses(self, user: str) -> List[int]:
        ...

    @abstractmethod
    def get_license_details(self, license_id: int) -> LicenseDetail:
        ...

    # event source

    @abstractmethod
    def block_number(self) -> int:
        """Latest block whose events are safe to read."""

    @abstractmethod
    def fetch_events(self, from_block: int, to_block: int) -> List[LedgerEvent]:
        """Contract events in [from_block, to_block], ordered by block then log index."""

    def add_block_listener(self, callback: Callable[[int], None]) -> None:
        """Register ``callback(block_number)`` for newly mined blocks.

        Backends that cannot push new blocks ignore the registration and the
        listener falls back to its poll interval.
        """

    def remove_block_listener(self, callback: Callable[[int], None]) -> None:
        pass

    def get_licenses_with_details(self, user: str) -> List[LicenseDetail]:
        return [self.get_license_details(license_id)
                for license_id in self.get_user_licenses(user)]
