"""Value types shared by ledger clients and the reconciler."""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Tuple

ACCESS_GRANTED = 'AccessGranted'
ACCESS_REVOKED = 'AccessRevoked'
PAYMENT_MADE = 'PaymentMade'

EVENT_NAMES = (ACCESS_GRANTED, ACCESS_REVOKED, PAYMENT_MADE)


@dataclass(frozen=True)
class LicenseDetail:
    license_id: int
    user: str
    company: str
    data_types: str
    monthly_payment: Decimal  # native units
    start_time: int
    end_time: int
    is_active: bool

    def to_dict(self) -> dict:
        from dataledger.ledger.units import format_native
        return {
            'licenseId': self.license_id,
            'user': self.user,
            'company': self.company,
            'dataTypes': self.data_types,
            'monthlyPayment': format_native(self.monthly_payment),
            'startTime': self.start_time,
            'endTime': self.end_time,
            'isActive': self.is_active,
        }


@dataclass(frozen=True)
class LedgerEvent:
    """A decoded contract log.

    ``value`` is the license id for access events and the amount in wei for
    ``PaymentMade``.
    """
    name: str
    user: str
    company: str
    value: int
    tx_hash: str
    log_index: int
    block_number: int

    @property
    def key(self) -> Tuple[str, int]:
        return (self.tx_hash, self.log_index)

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.user, self.company)

    @property
    def license_id(self) -> int:
        if self.name == PAYMENT_MADE:
            raise AttributeError('PaymentMade events carry no license id')
        return self.value

    @property
    def amount_wei(self) -> int:
        if self.name != PAYMENT_MADE:
            raise AttributeError(f'{self.name} events carry no amount')
        return self.value

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'LedgerEvent':
        return cls(
            name=data['name'],
            user=data['user'],
            company=data['company'],
            value=int(data['value']),
            tx_hash=data['tx_hash'],
            log_index=int(data['log_index']),
            block_number=int(data['block_number']),
        )
