"""Request payload validation for the JSON API."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3


def checksum(value: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError('must be a valid address')
    return Web3.to_checksum_address(value)


def split_tags(value) -> List[str]:
    if isinstance(value, str):
        value = value.split(',')
    tags = [str(t).strip() for t in (value or []) if str(t).strip()]
    if not tags:
        raise ValueError('at least one data type is required')
    return tags


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra='ignore')


class RegisterRequest(Payload):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(min_length=3, max_length=120, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    password: str = Field(min_length=8, max_length=128)
    wallet_address: Optional[str] = Field(default=None, alias='walletAddress')

    @field_validator('wallet_address')
    @classmethod
    def _wallet(cls, v):
        return checksum(v) if v else None


class LoginRequest(Payload):
    email: str
    password: str


class PermissionGrantRequest(Payload):
    company_name: str = Field(alias='companyName', min_length=1, max_length=200)
    company_logo: Optional[str] = Field(default=None, alias='companyLogo')
    company_address: Optional[str] = Field(default=None, alias='companyAddress')
    access_types: List[str] = Field(alias='accessTypes')
    monthly_payment: int = Field(alias='monthlyPayment', ge=0)  # fiat minor units

    @field_validator('access_types', mode='before')
    @classmethod
    def _tags(cls, v):
        return split_tags(v)

    @field_validator('company_address')
    @classmethod
    def _company(cls, v):
        return checksum(v) if v else None


class PermissionActionRequest(Payload):
    permission_id: int = Field(alias='permissionId')


class FootprintEntry(Payload):
    platform: str = Field(min_length=1, max_length=100)
    percentage: int = Field(ge=0, le=100)


class FootprintUpdateRequest(Payload):
    footprints: List[FootprintEntry]


class EarningsCalcRequest(Payload):
    platforms: List[str] = Field(min_length=1)
    hours: float = Field(gt=0)


class LedgerRegisterRequest(Payload):
    username: str = Field(min_length=1, max_length=50)
    wallet_address: str = Field(alias='walletAddress')

    @field_validator('wallet_address')
    @classmethod
    def _wallet(cls, v):
        return checksum(v)


class GrantAccessRequest(Payload):
    company_address: str = Field(alias='companyAddress')
    company_name: Optional[str] = Field(default=None, alias='companyName')
    data_types: List[str] = Field(alias='dataTypes')
    monthly_payment: Decimal = Field(alias='monthlyPayment', gt=0)  # ledger native units
    duration_months: int = Field(alias='durationMonths', gt=0, le=1200)
    wallet_address: str = Field(alias='walletAddress')

    @field_validator('company_address', 'wallet_address')
    @classmethod
    def _addresses(cls, v):
        return checksum(v)

    @field_validator('data_types', mode='before')
    @classmethod
    def _tags(cls, v):
        return split_tags(v)


class RevokeAccessRequest(Payload):
    company_address: str = Field(alias='companyAddress')
    wallet_address: str = Field(alias='walletAddress')

    @field_validator('company_address', 'wallet_address')
    @classmethod
    def _addresses(cls, v):
        return checksum(v)


class PayUserRequest(Payload):
    user_address: str = Field(alias='userAddress')
    amount: Decimal = Field(gt=0)  # ledger native units

    @field_validator('user_address')
    @classmethod
    def _address(cls, v):
        return checksum(v)
