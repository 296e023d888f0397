import os
from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import model_validator, field_validator
from typing import Optional

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DEFAULT_DB_URI = f'sqlite:///{os.path.join(BASE_DIR, "dataledger.db")}'
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'


class Config(BaseSettings):
    # Security configuration
    SECRET_KEY: str

    # Database
    DATABASE_URL: str = DEFAULT_DB_URI
    SQLALCHEMY_DATABASE_URI: Optional[str] = None
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}

    @model_validator(mode='after')
    def set_database_config(self) -> 'Config':
        """Set SQLALCHEMY_DATABASE_URI from DATABASE_URL and configure engine options"""
        self.SQLALCHEMY_DATABASE_URI = self.DATABASE_URL

        if self.DATABASE_URL.startswith('postgresql'):
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                'pool_size': 10,
                'pool_recycle': 3600,
                'pool_pre_ping': True,
                'max_overflow': 20,
            }
        elif self.DATABASE_URL.startswith('sqlite') and ':memory:' not in self.DATABASE_URL:
            # The reconciler thread and request threads share the file
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                'connect_args': {'check_same_thread': False, 'timeout': 30},
            }

        return self

    # Application environment: development | staging | production
    APP_ENV: str = os.getenv('FLASK_ENV', 'development')

    # Logging
    LOG_LEVEL: str = 'INFO'
    LOG_JSON: bool = False
    AUDIT_LOG_DIR: str = os.path.join(BASE_DIR, 'logs')

    # Ledger backend: 'memory' keeps the license state machine in-process,
    # 'web3' talks to the deployed DataLicense contract.
    LEDGER_BACKEND: str = 'memory'
    LEDGER_RPC_URL: Optional[str] = None
    LEDGER_CONTRACT_ADDRESS: str = ZERO_ADDRESS
    LEDGER_PRIVATE_KEY: Optional[str] = None
    LEDGER_CHAIN_ID: Optional[int] = None
    LEDGER_TX_TIMEOUT: float = 120.0  # seconds to wait for a receipt
    LEDGER_CONFIRMATIONS: int = 0  # blocks kept behind head when reading events
    LEDGER_START_BLOCK: int = 0
    LEDGER_SUBMIT_RETRIES: int = 3
    LEDGER_RETRY_BACKOFF: float = 1.0  # seconds, doubled per attempt

    # Currency conversion. Ledger amounts are wei (1e-18 of the native unit);
    # application amounts are fiat minor units (e.g. paise).
    NATIVE_TO_FIAT_RATE: Decimal = Decimal('1')  # fiat major units per native unit
    FIAT_MINOR_UNITS: int = 100
    FIAT_CURRENCY: str = 'inr'

    # Event reconciliation
    RECONCILER_AUTOSTART: bool = True
    RECONCILER_POLL_INTERVAL: float = 5.0
    RECONCILER_STORE_RETRIES: int = 3
    ORPHAN_REPAIR_ENABLED: bool = True
    ORPHAN_REPAIR_INTERVAL_MINUTES: int = 10

    # Internationalization
    LANGUAGES: list = ['en']
    BABEL_DEFAULT_LOCALE: str = 'en'
    BABEL_DEFAULT_TIMEZONE: str = 'UTC'
    BABEL_TRANSLATION_DIRECTORIES: str = os.path.join(BASE_DIR, 'translations')

    # Session and cookie security
    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SECURE: bool = False  # promoted in production
    SESSION_COOKIE_SAMESITE: str = 'Lax'
    PERMANENT_SESSION_LIFETIME: int = 3600

    @field_validator('LEDGER_BACKEND', mode='before')
    def _normalize_backend(cls, v):
        v = (v or 'memory').strip().lower()
        if v not in ('memory', 'web3'):
            raise ValueError(f"Unknown LEDGER_BACKEND '{v}' (expected 'memory' or 'web3')")
        return v

    @field_validator('NATIVE_TO_FIAT_RATE')
    def _positive_rate(cls, v):
        if v <= 0:
            raise ValueError('NATIVE_TO_FIAT_RATE must be positive')
        return v

    @model_validator(mode='after')
    def check_ledger_config(self) -> 'Config':
        """A web3 backend needs an endpoint and a deployed contract."""
        if self.LEDGER_BACKEND == 'web3':
            if not self.LEDGER_RPC_URL:
                raise ValueError('LEDGER_RPC_URL is required when LEDGER_BACKEND=web3')
            if not self.LEDGER_CONTRACT_ADDRESS or self.LEDGER_CONTRACT_ADDRESS.lower() == ZERO_ADDRESS:
                raise ValueError('LEDGER_CONTRACT_ADDRESS must point to a deployed contract')
        return self

    @model_validator(mode='after')
    def apply_environment_defaults(self) -> 'Config':
        if self.APP_ENV.lower() == 'production':
            if 'SESSION_COOKIE_SECURE' not in os.environ:
                self.SESSION_COOKIE_SECURE = True
        else:
            self.SESSION_COOKIE_SECURE = False
        return self

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        case_sensitive = False
        extra = 'ignore'
