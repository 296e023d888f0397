"""
Account password hashing.

New hashes are Argon2id. Accounts created by earlier releases
carry werkzeug PBKDF2 hashes, which still verify and are flagged for rehash.
"""

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, InvalidHash, VerificationError
from werkzeug.security import check_password_hash as check_pbkdf2
import logging

logger = logging.getLogger(__name__)

ph = PasswordHasher(
    memory_cost=512,  # KiB
    time_cost=2,
    parallelism=2,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against an Argon2 or legacy PBKDF2 hash."""
    if not password or not password_hash:
        return False

    if password_hash.startswith('$argon2'):
        try:
            return ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHash):
            return False

    if password_hash.startswith(('pbkdf2:', 'scrypt:')):
        if check_pbkdf2(password_hash, password):
            logger.warning("Account still uses a legacy password hash")
            return True
    return False


def password_needs_rehash(password_hash: str) -> bool:
    if not password_hash.startswith('$argon2'):
        return True
    try:
        return ph.check_needs_rehash(password_hash)
    except InvalidHash:
        return True
