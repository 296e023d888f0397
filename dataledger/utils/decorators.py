from functools import wraps
from flask import jsonify, request
from flask_login import current_user
from web3 import Web3

from dataledger.utils.messages import LEDGER_WALLET_NOT_OWNED, ERROR_LOGIN_REQUIRED, ERROR_PRIVILEGES


def role_required(*roles):
    """Decorator to require specific user roles for a route."""
    def wrapper(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'message': str(ERROR_LOGIN_REQUIRED)}), 401
            if current_user.role not in roles:
                return jsonify({'message': str(ERROR_PRIVILEGES)}), 403
            return f(*args, **kwargs)
        return decorated_function
    return wrapper


def owns_wallet(user, wallet_address) -> bool:
    if not user or not getattr(user, 'wallet_address', None) or not wallet_address:
        return False
    if not Web3.is_address(wallet_address):
        return False
    return Web3.to_checksum_address(wallet_address) == Web3.to_checksum_address(user.wallet_address)


def wallet_owner_required(f):
    """Reject ledger calls that would sign for a wallet the logged-in user does not own.

    The wallet comes from the ``walletAddress`` field of the JSON body.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'message': str(ERROR_LOGIN_REQUIRED)}), 401
        payload = request.get_json(silent=True) or {}
        wallet = payload.get('walletAddress')
        # malformed addresses are left to payload validation
        if wallet and Web3.is_address(wallet) and not owns_wallet(current_user, wallet):
            return jsonify({'message': str(LEDGER_WALLET_NOT_OWNED)}), 403
        return f(*args, **kwargs)
    return decorated_function
