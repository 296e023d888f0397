"""Ledger-backed consent endpoints.

Mutating routes sign for the ``walletAddress`` in the body, which must belong
to the logged-in user. Read routes take any address.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from web3 import Web3

from dataledger.ledger.units import format_native
from dataledger.schemas import (
    LedgerRegisterRequest, GrantAccessRequest, RevokeAccessRequest, PayUserRequest
)
from dataledger.services import get_consent_service, get_store
from dataledger.utils.decorators import wallet_owner_required
from dataledger.utils.messages import (
    LEDGER_REGISTERED, LEDGER_ACCESS_GRANTED, LEDGER_ACCESS_REVOKED, LEDGER_PAYMENT_SENT,
    LEDGER_INVALID_ADDRESS, LEDGER_WALLET_TAKEN
)

bp = Blueprint("blockchain", __name__, url_prefix="/api/blockchain")


def _checked(address, field):
    if not Web3.is_address(address):
        return None, (jsonify({'message': str(LEDGER_INVALID_ADDRESS) % {'field': field}}), 400)
    return Web3.to_checksum_address(address), None


@bp.route("/register", methods=["POST"])
@login_required
def register():
    data = LedgerRegisterRequest.model_validate(request.get_json(silent=True) or {})
    owner = get_store().get_user_by_wallet(data.wallet_address)
    if owner is not None and owner.id != current_user.id:
        return jsonify({'message': str(LEDGER_WALLET_TAKEN)}), 409

    tx_hash = get_consent_service().register_user(current_user, data.username, data.wallet_address)
    return jsonify({'message': str(LEDGER_REGISTERED), 'txHash': tx_hash})


@bp.route("/grant-access", methods=["POST"])
@login_required
@wallet_owner_required
def grant_access():
    data = GrantAccessRequest.model_validate(request.get_json(silent=True) or {})
    try:
        tx_hash = get_consent_service().grant_access(
            current_user,
            company_address=data.company_address,
            data_types=data.data_types,
            monthly_payment=data.monthly_payment,
            duration_months=data.duration_months,
            company_name=data.company_name,
        )
    except ValueError as e:
        return jsonify({'message': str(e)}), 400
    return jsonify({'message': str(LEDGER_ACCESS_GRANTED), 'txHash': tx_hash})


@bp.route("/revoke-access", methods=["POST"])
@login_required
@wallet_owner_required
def revoke_access():
    data = RevokeAccessRequest.model_validate(request.get_json(silent=True) or {})
    tx_hash = get_consent_service().revoke_access(current_user, data.company_address)
    return jsonify({'message': str(LEDGER_ACCESS_REVOKED), 'txHash': tx_hash})


@bp.route("/pay", methods=["POST"])
@login_required
def pay_user():
    data = PayUserRequest.model_validate(request.get_json(silent=True) or {})
    try:
        tx_hash = get_consent_service().pay_user(current_user, data.user_address, data.amount)
    except ValueError as e:
        return jsonify({'message': str(e)}), 400
    return jsonify({'message': str(LEDGER_PAYMENT_SENT), 'txHash': tx_hash})


@bp.route("/earnings/<wallet>")
@login_required
def earnings(wallet):
    wallet, error = _checked(wallet, 'wallet address')
    if error:
        return error
    return jsonify({'earnings': format_native(get_consent_service().get_earnings(wallet))})


@bp.route("/licenses/<wallet>")
@login_required
def licenses(wallet):
    wallet, error = _checked(wallet, 'wallet address')
    if error:
        return error
    return jsonify({'licenses': [d.to_dict() for d in get_consent_service().get_licenses(wallet)]})


@bp.route("/access-status/<wallet>/<company>")
@login_required
def access_status(wallet, company):
    wallet, error = _checked(wallet, 'wallet address')
    if error:
        return error
    company, error = _checked(company, 'company address')
    if error:
        return error
    return jsonify({'isActive': get_consent_service().is_access_active(wallet, company)})
