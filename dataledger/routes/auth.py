from flask import Blueprint, request, jsonify
from flask_login import login_user, login_required, logout_user, current_user

from dataledger import db
from dataledger.schemas import RegisterRequest, LoginRequest
from dataledger.services import get_store
from dataledger.utils.audit_log import log_action
from dataledger.utils.password_handler import password_needs_rehash
from dataledger.utils.messages import (
    AUTH_INVALID_CREDENTIALS, AUTH_EMAIL_TAKEN, AUTH_USERNAME_TAKEN,
    AUTH_LOGOUT_SUCCESS, LEDGER_WALLET_TAKEN
)

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@bp.route("/register", methods=["POST"])
def register():
    data = RegisterRequest.model_validate(request.get_json(silent=True) or {})
    store = get_store()

    if store.get_user_by_email(data.email):
        return jsonify({'message': str(AUTH_EMAIL_TAKEN)}), 400
    if store.get_user_by_username(data.username):
        return jsonify({'message': str(AUTH_USERNAME_TAKEN)}), 400
    if data.wallet_address and store.get_user_by_wallet(data.wallet_address):
        return jsonify({'message': str(LEDGER_WALLET_TAKEN)}), 400

    user = store.create_user(data.username, data.email, data.password,
                             wallet_address=data.wallet_address)
    login_user(user)
    log_action('USER_CREATED', f'New user created: {user.username}', subject=user)
    return jsonify({'user': user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
def login():
    data = LoginRequest.model_validate(request.get_json(silent=True) or {})
    user = get_store().get_user_by_email(data.email)

    if user is None or not user.check_password(data.password):
        log_action('FAILED_LOGIN', 'Failed login attempt', additional_info={'email': data.email})
        return jsonify({'message': str(AUTH_INVALID_CREDENTIALS)}), 401

    if password_needs_rehash(user.password_hash):
        user.set_password(data.password)
        db.session.commit()

    login_user(user)
    return jsonify({'user': user.to_dict()})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({'message': str(AUTH_LOGOUT_SUCCESS)})


@bp.route("/me")
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
