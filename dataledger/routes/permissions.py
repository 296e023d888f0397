"""Off-chain permission management (proposals and manual approval)."""

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from dataledger.schemas import PermissionGrantRequest, PermissionActionRequest
from dataledger.services import get_store, get_consent_service
from dataledger.utils.audit_log import log_action

bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")


@bp.route("", methods=["GET"])
@login_required
def list_permissions():
    permissions = get_store().get_user_permissions(current_user.id)
    status = request.args.get('status')
    if status:
        permissions = [p for p in permissions if p.status == status]
    return jsonify([p.to_dict() for p in permissions])


@bp.route("/grant", methods=["POST"])
@login_required
def grant():
    data = PermissionGrantRequest.model_validate(request.get_json(silent=True) or {})
    permission = get_store().create_permission(
        current_user.id,
        company_name=data.company_name,
        company_address=data.company_address,
        company_logo=data.company_logo,
        access_types=data.access_types,
        monthly_payment=data.monthly_payment,
    )
    log_action('PERMISSION_PROPOSED', f'Permission proposed for {permission.company_name}',
               subject=permission)
    return jsonify(permission.to_dict()), 201


@bp.route("/approve", methods=["POST"])
@login_required
def approve():
    data = PermissionActionRequest.model_validate(request.get_json(silent=True) or {})
    permission = get_consent_service().approve_permission(current_user, data.permission_id)
    log_action('PERMISSION_APPROVED', 'Permission approved manually', subject=permission)
    return jsonify(permission.to_dict())


@bp.route("/revoke", methods=["POST"])
@login_required
def revoke():
    data = PermissionActionRequest.model_validate(request.get_json(silent=True) or {})
    permission = get_consent_service().revoke_permission(current_user, data.permission_id)
    log_action('PERMISSION_REVOKED', 'Permission revoked manually', subject=permission)
    return jsonify(permission.to_dict())
