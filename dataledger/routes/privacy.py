from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from dataledger.routes.main import privacy_score, DEFAULT_PRIVACY_SCORE
from dataledger.schemas import FootprintUpdateRequest
from dataledger.services import get_store
from dataledger.utils.audit_log import log_action

bp = Blueprint("privacy", __name__, url_prefix="/api/privacy")

# Shown to users who have not reported their footprint yet.
DEFAULT_FOOTPRINTS = [
    {'platform': 'google', 'percentage': 45},
    {'platform': 'facebook', 'percentage': 25},
    {'platform': 'instagram', 'percentage': 20},
    {'platform': 'other', 'percentage': 10},
]


@bp.route("", methods=["GET"])
@login_required
def get_footprint():
    footprints = get_store().get_user_privacy_footprint(current_user.id)
    if not footprints:
        return jsonify({'footprints': DEFAULT_FOOTPRINTS, 'privacyScore': DEFAULT_PRIVACY_SCORE})
    return jsonify({
        'footprints': [f.to_dict() for f in footprints],
        'privacyScore': privacy_score(footprints),
    })


@bp.route("", methods=["PUT"])
@login_required
def update_footprint():
    data = FootprintUpdateRequest.model_validate(request.get_json(silent=True) or {})
    footprints = get_store().update_privacy_footprint(
        current_user.id, [entry.model_dump() for entry in data.footprints])
    log_action('PRIVACY_FOOTPRINT_UPDATED', 'Privacy footprint replaced', subject=current_user,
               additional_info={'platforms': len(footprints)})
    return jsonify({
        'footprints': [f.to_dict() for f in footprints],
        'privacyScore': privacy_score(footprints),
    })
