import datetime

from flask import Blueprint, current_app, jsonify
from flask_login import login_required, current_user

from dataledger.services import get_store, get_event_listener

bp = Blueprint("main", __name__)

DEFAULT_PRIVACY_SCORE = 62


def privacy_score(footprints):
    if not footprints:
        return DEFAULT_PRIVACY_SCORE
    return max(0, 100 - sum(f.percentage for f in footprints))


@bp.route("/api/health")
def health():
    listener = get_event_listener()
    return jsonify({
        'status': 'ok',
        'ledgerBackend': current_app.config.get('LEDGER_BACKEND'),
        'reconcilerRunning': listener.is_running,
    })


@bp.route("/api/dashboard")
@login_required
def dashboard():
    store = get_store()
    minor_units = current_app.config['FIAT_MINOR_UNITS']

    permissions = store.get_user_permissions(current_user.id)
    earnings = store.get_user_earnings(current_user.id)
    footprints = store.get_user_privacy_footprint(current_user.id)

    week_ago = datetime.datetime.utcnow() - datetime.timedelta(days=7)
    recent = [p for p in permissions if p.created_at and p.created_at >= week_ago]

    return jsonify({
        'privacyScore': privacy_score(footprints),
        'monthlyEarnings': sum(e.amount for e in earnings) / minor_units,
        'activePermissions': sum(1 for p in permissions if p.status == 'active'),
        'pendingPermissions': sum(1 for p in permissions if p.status == 'pending'),
        'dataRequests': len(recent),
        'permissions': [p.to_dict() for p in permissions],
        'footprints': [f.to_dict() for f in footprints],
    })
