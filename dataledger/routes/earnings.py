from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
from pydantic import ValidationError

from dataledger.schemas import EarningsCalcRequest
from dataledger.services import get_store
from dataledger.utils.messages import EARNINGS_CALC_INVALID

bp = Blueprint("earnings", __name__, url_prefix="/api/earnings")

# Estimated fiat major units per platform per month of daily use.
PLATFORM_BASE_RATES = {
    'google': 50,
    'facebook': 40,
    'instagram': 35,
    'twitter': 30,
    'linkedin': 45,
    'youtube': 55,
}
DEFAULT_BASE_RATE = 25


def estimate_earnings(platforms, hours: float) -> int:
    total = 0.0
    for platform in platforms:
        rate = PLATFORM_BASE_RATES.get(platform.strip().lower(), DEFAULT_BASE_RATE)
        total += rate * hours * 30 / 24
    return round(total)


@bp.route("", methods=["GET"])
@login_required
def list_earnings():
    minor_units = current_app.config['FIAT_MINOR_UNITS']
    earnings = get_store().get_user_earnings(current_user.id)

    total = sum(e.amount for e in earnings)
    available = sum(e.amount for e in earnings if e.status == 'completed')
    pending = sum(e.amount for e in earnings if e.status == 'pending')

    return jsonify({
        'totalEarnings': total / minor_units,
        'availableBalance': available / minor_units,
        'pendingPayments': pending / minor_units,
        'currency': current_app.config['FIAT_CURRENCY'],
        'transactions': [e.to_dict(minor_units) for e in earnings],
    })


@bp.route("/calc", methods=["POST"])
@login_required
def calculate():
    try:
        data = EarningsCalcRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError:
        return jsonify({'message': str(EARNINGS_CALC_INVALID)}), 400
    return jsonify({
        'estimatedEarnings': estimate_earnings(data.platforms, data.hours),
        'currency': current_app.config['FIAT_CURRENCY'],
    })
