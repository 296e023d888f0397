"""Reconciler monitoring and orphan repair, for operators only."""

from flask import Blueprint, jsonify, request

from dataledger.models import OrphanEvent, ROLE_OPERATOR
from dataledger.services import get_event_listener, get_reconciler
from dataledger.utils.decorators import role_required

bp = Blueprint("reconciler", __name__, url_prefix="/api/reconciler")


@bp.route("/status")
@role_required(ROLE_OPERATOR)
def status():
    info = get_event_listener().status()
    info['openOrphans'] = OrphanEvent.query.filter_by(status='open').count()
    return jsonify(info)


@bp.route("/orphans")
@role_required(ROLE_OPERATOR)
def orphans():
    state = request.args.get('status', 'open')
    query = OrphanEvent.query
    if state != 'all':
        query = query.filter_by(status=state)
    return jsonify([o.to_dict() for o in query.order_by(OrphanEvent.id).all()])


@bp.route("/orphans/retry", methods=["POST"])
@role_required(ROLE_OPERATOR)
def retry_orphans():
    limit = request.args.get('limit', 100, type=int)
    return jsonify(get_reconciler().retry_orphans(limit=limit))
