"""JSON error responses for the API."""

import logging

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from dataledger import db
from dataledger.ledger.errors import LedgerRevertedError, LedgerSubmissionError
from dataledger.services.store import InvalidTransitionError, RecordNotFoundError
from dataledger.utils.messages import (
    ERROR_INTERNAL, ERROR_INVALID_INPUT, LEDGER_REVERTED, LEDGER_SUBMISSION_FAILED,
    PERMISSION_INVALID_TRANSITION
)

logger = logging.getLogger(__name__)


def validation_details(error: ValidationError):
    return [
        {'field': '.'.join(str(p) for p in e['loc']), 'message': e['msg']}
        for e in error.errors(include_url=False, include_context=False, include_input=False)
    ]


def register_error_handlers(app):

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({'message': str(ERROR_INVALID_INPUT), 'errors': validation_details(e)}), 400

    @app.errorhandler(LedgerRevertedError)
    def handle_reverted(e):
        return jsonify({
            'message': str(LEDGER_REVERTED) % {'reason': e.reason},
            'reason': e.reason,
            'txHash': e.tx_hash,
        }), 409

    @app.errorhandler(LedgerSubmissionError)
    def handle_submission(e):
        return jsonify({'message': str(LEDGER_SUBMISSION_FAILED), 'txHash': e.tx_hash}), 503

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(e):
        return jsonify({'message': str(e)}), 404

    @app.errorhandler(InvalidTransitionError)
    def handle_transition(e):
        return jsonify({'message': str(PERMISSION_INVALID_TRANSITION), 'detail': str(e)}), 409

    @app.errorhandler(HTTPException)
    def handle_http(e):
        return jsonify({'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception('Unhandled error')
        db.session.rollback()
        return jsonify({'message': str(ERROR_INTERNAL)}), 500
