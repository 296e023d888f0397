"""
Audit trail for ledger actions and reconciliation outcomes.

Records are JSON lines written through a dedicated ``dataledger.audit``
logger into ``AUDIT_LOG_DIR/audit.log``, rotated daily.
"""

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from flask import request, has_request_context
from flask_login import current_user
from pythonjsonlogger import jsonlogger
from datetime import datetime

audit_logger = logging.getLogger('dataledger.audit')
audit_logger.propagate = False

SENSITIVE_KEYS = ('password', 'token', 'secret', 'private_key', 'privatekey')


def init_audit_log(app):
    """Attach the rotating JSON file handler once per log directory."""
    log_dir = app.config.get('AUDIT_LOG_DIR')
    if not log_dir:
        return
    os.makedirs(log_dir, exist_ok=True)
    filename = os.path.join(log_dir, 'audit.log')

    for handler in list(audit_logger.handlers):
        if getattr(handler, 'baseFilename', None) == os.path.abspath(filename):
            return
        audit_logger.removeHandler(handler)
        handler.close()

    handler = TimedRotatingFileHandler(filename, when='midnight', backupCount=30,
                                       encoding='utf-8', utc=True)
    handler.setFormatter(jsonlogger.JsonFormatter('%(message)s'))
    audit_logger.addHandler(handler)
    audit_logger.setLevel(logging.INFO)


def _mask(details: dict) -> dict:
    return {k: ('***' if k.lower() in SENSITIVE_KEYS else v) for k, v in details.items()}


def _build_log_record(action: str, subject=None, additional_info: dict = None) -> dict:
    record = {
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'action': action,
        'actor': None,
        'subject_type': None,
        'subject_id': None,
        'ip': None,
        'details': None,
    }

    if has_request_context():
        record['ip'] = request.remote_addr
        if getattr(current_user, 'is_authenticated', False):
            record['actor'] = {'id': current_user.id, 'username': current_user.username}

    if subject is not None:
        record['subject_type'] = subject.__class__.__name__
        record['subject_id'] = getattr(subject, 'id', None)

    if additional_info:
        record['details'] = _mask(additional_info)

    return record


def log_action(action: str, description: str, subject=None, additional_info: dict = None):
    """Write one audit record.

    Example: log_action('LEDGER_GRANT_SUBMITTED', 'Grant sent', subject=permission,
                        additional_info={'tx_hash': tx_hash})
    """
    record = _build_log_record(action, subject=subject, additional_info=additional_info)
    try:
        audit_logger.info(description, extra=record)
    except Exception:
        # audit output must never break a request or the reconciler
        logging.getLogger(__name__).exception('Failed to write audit record %s', action)
