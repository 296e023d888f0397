"""
Consent ledger services.

Components are created once per app in ``create_app`` and live in
``app.extensions``; these accessors fetch them for the current app.
"""

from flask import current_app

from dataledger.services.store import ApplicationStore, RecordNotFoundError, InvalidTransitionError
from dataledger.services.reconciler import EventReconciler
from dataledger.services.listener import LedgerEventListener
from dataledger.services.consent_service import ConsentService


def get_store() -> ApplicationStore:
    return current_app.extensions['store']


def get_consent_service() -> ConsentService:
    return current_app.extensions['consent_service']


def get_reconciler() -> EventReconciler:
    return current_app.extensions['reconciler']


def get_event_listener() -> LedgerEventListener:
    return current_app.extensions['event_listener']


__all__ = [
    'ApplicationStore',
    'RecordNotFoundError',
    'InvalidTransitionError',
    'EventReconciler',
    'LedgerEventListener',
    'ConsentService',
    'get_store',
    'get_consent_service',
    'get_reconciler',
    'get_event_listener',
]
