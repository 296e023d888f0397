import atexit
import logging

from flask import Flask, jsonify, request
from config import Config
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_babel import Babel

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
babel = Babel()

logger = logging.getLogger(__name__)


def create_app(config_class=Config, ledger=None, **overrides):
    """Application factory.

    ``ledger`` injects a ready LedgerClient (tests use an in-memory ledger
    with a controlled clock); otherwise one is built from LEDGER_BACKEND.
    ``overrides`` are applied on top of the loaded settings before any
    component is created.
    """
    app = Flask(__name__)
    app.config.from_object(config_class())
    app.config.update(overrides)

    from dataledger.utils.logging_setup import configure_logging
    from dataledger.utils.audit_log import init_audit_log
    configure_logging(app)
    init_audit_log(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    def get_locale():
        return request.accept_languages.best_match(app.config["LANGUAGES"]) \
            or app.config["BABEL_DEFAULT_LOCALE"]

    babel.init_app(app, locale_selector=get_locale)

    from dataledger import models  # noqa: F401

    _init_ledger_components(app, ledger)

    from dataledger.routes import register_blueprints
    from dataledger.routes.errors import register_error_handlers
    register_blueprints(app)
    register_error_handlers(app)

    if not app.config.get('TESTING'):
        _start_background_services(app)

    return app


def _init_ledger_components(app, ledger=None):
    """Build the ledger client, store, reconciler and listener for this app."""
    from decimal import Decimal
    from dataledger.ledger import build_ledger_client
    from dataledger.services.store import ApplicationStore
    from dataledger.services.reconciler import EventReconciler
    from dataledger.services.listener import LedgerEventListener
    from dataledger.services.consent_service import ConsentService

    ledger = ledger or build_ledger_client(app.config)
    store = ApplicationStore()
    reconciler = EventReconciler(
        store, ledger,
        native_to_fiat_rate=Decimal(str(app.config['NATIVE_TO_FIAT_RATE'])),
        fiat_minor_units=app.config['FIAT_MINOR_UNITS'],
        store_retries=app.config['RECONCILER_STORE_RETRIES'],
    )
    listener = LedgerEventListener(
        app, ledger, reconciler,
        poll_interval=app.config['RECONCILER_POLL_INTERVAL'],
        start_block=app.config['LEDGER_START_BLOCK'],
    )
    app.extensions['ledger'] = ledger
    app.extensions['store'] = store
    app.extensions['reconciler'] = reconciler
    app.extensions['event_listener'] = listener
    app.extensions['consent_service'] = ConsentService.from_config(app.config, ledger, store)


def _start_background_services(app):
    from dataledger.utils.scheduler import init_scheduler, shutdown_scheduler

    listener = app.extensions['event_listener']
    if app.config.get('RECONCILER_AUTOSTART'):
        listener.start()
        atexit.register(listener.stop)
    if app.config.get('ORPHAN_REPAIR_ENABLED'):
        init_scheduler(app)
        atexit.register(shutdown_scheduler)


@login_manager.user_loader
def load_user(user_id):
    from dataledger.models import User
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    from dataledger.utils.messages import ERROR_LOGIN_REQUIRED
    return jsonify({'message': str(ERROR_LOGIN_REQUIRED)}), 401
