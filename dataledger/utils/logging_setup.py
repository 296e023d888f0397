"""Root logging configuration: JSON lines in production, plain text otherwise."""

import logging
import sys

from pythonjsonlogger import jsonlogger

PLAIN_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'
JSON_FORMAT = '%(asctime)s %(levelname)s %(name)s %(threadName)s %(message)s'

_HANDLER_NAME = 'dataledger-console'


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root = logging.getLogger()

    # create_app may run several times per process (tests); install once
    handler = next((h for h in root.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        root.addHandler(handler)

    if app.config.get('LOG_JSON'):
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    root.setLevel(level)
    # web3 logs every RPC request at DEBUG
    logging.getLogger('web3').setLevel(max(level, logging.INFO))
    logging.getLogger('urllib3').setLevel(logging.WARNING)
