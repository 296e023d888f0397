"""
Ledger event listener.

Owns the worker thread that feeds ledger events to the reconciler. The
cursor (last fully applied block) lives in the database, so a restart
resumes where the previous process stopped; events in a partially applied
block are redelivered and skipped by the reconciler's idempotency check.
A ledger whose head falls behind the stored cursor has been reset; the
cursor is rewound instead of waiting for the new chain to catch up.

The worker wakes as soon as the ledger client pushes a new block, and
otherwise every ``poll_interval`` seconds.
"""

import logging
import threading
from typing import Optional

from dataledger import db
from dataledger.ledger.client import LedgerClient
from dataledger.ledger.errors import LedgerError
from dataledger.models import ReconcilerCursor
from dataledger.services.reconciler import EventReconciler
from dataledger.utils.audit_log import log_action

logger = logging.getLogger(__name__)

MAX_BLOCK_RANGE = 2000


class LedgerEventListener:

    def __init__(self, app, ledger: LedgerClient, reconciler: EventReconciler,
                 poll_interval: float = 5.0, start_block: int = 0):
        self.app = app
        self.ledger = ledger
        self.reconciler = reconciler
        self.poll_interval = poll_interval
        self.start_block = int(start_block)
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._pass_lock = threading.Lock()
        self.last_error: Optional[str] = None

    # -- lifecycle ----------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._stop.clear()
        self.ledger.add_block_listener(self._on_new_block)
        self._thread = threading.Thread(target=self._run, name='ledger-event-listener', daemon=True)
        self._thread.start()
        logger.info('Ledger event listener started (contract %s)', self.ledger.contract_address)

    def stop(self, timeout: float = 10.0):
        if self._thread is None:
            return
        self._stop.set()
        self._wake.set()
        self.ledger.remove_block_listener(self._on_new_block)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning('Ledger event listener did not stop within %ss', timeout)
        else:
            logger.info('Ledger event listener stopped')
        self._thread = None

    def _on_new_block(self, block_number: int):
        self._wake.set()

    def _run(self):
        while not self._stop.is_set():
            self._wake.clear()
            with self.app.app_context():
                try:
                    self.process_pending()
                except LedgerError as e:
                    self.last_error = str(e)
                    logger.warning('Ledger event listener: ledger unavailable: %s', e)
                except Exception as e:
                    # the failed event stays unacknowledged and is retried next pass
                    self.last_error = str(e)
                    logger.exception('Ledger event listener: pass failed')
                finally:
                    db.session.remove()
            self._wake.wait(self.poll_interval)

    # -- one pass -------------------------------------------------------------

    def process_pending(self) -> int:
        """Apply every event after the cursor. Must run inside an app context.

        Returns the number of events handed to the reconciler. Stops at the
        first event that fails, leaving the cursor before that event's block.
        """
        with self._pass_lock:
            head = self.ledger.block_number()
            cursor = self.get_cursor()
            if head < cursor:
                cursor = self._reset_cursor(head, cursor)
            handled = 0
            while cursor < head:
                upper = min(head, cursor + MAX_BLOCK_RANGE)
                events = self.ledger.fetch_events(cursor + 1, upper)
                for event in events:
                    try:
                        self.reconciler.handle(event)
                    except Exception:
                        self._save_cursor(event.block_number - 1)
                        raise
                    handled += 1
                cursor = upper
                self._save_cursor(cursor)
            self.last_error = None
            return handled

    def get_cursor(self) -> int:
        row = ReconcilerCursor.query.filter_by(contract_address=self.ledger.contract_address).first()
        if row is None:
            return max(0, self.start_block - 1)
        return row.last_block

    def _save_cursor(self, block: int):
        row = ReconcilerCursor.query.filter_by(contract_address=self.ledger.contract_address).first()
        if row is None:
            row = ReconcilerCursor(contract_address=self.ledger.contract_address, last_block=0)
            db.session.add(row)
        # events are fetched strictly after the cursor, so it never moves back
        row.last_block = max(row.last_block, block)
        db.session.commit()

    def _reset_cursor(self, head: int, cursor: int) -> int:
        """Rewind after the ledger restarted below the stored cursor.

        The new chain's blocks are read again from the start; events already
        applied keep their ProcessedEvent rows and are skipped.
        """
        row = ReconcilerCursor.query.filter_by(contract_address=self.ledger.contract_address).first()
        if row is None:
            # configured start block not reached yet
            return cursor
        logger.error('Ledger event listener: ledger head %s is behind cursor %s for %s, '
                     'treating it as a chain reset and rereading from block %s',
                     head, cursor, self.ledger.contract_address, self.start_block)
        log_action('LEDGER_CHAIN_RESET', f'Ledger head {head} behind reconciler cursor {cursor}',
                   additional_info={'contract': self.ledger.contract_address})
        rewound = max(0, self.start_block - 1)
        row.last_block = rewound
        db.session.commit()
        return rewound

    def status(self) -> dict:
        return {
            'isListening': self.is_running,
            'backend': self.ledger.backend_name,
            'contractAddress': self.ledger.contract_address,
            'cursor': self.get_cursor(),
            'lastError': self.last_error,
        }
