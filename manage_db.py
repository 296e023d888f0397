#!/usr/bin/env python
"""
Database and reconciler maintenance script
Helps with initial setup, migrations and one-off reconciliation runs
"""
import os
import sys
from flask_migrate import upgrade
from dataledger import create_app, db

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')


def make_app():
    # One-off commands run the reconciler themselves
    return create_app(RECONCILER_AUTOSTART=False, ORPHAN_REPAIR_ENABLED=False)


def migration_revisions():
    """Return (current, head) alembic revisions. Needs an app context."""
    from alembic.config import Config
    from alembic.script import ScriptDirectory
    from alembic.runtime.migration import MigrationContext

    alembic_cfg = Config(os.path.join(MIGRATIONS_DIR, 'alembic.ini'))
    alembic_cfg.set_main_option('script_location', MIGRATIONS_DIR)
    script = ScriptDirectory.from_config(alembic_cfg)

    with db.engine.connect() as connection:
        current_rev = MigrationContext.configure(connection).get_current_revision()
    return current_rev, script.get_current_head()


def init_db():
    """Bring the schema to the latest migration"""
    app = make_app()

    print("=" * 60)
    print("Database Initialization")
    print("=" * 60)

    with app.app_context():
        print("\n1. Checking database connection...")
        try:
            with db.engine.connect():
                print("   ✓ Database connection successful")
        except Exception as e:
            print(f"   ✗ Database connection failed: {e}")
            return False

        print("\n2. Checking migration status...")
        current_rev, head_rev = migration_revisions()
        if current_rev == head_rev:
            print("   ✓ Database is up to date")
        else:
            print(f"   → Current revision: {current_rev or 'none'}")
            print(f"   → Head revision: {head_rev}")
            try:
                upgrade(directory=MIGRATIONS_DIR)
                print("   ✓ Database upgraded successfully")
            except Exception as e:
                print(f"   ✗ Migration failed: {e}")
                return False

    print("\n" + "=" * 60)
    return True


def show_status():
    """Show schema revision and reconciler progress"""
    app = make_app()

    print("=" * 60)
    print("Database Status")
    print("=" * 60)

    with app.app_context():
        from dataledger.models import OrphanEvent
        try:
            print(f"\nDatabase URL: {db.engine.url.render_as_string(hide_password=True)}")
            current_rev, head_rev = migration_revisions()
            print(f"Current Revision: {current_rev or 'None'}")
            print(f"Head Revision: {head_rev}")

            listener = app.extensions['event_listener']
            status = listener.status()
            print(f"\nLedger backend: {status['backend']} ({status['contractAddress']})")
            print(f"Reconciled up to block: {status['cursor']}")
            print(f"Ledger head: {app.extensions['ledger'].block_number()}")
            print(f"Open orphan events: {OrphanEvent.query.filter_by(status='open').count()}")
        except Exception as e:
            print(f"\n✗ Error: {e}")

    print("\n" + "=" * 60)


def reconcile():
    """Apply all ledger events after the stored cursor, then replay orphans"""
    app = make_app()
    with app.app_context():
        handled = app.extensions['event_listener'].process_pending()
        print(f"✓ Reconciled {handled} events")
        summary = app.extensions['reconciler'].retry_orphans()
        print(f"✓ Orphans: {summary['resolved']} resolved, {summary['open']} still open")


def make_operator(email):
    """Give an existing account access to the reconciler endpoints"""
    app = make_app()
    with app.app_context():
        from dataledger.models import ROLE_OPERATOR
        user = app.extensions['store'].get_user_by_email(email)
        if user is None:
            print(f"✗ No user with email {email}")
            return False
        user.role = ROLE_OPERATOR
        db.session.commit()
        print(f"✓ {user.username} is now an operator")
    return True


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Database management script')
    parser.add_argument('command', choices=['init', 'status', 'reconcile', 'operator'],
                        help='Command to execute')
    parser.add_argument('--email', help='Account email for the operator command')

    args = parser.parse_args()

    if args.command == 'init':
        if not init_db():
            sys.exit(1)
    elif args.command == 'status':
        show_status()
    elif args.command == 'reconcile':
        try:
            reconcile()
        except Exception as e:
            print(f"✗ Reconcile failed: {e}")
            sys.exit(1)
    elif args.command == 'operator':
        if not args.email:
            parser.error('operator requires --email')
        if not make_operator(args.email):
            sys.exit(1)
