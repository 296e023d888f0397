"""
Consent ledger schema: users, permissions, earnings, privacy footprints and
the reconciler bookkeeping tables
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_consent_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('wallet_address', sa.String(length=42), nullable=True),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_user_username'), 'user', ['username'], unique=True)
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)
    op.create_index(op.f('ix_user_wallet_address'), 'user', ['wallet_address'], unique=True)

    op.create_table(
        'permission',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('company_name', sa.String(length=200), nullable=False),
        sa.Column('company_address', sa.String(length=42), nullable=True),
        sa.Column('company_logo', sa.String(length=500), nullable=True),
        sa.Column('access_types', sa.Text(), nullable=False),
        sa.Column('monthly_payment', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('license_id', sa.Integer(), nullable=True),
        sa.Column('blockchain_tx_hash', sa.String(length=66), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_permission_user_id'), 'permission', ['user_id'], unique=False)
    op.create_index(op.f('ix_permission_company_address'), 'permission', ['company_address'], unique=False)
    op.create_index(op.f('ix_permission_status'), 'permission', ['status'], unique=False)
    op.create_index(op.f('ix_permission_license_id'), 'permission', ['license_id'], unique=False)

    op.create_table(
        'earning',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permission.id'), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('blockchain_tx_hash', sa.String(length=66), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_earning_user_id'), 'earning', ['user_id'], unique=False)

    op.create_table(
        'privacy_footprint',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('platform', sa.String(length=100), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_privacy_footprint_user_id'), 'privacy_footprint', ['user_id'], unique=False)

    op.create_table(
        'processed_event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('event_name', sa.String(length=32), nullable=False),
        sa.Column('block_number', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tx_hash', 'log_index', name='uq_processed_event_log'),
    )

    op.create_table(
        'orphan_event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_name', sa.String(length=32), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.Integer(), nullable=True),
        sa.Column('user_address', sa.String(length=42), nullable=False),
        sa.Column('company_address', sa.String(length=42), nullable=False),
        sa.Column('value', sa.String(length=78), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tx_hash', 'log_index', name='uq_orphan_event_log'),
    )
    op.create_index(op.f('ix_orphan_event_user_address'), 'orphan_event', ['user_address'], unique=False)
    op.create_index(op.f('ix_orphan_event_status'), 'orphan_event', ['status'], unique=False)

    op.create_table(
        'reconciler_cursor',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contract_address', sa.String(length=42), nullable=False, unique=True),
        sa.Column('last_block', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade():
    op.drop_table('reconciler_cursor')
    op.drop_index(op.f('ix_orphan_event_status'), table_name='orphan_event')
    op.drop_index(op.f('ix_orphan_event_user_address'), table_name='orphan_event')
    op.drop_table('orphan_event')
    op.drop_table('processed_event')
    op.drop_index(op.f('ix_privacy_footprint_user_id'), table_name='privacy_footprint')
    op.drop_table('privacy_footprint')
    op.drop_index(op.f('ix_earning_user_id'), table_name='earning')
    op.drop_table('earning')
    op.drop_index(op.f('ix_permission_license_id'), table_name='permission')
    op.drop_index(op.f('ix_permission_status'), table_name='permission')
    op.drop_index(op.f('ix_permission_company_address'), table_name='permission')
    op.drop_index(op.f('ix_permission_user_id'), table_name='permission')
    op.drop_table('permission')
    op.drop_index(op.f('ix_user_wallet_address'), table_name='user')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_index(op.f('ix_user_username'), table_name='user')
    op.drop_table('user')
