import os
import pytest
from dataledger import create_app, db
from dataledger.ledger.memory import InMemoryLedgerClient
from dataledger.models import User

# Accounts of the default hardhat mnemonic, used as user and company wallets
ALICE_WALLET = '0x70997970C51812dc3A010C7d01b50e0d17dc79C8'
BOB_WALLET = '0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC'
COMPANY = '0x90F79bf6EB2c4f870365E785982E1f101E93b906'
OTHER_COMPANY = '0x15d34AAf54267DB7D7c367839AAf71A00a2C6A65'


class FakeClock:
    """Controllable ledger time, in seconds."""

    def __init__(self, start=1_700_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return InMemoryLedgerClient(clock=clock)


@pytest.fixture
def app(ledger, tmp_path):
    """Create and configure a test app."""
    # Ensure the app factory picks up the in-memory SQLite DB for tests
    os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
    os.environ.setdefault('SECRET_KEY', 'test-secret')
    os.environ['LEDGER_BACKEND'] = 'memory'
    app = create_app(
        ledger=ledger,
        TESTING=True,
        AUDIT_LOG_DIR=str(tmp_path / 'logs'),
        RECONCILER_AUTOSTART=False,
        ORPHAN_REPAIR_ENABLED=False,
        LEDGER_RETRY_BACKOFF=0,
    )
    app.extensions['reconciler'].retry_wait = 0

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def store(app):
    return app.extensions['store']


@pytest.fixture
def reconciler(app):
    return app.extensions['reconciler']


@pytest.fixture
def listener(app):
    return app.extensions['event_listener']


def make_user(username, email, wallet=None, password='password123', role='user'):
    user = User(username=username, email=email, wallet_address=wallet, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def alice(app):
    """A user with a linked wallet."""
    return make_user('alice', 'alice@test.com', ALICE_WALLET)


@pytest.fixture
def bob(app):
    return make_user('bob', 'bob@test.com', BOB_WALLET)


@pytest.fixture
def logged_in_client(client, alice):
    """Test client with an authenticated session for ``alice``."""
    response = client.post('/api/auth/login', json={
        'email': 'alice@test.com',
        'password': 'password123',
    })
    assert response.status_code == 200
    return client


@pytest.fixture
def operator_client(client):
    """Test client logged in as an operator account without a wallet."""
    make_user('ops', 'ops@test.com', role='operator')
    response = client.post('/api/auth/login', json={
        'email': 'ops@test.com',
        'password': 'password123',
    })
    assert response.status_code == 200
    return client
