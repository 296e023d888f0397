"""End-to-end tests for the ledger routes against the in-memory ledger."""
from dataledger.models import Earning, OrphanEvent, Permission
from dataledger.ledger.state_machine import MONTH_SECONDS

from conftest import ALICE_WALLET, BOB_WALLET, COMPANY, make_user


def grant(client, **overrides):
    payload = {
        'companyAddress': COMPANY,
        'companyName': 'Acme Analytics',
        'dataTypes': ['location', 'browsing'],
        'monthlyPayment': '0.1',
        'durationMonths': 12,
        'walletAddress': ALICE_WALLET,
    }
    payload.update(overrides)
    return client.post('/api/blockchain/grant-access', json=payload)


class TestGrantAccess:
    def test_grant_confirmed_by_reconciler(self, logged_in_client, listener):
        response = grant(logged_in_client)
        assert response.status_code == 200
        tx_hash = response.json['txHash']

        permission = Permission.query.one()
        assert permission.status == 'pending'
        assert permission.blockchain_tx_hash == tx_hash
        assert permission.company_name == 'Acme Analytics'
        assert permission.monthly_payment == 10

        listener.process_pending()
        assert permission.status == 'active'
        assert permission.license_id == 1
        assert Permission.query.count() == 1

        status = logged_in_client.get(f'/api/blockchain/access-status/{ALICE_WALLET}/{COMPANY}')
        assert status.json == {'isActive': True}

        licenses = logged_in_client.get(f'/api/blockchain/licenses/{ALICE_WALLET}').json['licenses']
        assert len(licenses) == 1
        assert licenses[0]['monthlyPayment'] == '0.1'
        assert licenses[0]['dataTypes'] == 'location,browsing'
        assert licenses[0]['isActive'] is True

    def test_access_expires(self, logged_in_client, clock):
        grant(logged_in_client, durationMonths=1)
        clock.advance(MONTH_SECONDS + 1)
        status = logged_in_client.get(f'/api/blockchain/access-status/{ALICE_WALLET}/{COMPANY}')
        assert status.json == {'isActive': False}

    def test_wallet_must_belong_to_user(self, logged_in_client):
        response = grant(logged_in_client, walletAddress=BOB_WALLET)
        assert response.status_code == 403
        assert Permission.query.count() == 0

    def test_self_grant_rejected_and_pending_row_discarded(self, logged_in_client):
        response = grant(logged_in_client, companyAddress=ALICE_WALLET)
        assert response.status_code == 409
        assert response.json['reason'] == 'Cannot grant access to yourself'
        assert Permission.query.count() == 0

    def test_transient_outage_is_retried(self, logged_in_client, ledger):
        ledger.simulate_outage(calls=2)
        response = grant(logged_in_client)
        assert response.status_code == 200
        assert ledger.block_number() == 1

    def test_persistent_outage_returns_503(self, logged_in_client, ledger):
        ledger.simulate_outage(calls=10)
        response = grant(logged_in_client)
        assert response.status_code == 503
        assert response.json['txHash'] is None
        assert Permission.query.count() == 0
        assert ledger.block_number() == 0

    def test_invalid_payloads(self, logged_in_client):
        assert grant(logged_in_client, companyAddress='0x123').status_code == 400
        assert grant(logged_in_client, monthlyPayment='0').status_code == 400
        assert grant(logged_in_client, durationMonths=0).status_code == 400
        assert grant(logged_in_client, dataTypes=[]).status_code == 400
        assert grant(logged_in_client, monthlyPayment='0.0000000000000000001').status_code == 400
        assert Permission.query.count() == 0


class TestRevokeAccess:
    def test_grant_then_revoke(self, logged_in_client, listener):
        grant(logged_in_client)
        response = logged_in_client.post('/api/blockchain/revoke-access', json={
            'companyAddress': COMPANY, 'walletAddress': ALICE_WALLET})
        assert response.status_code == 200
        assert response.json['txHash']

        listener.process_pending()
        assert Permission.query.one().status == 'revoked'
        status = logged_in_client.get(f'/api/blockchain/access-status/{ALICE_WALLET}/{COMPANY}')
        assert status.json == {'isActive': False}

    def test_revoke_without_access(self, logged_in_client):
        response = logged_in_client.post('/api/blockchain/revoke-access', json={
            'companyAddress': COMPANY, 'walletAddress': ALICE_WALLET})
        assert response.status_code == 409
        assert response.json['reason'] == 'No active access to revoke'


class TestPayments:
    def test_company_pays_user(self, client, app, alice, listener):
        company = make_user('acme', 'acme@test.com', COMPANY)
        client.post('/api/auth/login', json={'email': 'acme@test.com', 'password': 'password123'})

        response = client.post('/api/blockchain/pay', json={'userAddress': ALICE_WALLET, 'amount': '2.5'})
        assert response.status_code == 200

        earnings = client.get(f'/api/blockchain/earnings/{ALICE_WALLET}')
        assert earnings.json == {'earnings': '2.5'}

        listener.process_pending()
        earning = Earning.query.one()
        assert earning.user_id == alice.id
        assert earning.amount == 250
        assert earning.status == 'completed'
        assert company.id != alice.id

    def test_invalid_amount(self, logged_in_client):
        response = logged_in_client.post('/api/blockchain/pay', json={'userAddress': BOB_WALLET, 'amount': '-1'})
        assert response.status_code == 400

    def test_earnings_start_at_zero(self, logged_in_client):
        response = logged_in_client.get(f'/api/blockchain/earnings/{BOB_WALLET}')
        assert response.json == {'earnings': '0'}

    def test_invalid_wallet_in_path(self, logged_in_client):
        response = logged_in_client.get('/api/blockchain/earnings/not-a-wallet')
        assert response.status_code == 400


class TestRegister:
    def test_register_links_wallet(self, client, app, ledger):
        make_user('erin', 'erin@test.com')
        client.post('/api/auth/login', json={'email': 'erin@test.com', 'password': 'password123'})

        response = client.post('/api/blockchain/register', json={
            'username': 'erin', 'walletAddress': BOB_WALLET.lower()})
        assert response.status_code == 200
        assert client.get('/api/auth/me').json['user']['walletAddress'] == BOB_WALLET
        assert ledger.ledger.get_username(BOB_WALLET) == 'erin'

    def test_wallet_of_other_user_rejected(self, logged_in_client, bob):
        response = logged_in_client.post('/api/blockchain/register', json={
            'username': 'alice', 'walletAddress': BOB_WALLET})
        assert response.status_code == 409


class TestReconcilerRoutes:
    def test_status(self, operator_client):
        response = operator_client.get('/api/reconciler/status')
        assert response.status_code == 200
        assert response.json['backend'] == 'memory'
        assert response.json['openOrphans'] == 0

    def test_regular_users_are_forbidden(self, logged_in_client):
        for method, url in (('get', '/api/reconciler/status'),
                            ('get', '/api/reconciler/orphans'),
                            ('post', '/api/reconciler/orphans/retry')):
            response = getattr(logged_in_client, method)(url)
            assert response.status_code == 403
            assert 'message' in response.json

    def test_orphans_listed_and_retried(self, operator_client, ledger, listener):
        ledger.pay_user('0x9965507D1a55bcC2695C58ba16FB37d819B0A4dc', 1, sender=COMPANY)
        listener.process_pending()

        orphans = operator_client.get('/api/reconciler/orphans').json
        assert len(orphans) == 1
        assert OrphanEvent.query.one().status == 'open'

        make_user('frank', 'frank@test.com', '0x9965507D1a55bcC2695C58ba16FB37d819B0A4dc')
        response = operator_client.post('/api/reconciler/orphans/retry')
        assert response.json == {'resolved': 1, 'open': 0}
        assert operator_client.get('/api/reconciler/orphans').json == []
        assert len(operator_client.get('/api/reconciler/orphans?status=all').json) == 1
