"""Tests for permission, earnings, privacy and dashboard routes."""
import datetime
from decimal import Decimal

from dataledger import db
from dataledger.models import Permission

from conftest import ALICE_WALLET, COMPANY, make_user


class TestPermissions:
    def grant(self, client, **overrides):
        payload = {
            'companyName': 'Acme Analytics',
            'companyLogo': 'https://acme.test/logo.png',
            'companyAddress': COMPANY.lower(),
            'accessTypes': 'location, browsing',
            'monthlyPayment': 2500,
        }
        payload.update(overrides)
        return client.post('/api/permissions/grant', json=payload)

    def test_grant_creates_pending(self, logged_in_client):
        response = self.grant(logged_in_client)
        assert response.status_code == 201
        assert response.json['status'] == 'pending'
        assert response.json['accessTypes'] == ['location', 'browsing']
        assert response.json['companyAddress'] == COMPANY

    def test_grant_requires_access_types(self, logged_in_client):
        response = self.grant(logged_in_client, accessTypes=[])
        assert response.status_code == 400

    def test_approve_then_revoke(self, logged_in_client):
        permission_id = self.grant(logged_in_client).json['id']

        approved = logged_in_client.post('/api/permissions/approve', json={'permissionId': permission_id})
        assert approved.status_code == 200
        assert approved.json['status'] == 'active'

        revoked = logged_in_client.post('/api/permissions/revoke', json={'permissionId': permission_id})
        assert revoked.json['status'] == 'revoked'

        again = logged_in_client.post('/api/permissions/approve', json={'permissionId': permission_id})
        assert again.status_code == 409

    def test_ledger_grant_links_manually_approved_permission(self, logged_in_client, ledger, listener):
        permission_id = self.grant(logged_in_client).json['id']
        logged_in_client.post('/api/permissions/approve', json={'permissionId': permission_id})

        ledger.grant_access(ALICE_WALLET, COMPANY, 'location,browsing', Decimal('0.25'), 1)
        listener.process_pending()

        active = logged_in_client.get('/api/permissions?status=active').json
        assert [(p['id'], p['licenseId']) for p in active] == [(permission_id, 1)]

    def test_cannot_touch_other_users_permission(self, logged_in_client, store):
        other = make_user('dave', 'dave@test.com')
        permission = store.create_permission(other.id, 'Acme', ['a'], 1)
        response = logged_in_client.post('/api/permissions/approve', json={'permissionId': permission.id})
        assert response.status_code == 404

    def test_list_with_status_filter(self, logged_in_client):
        first = self.grant(logged_in_client).json['id']
        self.grant(logged_in_client)
        logged_in_client.post('/api/permissions/approve', json={'permissionId': first})

        assert len(logged_in_client.get('/api/permissions').json) == 2
        active = logged_in_client.get('/api/permissions?status=active').json
        assert [p['id'] for p in active] == [first]


class TestEarnings:
    def test_totals_in_major_units(self, logged_in_client, store, alice):
        store.create_earning(alice.id, 1250, status='completed')
        store.create_earning(alice.id, 500)

        response = logged_in_client.get('/api/earnings')
        assert response.status_code == 200
        assert response.json['totalEarnings'] == 17.5
        assert response.json['availableBalance'] == 12.5
        assert response.json['pendingPayments'] == 5
        assert len(response.json['transactions']) == 2

    def test_calc(self, logged_in_client):
        response = logged_in_client.post('/api/earnings/calc', json={
            'platforms': ['google', 'Unknown'], 'hours': 2})
        assert response.status_code == 200
        # (50 + 25) * 2 * 30 / 24
        assert response.json['estimatedEarnings'] == 188

    def test_calc_requires_platforms_and_hours(self, logged_in_client):
        response = logged_in_client.post('/api/earnings/calc', json={'platforms': []})
        assert response.status_code == 400


class TestPrivacy:
    def test_defaults_when_empty(self, logged_in_client):
        response = logged_in_client.get('/api/privacy')
        assert response.json['privacyScore'] == 62
        assert [f['platform'] for f in response.json['footprints']] == \
            ['google', 'facebook', 'instagram', 'other']

    def test_put_replaces_and_scores(self, logged_in_client):
        response = logged_in_client.put('/api/privacy', json={'footprints': [
            {'platform': 'google', 'percentage': 30},
            {'platform': 'facebook', 'percentage': 25},
        ]})
        assert response.status_code == 200
        assert response.json['privacyScore'] == 45

        response = logged_in_client.put('/api/privacy', json={'footprints': [
            {'platform': 'google', 'percentage': 80},
            {'platform': 'tiktok', 'percentage': 70},
        ]})
        assert response.json['privacyScore'] == 0
        assert len(logged_in_client.get('/api/privacy').json['footprints']) == 2

    def test_put_rejects_out_of_range(self, logged_in_client):
        response = logged_in_client.put('/api/privacy', json={'footprints': [
            {'platform': 'google', 'percentage': 130}]})
        assert response.status_code == 400


def test_dashboard(logged_in_client, store, alice):
    active = store.create_permission(alice.id, 'Acme', ['a'], 100)
    store.update_permission_status(active.id, 'active')
    old = store.create_permission(alice.id, 'Old Co', ['a'], 100)
    old.created_at = datetime.datetime.utcnow() - datetime.timedelta(days=30)
    db.session.commit()
    store.create_earning(alice.id, 300, status='completed')

    response = logged_in_client.get('/api/dashboard')
    assert response.status_code == 200
    data = response.json
    assert data['privacyScore'] == 62
    assert data['monthlyEarnings'] == 3
    assert data['activePermissions'] == 1
    assert data['pendingPermissions'] == 1
    assert data['dataRequests'] == 1
    assert len(data['permissions']) == Permission.query.count()
