"""Tests for the in-process DataLicense state machine."""
import pytest

from dataledger.ledger.errors import LedgerRevertedError
from dataledger.ledger.state_machine import (
    LicenseLedger, MONTH_SECONDS, REVERT_NO_ACTIVE_ACCESS, REVERT_SELF_GRANT,
    REVERT_INVALID_COMPANY, REVERT_INVALID_DURATION, REVERT_INVALID_PAYMENT,
    REVERT_AMOUNT_MISMATCH, REVERT_INVALID_AMOUNT, REVERT_UNKNOWN_LICENSE, ZERO_ADDRESS
)
from dataledger.ledger.types import ACCESS_GRANTED, ACCESS_REVOKED, PAYMENT_MADE

from conftest import ALICE_WALLET, BOB_WALLET, COMPANY, OTHER_COMPANY, FakeClock

ONE_ETH = 10 ** 18


@pytest.fixture
def sm(clock):
    return LicenseLedger(clock=clock)


class TestGrantAccess:
    def test_grant_creates_active_license(self, sm, clock):
        license_id, tx_hash = sm.grant_access(ALICE_WALLET, COMPANY, 'location,browsing', ONE_ETH, 6)
        assert license_id == 1
        assert tx_hash.startswith('0x') and len(tx_hash) == 66

        record = sm.get_license_details(license_id)
        assert record.user == ALICE_WALLET
        assert record.company == COMPANY
        assert record.data_types == 'location,browsing'
        assert record.monthly_payment == ONE_ETH
        assert record.is_active
        assert record.end_time == record.start_time + 6 * MONTH_SECONDS
        assert record.start_time == clock.now
        assert sm.is_access_active(ALICE_WALLET, COMPANY)

    def test_license_ids_are_sequential(self, sm):
        first, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        second, _ = sm.grant_access(BOB_WALLET, COMPANY, 'a', 1, 1)
        third, _ = sm.grant_access(ALICE_WALLET, OTHER_COMPANY, 'a', 1, 1)
        assert (first, second, third) == (1, 2, 3)
        assert sm.get_user_licenses(ALICE_WALLET) == [1, 3]
        assert sm.get_user_licenses(BOB_WALLET) == [2]

    def test_grant_emits_event(self, sm):
        license_id, tx_hash = sm.grant_access(ALICE_WALLET, COMPANY, 'a', 5, 1)
        events = sm.events()
        assert len(events) == 1
        event = events[0]
        assert event.name == ACCESS_GRANTED
        assert event.user == ALICE_WALLET
        assert event.company == COMPANY
        assert event.license_id == license_id
        assert event.tx_hash == tx_hash
        assert event.log_index == 0
        assert event.block_number == sm.block_number

    @pytest.mark.parametrize('company,payment,months,reason', [
        (ZERO_ADDRESS, 1, 1, REVERT_INVALID_COMPANY),
        ('not-an-address', 1, 1, REVERT_INVALID_COMPANY),
        (ALICE_WALLET, 1, 1, REVERT_SELF_GRANT),
        (COMPANY, 1, 0, REVERT_INVALID_DURATION),
        (COMPANY, 0, 1, REVERT_INVALID_PAYMENT),
    ])
    def test_invalid_grant_reverts_without_side_effects(self, sm, company, payment, months, reason):
        with pytest.raises(LedgerRevertedError) as exc:
            sm.grant_access(ALICE_WALLET, company, 'a', payment, months)
        assert exc.value.reason == reason
        assert sm.get_user_licenses(ALICE_WALLET) == []
        assert sm.events() == []
        assert sm.block_number == 0

    def test_self_grant_is_case_insensitive(self, sm):
        with pytest.raises(LedgerRevertedError) as exc:
            sm.grant_access(ALICE_WALLET, ALICE_WALLET.lower(), 'a', 1, 1)
        assert exc.value.reason == REVERT_SELF_GRANT


class TestRevokeAccess:
    def test_grant_then_revoke(self, sm):
        license_id, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a', ONE_ETH, 3)
        revoked_id, tx_hash = sm.revoke_access(ALICE_WALLET, COMPANY)

        assert revoked_id == license_id
        assert not sm.is_access_active(ALICE_WALLET, COMPANY)
        assert not sm.get_license_details(license_id).is_active
        last = sm.events()[-1]
        assert last.name == ACCESS_REVOKED
        assert last.license_id == license_id
        assert last.tx_hash == tx_hash

    def test_revoke_without_grant_reverts(self, sm):
        with pytest.raises(LedgerRevertedError) as exc:
            sm.revoke_access(ALICE_WALLET, COMPANY)
        assert exc.value.reason == REVERT_NO_ACTIVE_ACCESS

    def test_double_revoke_reverts(self, sm):
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        sm.revoke_access(ALICE_WALLET, COMPANY)
        before = len(sm.events())
        with pytest.raises(LedgerRevertedError):
            sm.revoke_access(ALICE_WALLET, COMPANY)
        assert len(sm.events()) == before

    def test_only_owner_can_revoke(self, sm):
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        with pytest.raises(LedgerRevertedError):
            sm.revoke_access(BOB_WALLET, COMPANY)
        assert sm.is_access_active(ALICE_WALLET, COMPANY)

    def test_revoke_after_expiry_is_allowed(self, sm, clock):
        license_id, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        clock.advance(MONTH_SECONDS + 1)
        assert not sm.is_access_active(ALICE_WALLET, COMPANY)
        revoked_id, _ = sm.revoke_access(ALICE_WALLET, COMPANY)
        assert revoked_id == license_id


class TestRegrant:
    def test_regrant_allocates_new_license_and_keeps_old(self, sm):
        first, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        second, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a,b', 2, 2)

        assert second == first + 1
        assert sm.get_user_licenses(ALICE_WALLET) == [first, second]
        # both records stay Active; only the latest one is current
        assert sm.get_license_details(first).is_active
        assert sm.get_license_details(second).is_active
        assert sm.is_access_active(ALICE_WALLET, COMPANY)

    def test_revoke_targets_latest_license(self, sm):
        first, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        second, _ = sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        revoked_id, _ = sm.revoke_access(ALICE_WALLET, COMPANY)

        assert revoked_id == second
        assert sm.get_license_details(first).is_active
        assert not sm.is_access_active(ALICE_WALLET, COMPANY)
        with pytest.raises(LedgerRevertedError):
            sm.revoke_access(ALICE_WALLET, COMPANY)

    def test_regrant_after_revoke_restores_access(self, sm):
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        sm.revoke_access(ALICE_WALLET, COMPANY)
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        assert sm.is_access_active(ALICE_WALLET, COMPANY)


class TestExpiry:
    def test_access_ends_after_duration(self, sm, clock):
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 2)
        clock.advance(2 * MONTH_SECONDS)
        assert sm.is_access_active(ALICE_WALLET, COMPANY)
        clock.advance(1)
        assert not sm.is_access_active(ALICE_WALLET, COMPANY)

    def test_unknown_pair_is_inactive(self, sm):
        assert not sm.is_access_active(ALICE_WALLET, COMPANY)


class TestPayUser:
    def test_payments_accumulate(self, sm):
        sm.pay_user(COMPANY, ALICE_WALLET, ONE_ETH, ONE_ETH)
        sm.pay_user(OTHER_COMPANY, ALICE_WALLET, 5, 5)
        assert sm.get_user_earnings(ALICE_WALLET) == ONE_ETH + 5
        assert sm.get_user_earnings(BOB_WALLET) == 0

    def test_payment_event_carries_payer_and_amount(self, sm):
        tx_hash = sm.pay_user(COMPANY, ALICE_WALLET, 42, 42)
        event = sm.events()[-1]
        assert event.name == PAYMENT_MADE
        assert event.user == ALICE_WALLET
        assert event.company == COMPANY
        assert event.amount_wei == 42
        assert event.tx_hash == tx_hash

    @pytest.mark.parametrize('user,amount,value,reason', [
        (ALICE_WALLET, 0, 0, REVERT_INVALID_AMOUNT),
        (ALICE_WALLET, 10, 9, REVERT_AMOUNT_MISMATCH),
    ])
    def test_invalid_payment_reverts(self, sm, user, amount, value, reason):
        with pytest.raises(LedgerRevertedError) as exc:
            sm.pay_user(COMPANY, user, amount, value)
        assert exc.value.reason == reason
        assert sm.get_user_earnings(ALICE_WALLET) == 0

    def test_earnings_never_decrease(self, sm):
        seen = []
        for amount in (3, 1, 7):
            sm.pay_user(COMPANY, ALICE_WALLET, amount, amount)
            seen.append(sm.get_user_earnings(ALICE_WALLET))
        assert seen == sorted(seen)
        assert seen[-1] == 11


class TestEventLog:
    def test_each_transaction_mines_one_block(self, sm):
        sm.register_user(ALICE_WALLET, 'alice')
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        sm.pay_user(COMPANY, ALICE_WALLET, 1, 1)
        assert sm.block_number == 3
        assert [e.block_number for e in sm.events()] == [2, 3]

    def test_events_filtered_by_block_range(self, sm):
        sm.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
        sm.grant_access(BOB_WALLET, COMPANY, 'a', 1, 1)
        sm.revoke_access(ALICE_WALLET, COMPANY)
        assert [e.block_number for e in sm.events(2, 3)] == [2, 3]
        assert sm.events(4) == []

    def test_transaction_hashes_are_unique(self, sm):
        hashes = {sm.pay_user(COMPANY, ALICE_WALLET, 1, 1) for _ in range(5)}
        assert len(hashes) == 5

    def test_register_user_sets_username(self, sm):
        sm.register_user(ALICE_WALLET, 'alice')
        sm.register_user(ALICE_WALLET, 'alice2')
        assert sm.get_username(ALICE_WALLET.lower()) == 'alice2'


def test_unknown_license_reverts(sm):
    with pytest.raises(LedgerRevertedError) as exc:
        sm.get_license_details(99)
    assert exc.value.reason == REVERT_UNKNOWN_LICENSE


def test_separate_ledgers_do_not_share_state():
    first = LicenseLedger(clock=FakeClock())
    second = LicenseLedger(clock=FakeClock())
    first.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
    assert second.get_user_licenses(ALICE_WALLET) == []


def test_separate_ledgers_mint_distinct_tx_hashes():
    first = LicenseLedger(clock=FakeClock())
    second = LicenseLedger(clock=FakeClock())
    _, first_hash = first.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
    _, second_hash = second.grant_access(ALICE_WALLET, COMPANY, 'a', 1, 1)
    assert first_hash != second_hash
