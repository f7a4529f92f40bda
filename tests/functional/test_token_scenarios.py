"""
test_token_scenarios.py - End-to-end usage scenarios for the TUTOR ledger

Tests complete flows as a platform would drive them:
- Deploy, register a minter, reward a user
- Failed transfer leaving earlier transfers intact
- Delegated spending through an allowance
- Burning held tokens
- A full day of activity audited from the event stream
"""

import pytest
from datetime import datetime, timedelta

from tutor_token import (
    TokenLedger, ErrorCode, EventKind, MintRecord, OperationRejected,
    INITIAL_SUPPLY, project, reconcile,
)


DEPLOYER = "deployer"
MINTER = "platform"
R1 = "alice"
R2 = "bob"

T0 = datetime(2025, 3, 1, 8, 0)


@pytest.fixture
def ledger():
    return TokenLedger(DEPLOYER, initial_time=T0, verbose=False)


class TestIssuance:
    """Deploy, register a minter and reward a user."""

    def test_minter_rewards_recipient(self, ledger):
        ledger.add_minter(DEPLOYER, MINTER).unwrap()
        ledger.advance_time(T0 + timedelta(minutes=5))

        result = ledger.mint(MINTER, 1_000_000, R1, "x")

        assert result.ok
        assert result.value == 1
        assert ledger.get_balance(R1) == 1_000_000
        assert ledger.get_total_supply() == INITIAL_SUPPLY + 1_000_000
        record = ledger.get_mint_record(1).unwrap()
        assert record == MintRecord(
            record_id=1,
            amount=1_000_000,
            recipient=R1,
            metadata="x",
            timestamp=T0 + timedelta(minutes=5),
            minter=MINTER,
        )

    def test_deployer_mints_to_users_without_registration(self, ledger):
        assert ledger.mint(DEPLOYER, 42, R1).unwrap() == 1
        assert ledger.mint(DEPLOYER, 58, R2).unwrap() == 2
        assert ledger.get_mint_record(3).error == ErrorCode.NOT_FOUND


class TestFailedTransfer:
    """An over-large transfer fails and leaves the earlier state in place."""

    def test_insufficient_balance_after_partial_funding(self, ledger):
        ledger.transfer(DEPLOYER, 5_000_000, R1).unwrap()
        after_first = ledger.get_balances()

        result = ledger.transfer(R1, 10_000_000, R2)

        assert result.error == ErrorCode.INSUFFICIENT_BALANCE
        assert ledger.get_balances() == after_first
        assert ledger.get_balance(R1) == 5_000_000
        assert ledger.get_balance(R2) == 0

    def test_unwrap_raises_on_rejection(self, ledger):
        with pytest.raises(OperationRejected) as exc_info:
            ledger.transfer(R1, 1, R2).unwrap()
        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE


class TestDelegatedSpending:
    """Approve then transfer_from."""

    def test_spender_moves_part_of_allowance(self, ledger):
        ledger.transfer(DEPLOYER, 10_000_000, R1).unwrap()
        ledger.approve(R1, R2, 5_000_000).unwrap()

        result = ledger.transfer_from(R2, 3_000_000, R1, R2)

        assert result.ok
        assert ledger.get_balance(R1) == 7_000_000
        assert ledger.get_balance(R2) == 3_000_000
        assert ledger.get_allowance(R1, R2) == 2_000_000

    def test_spender_cannot_exceed_remaining_allowance(self, ledger):
        ledger.transfer(DEPLOYER, 10_000_000, R1).unwrap()
        ledger.approve(R1, R2, 5_000_000).unwrap()
        ledger.transfer_from(R2, 3_000_000, R1, R2).unwrap()

        result = ledger.transfer_from(R2, 2_000_001, R1, R2)

        assert result.error == ErrorCode.UNAUTHORIZED
        assert ledger.get_allowance(R1, R2) == 2_000_000

    def test_reapprove_overwrites(self, ledger):
        ledger.transfer(DEPLOYER, 10_000_000, R1).unwrap()
        ledger.approve(R1, R2, 5_000_000).unwrap()
        ledger.transfer_from(R2, 3_000_000, R1, R2).unwrap()
        ledger.approve(R1, R2, 1_000_000).unwrap()
        assert ledger.get_allowance(R1, R2) == 1_000_000


class TestBurn:

    def test_holder_burns_part_of_balance(self, ledger):
        ledger.transfer(DEPLOYER, 10_000_000, R1).unwrap()
        supply_before = ledger.get_total_supply()

        ledger.burn(R1, 3_000_000).unwrap()

        assert ledger.get_balance(R1) == 7_000_000
        assert ledger.get_total_supply() == supply_before - 3_000_000


class TestFullDay:
    """A day of platform activity, then an audit from the event stream."""

    def test_day_of_activity_reconciles(self, ledger):
        ledger.add_minter(DEPLOYER, MINTER).unwrap()
        hour = timedelta(hours=1)

        ledger.advance_time(T0 + hour)
        ledger.mint(MINTER, 2_000_000, R1, "course completed").unwrap()
        ledger.advance_time(T0 + 2 * hour)
        ledger.transfer(R1, 500_000, R2).unwrap()
        ledger.advance_time(T0 + 3 * hour)
        ledger.pause(DEPLOYER).unwrap()
        assert ledger.transfer(R2, 1, R1).error == ErrorCode.PAUSED
        ledger.remove_minter(DEPLOYER, MINTER).unwrap()
        ledger.unpause(DEPLOYER).unwrap()
        ledger.advance_time(T0 + 4 * hour)
        assert ledger.mint(MINTER, 1, R1).error == ErrorCode.INVALID_MINTER
        ledger.burn(R2, 100_000).unwrap()

        kinds = [e.kind for e in ledger.event_log]
        assert kinds == [
            EventKind.MINTER_ADDED,
            EventKind.MINT,
            EventKind.TRANSFER,
            EventKind.PAUSED,
            EventKind.MINTER_REMOVED,
            EventKind.UNPAUSED,
            EventKind.BURN,
        ]
        assert ledger.get_total_supply() == INITIAL_SUPPLY + 1_900_000
        assert ledger.verify_supply()["valid"]

        report = reconcile(project(ledger.event_log, DEPLOYER), ledger)
        assert report["valid"], report["discrepancies"]

        # Mid-morning snapshot, before the pause
        morning = ledger.clone_at(T0 + 2 * hour + timedelta(minutes=30))
        assert morning.get_balance(R2) == 500_000
        assert morning.is_minter(MINTER)
        assert not morning.is_paused()
