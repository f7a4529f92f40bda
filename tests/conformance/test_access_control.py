"""
Access Control and Pause Conformance Tests

INVARIANTS:
    Only the current admin changes admin, pause state, or the minter registry.
    Only identities marked authorized in the registry mint.
    While paused, mint/transfer/transfer_from/approve/burn fail with PAUSED
    and change nothing; admin and registry operations still succeed.
"""

from hypothesis import given, settings

from tutor_token import ErrorCode

from .strategies import (
    DEPLOYER, VALUE_OPERATIONS, ADMIN_OPERATIONS,
    operation, operation_sequence, apply_operation, new_ledger,
)


class TestAccessControlProperties:
    """Property-based access control tests."""

    @given(operation_sequence(max_size=30), operation(names=ADMIN_OPERATIONS))
    @settings(max_examples=300)
    def test_only_admin_succeeds_at_admin_operations(self, history, op):
        ledger = new_ledger()
        for past in history:
            apply_operation(ledger, past)

        caller = op[1][0]
        admin = ledger.get_admin()
        result = apply_operation(ledger, op)
        if caller != admin:
            assert result.error == ErrorCode.UNAUTHORIZED
        else:
            assert result.ok or result.error == ErrorCode.ALREADY_REGISTERED

    @given(operation_sequence(max_size=30))
    @settings(max_examples=300)
    def test_minters_are_deployer_or_explicitly_added(self, ops):
        """
        PROPERTY: every authorized minter is the deployer or was the target of
        a successful add_minter with no later successful remove_minter.
        """
        ledger = new_ledger()
        granted = {DEPLOYER}
        for op in ops:
            result = apply_operation(ledger, op)
            if result.ok and op[0] == "add_minter":
                granted.add(op[1][1])
            elif result.ok and op[0] == "remove_minter":
                granted.discard(op[1][1])
        assert set(ledger.list_minters()) == granted

    @given(operation_sequence(max_size=30))
    @settings(max_examples=200)
    def test_successful_mint_implies_minter(self, ops):
        ledger = new_ledger()
        for op in ops:
            was_minter = ledger.is_minter(op[1][0])
            result = apply_operation(ledger, op)
            if op[0] == "mint" and result.ok:
                assert was_minter

    @given(operation_sequence(max_size=30))
    @settings(max_examples=200)
    def test_transfer_from_never_exceeds_allowance(self, ops):
        ledger = new_ledger()
        for op in ops:
            if op[0] == "transfer_from":
                caller, amount, owner, _ = op[1]
                allowance = ledger.get_allowance(owner, caller)
                result = apply_operation(ledger, op)
                if result.ok:
                    assert amount <= allowance
                    assert ledger.get_allowance(owner, caller) == allowance - amount
            else:
                apply_operation(ledger, op)


class TestPauseProperties:
    """Property-based pause gating tests."""

    @given(operation_sequence(max_size=20), operation(names=VALUE_OPERATIONS))
    @settings(max_examples=300)
    def test_paused_value_operations_fail(self, history, op):
        ledger = new_ledger()
        for past in history:
            apply_operation(ledger, past)
        ledger.pause(ledger.get_admin()).unwrap()

        before = (
            ledger.get_balances(), ledger.get_allowances(),
            ledger.get_total_supply(), ledger.get_mint_counter(),
        )
        result = apply_operation(ledger, op)
        assert result.error == ErrorCode.PAUSED
        after = (
            ledger.get_balances(), ledger.get_allowances(),
            ledger.get_total_supply(), ledger.get_mint_counter(),
        )
        assert after == before

    @given(operation_sequence(max_size=20))
    @settings(max_examples=100)
    def test_admin_operations_work_while_paused(self, history):
        ledger = new_ledger()
        for past in history:
            apply_operation(ledger, past)
        admin = ledger.get_admin()
        ledger.pause(admin).unwrap()

        newcomer = "wallet_new"
        assert ledger.add_minter(admin, newcomer).ok
        assert ledger.remove_minter(admin, newcomer).ok
        assert ledger.set_admin(admin, DEPLOYER).ok
        assert ledger.unpause(DEPLOYER).ok
        assert not ledger.is_paused()


class TestAccessControlExamples:
    """Explicit access control examples."""

    def test_removed_minter_blocked_but_others_unaffected(self):
        ledger = new_ledger()
        ledger.add_minter(DEPLOYER, "wallet_1").unwrap()
        ledger.add_minter(DEPLOYER, "wallet_2").unwrap()
        ledger.remove_minter(DEPLOYER, "wallet_1").unwrap()
        assert ledger.mint("wallet_1", 1, "wallet_3", "").error == ErrorCode.INVALID_MINTER
        assert ledger.mint("wallet_2", 1, "wallet_3", "").ok

    def test_pause_then_unpause_restores_operations(self):
        ledger = new_ledger()
        ledger.pause(DEPLOYER).unwrap()
        assert ledger.transfer(DEPLOYER, 1, "wallet_2").error == ErrorCode.PAUSED
        ledger.unpause(DEPLOYER).unwrap()
        assert ledger.transfer(DEPLOYER, 1, "wallet_2").ok

    def test_admin_change_while_paused(self):
        """set_admin is not pause-gated."""
        ledger = new_ledger()
        ledger.pause(DEPLOYER).unwrap()
        assert ledger.set_admin(DEPLOYER, "wallet_1").ok
        assert ledger.unpause("wallet_1").ok
