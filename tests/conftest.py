"""
conftest.py - Shared pytest fixtures for TUTOR ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Ledgers (fresh, with a registered minter, with a funded user)
- State snapshots for asserting that a rejected operation changed nothing
- Invariant assertions
"""

import pytest
from datetime import datetime
from typing import Any, Callable, Dict

from tutor_token import TokenLedger


# =============================================================================
# IDENTITIES
# =============================================================================

DEPLOYER = "deployer"
MINTER = "wallet_1"
USER1 = "wallet_2"
USER2 = "wallet_3"

START_TIME = datetime(2025, 1, 1, 9, 0)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def take_snapshot(ledger: TokenLedger) -> Dict[str, Any]:
    """Capture every piece of observable ledger state."""
    return {
        "balances": ledger.get_balances(),
        "allowances": ledger.get_allowances(),
        "total_supply": ledger.get_total_supply(),
        "mint_counter": ledger.get_mint_counter(),
        "minters": ledger.list_minters(),
        "admin": ledger.get_admin(),
        "paused": ledger.is_paused(),
        "events": len(ledger.event_log),
    }


def check_invariants(ledger: TokenLedger) -> None:
    """Assert supply conservation, non-negativity and contiguous mint ids."""
    report = ledger.verify_supply()
    assert report["valid"], report


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Freshly deployed ledger: deployer holds the entire initial supply."""
    return TokenLedger(DEPLOYER, initial_time=START_TIME, verbose=False)


@pytest.fixture
def minter_ledger(ledger):
    """Ledger where the admin has registered MINTER."""
    ledger.add_minter(DEPLOYER, MINTER).unwrap()
    return ledger


@pytest.fixture
def funded_ledger(minter_ledger):
    """Ledger with MINTER registered and USER1 holding 10,000,000 base units."""
    minter_ledger.transfer(DEPLOYER, 10_000_000, USER1).unwrap()
    return minter_ledger


@pytest.fixture
def snapshot() -> Callable[[TokenLedger], Dict[str, Any]]:
    """Return the state snapshot helper."""
    return take_snapshot


@pytest.fixture
def invariants() -> Callable[[TokenLedger], None]:
    """Return the invariant assertion helper."""
    return check_invariants
