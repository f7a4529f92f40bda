"""
tutor_token - TUTOR Fungible Token Ledger

An account-based token ledger with controlled issuance: balances, allowances,
mint/burn, an admin-managed minter registry, a pause switch, and an
append-only audit trail.

Usage:
    from tutor_token import TokenLedger, ErrorCode

    ledger = TokenLedger("deployer")
    ledger.add_minter("deployer", "platform")

    # Mint to a user (returns the mint record id)
    record_id = ledger.mint("platform", 1_000_000, "alice", "welcome bonus").unwrap()

    # Transfer between users
    result = ledger.transfer("alice", 250_000, "bob")
    assert result.ok

    # Failures are returned, not raised
    result = ledger.transfer("bob", 10**12, "alice")
    assert result.error == ErrorCode.INSUFFICIENT_BALANCE
"""

# Core types
from .core import (
    LedgerView,
    TokenConfig,
    MintRecord,
    LedgerEvent,
    EventKind,
    Result,
    ErrorCode,
    LedgerError,
    OperationRejected,
    DEFAULT_CONFIG,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    TOKEN_DECIMALS,
    INITIAL_SUPPLY,
    MAX_METADATA_LEN,
    VALUE_EVENT_KINDS,
)

# Ledger
from .ledger import TokenLedger

# Audit
from .audit import (
    AuditProjection,
    DEFAULT_HANDLERS,
    project,
    reconcile,
)


__all__ = [
    # Core
    'LedgerView',
    'TokenConfig',
    'MintRecord',
    'LedgerEvent',
    'EventKind',
    'Result',
    'ErrorCode',
    'LedgerError',
    'OperationRejected',
    'DEFAULT_CONFIG',
    'TOKEN_NAME',
    'TOKEN_SYMBOL',
    'TOKEN_DECIMALS',
    'INITIAL_SUPPLY',
    'MAX_METADATA_LEN',
    'VALUE_EVENT_KINDS',
    # Ledger
    'TokenLedger',
    # Audit
    'AuditProjection',
    'DEFAULT_HANDLERS',
    'project',
    'reconcile',
]

__version__ = '1.0.0'
