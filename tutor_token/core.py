"""
Core types and pure functions for the TUTOR token ledger.

This module provides the foundational data structures for the ledger:
1. Constants and configuration: token metadata, initial supply, metadata bound
2. Protocols: LedgerView for read-only ledger access
3. Immutable data structures: MintRecord, LedgerEvent, Result
4. Error codes and exceptions: ErrorCode, LedgerError, OperationRejected
5. Canonical hashing used to give every event a content-addressable id

Nothing in this module mutates ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import hashlib
from typing import (
    Any, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

TOKEN_NAME = "TUTOR"
TOKEN_SYMBOL = "TUT"
TOKEN_DECIMALS = 6

# 100,000,000 whole tokens expressed in the smallest unit.
INITIAL_SUPPLY = 100_000_000 * 10 ** TOKEN_DECIMALS

# Maximum length (in characters) of the free-text metadata attached to a mint.
MAX_METADATA_LEN = 500


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class TokenConfig:
    """
    Static token parameters fixed at deployment.

    Attributes:
        name: Human-readable token name.
        symbol: Ticker symbol.
        decimals: Number of decimal places of the smallest unit.
        initial_supply: Base units credited to the deployer at genesis.
        max_metadata_len: Upper bound on mint metadata length.
    """
    name: str = TOKEN_NAME
    symbol: str = TOKEN_SYMBOL
    decimals: int = TOKEN_DECIMALS
    initial_supply: int = INITIAL_SUPPLY
    max_metadata_len: int = MAX_METADATA_LEN

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Token name cannot be empty")
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        for attr in ("decimals", "initial_supply", "max_metadata_len"):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{attr} must be int, got {type(value)}")
            if value < 0:
                raise ValueError(f"{attr} must be non-negative, got {value}")

    def to_whole_tokens(self, base_units: int) -> str:
        """Format a base-unit amount as a decimal string of whole tokens."""
        if self.decimals == 0:
            return str(base_units)
        sign = "-" if base_units < 0 else ""
        whole, frac = divmod(abs(base_units), 10 ** self.decimals)
        return f"{sign}{whole}.{frac:0{self.decimals}d}"


DEFAULT_CONFIG = TokenConfig()


# ============================================================================
# ENUMS
# ============================================================================

class ErrorCode(Enum):
    """
    Named failures returned by ledger operations.

    Values match the numeric error constants of the deployed contract so that
    external systems can map between the two.
    """
    UNAUTHORIZED = 100
    PAUSED = 101
    INVALID_AMOUNT = 102
    INVALID_RECIPIENT = 103
    INVALID_MINTER = 104
    ALREADY_REGISTERED = 105
    METADATA_TOO_LONG = 106
    INSUFFICIENT_BALANCE = 109
    NOT_FOUND = 110


class EventKind(Enum):
    """Kind of a committed ledger event."""
    MINT = "mint"
    TRANSFER = "transfer"
    TRANSFER_FROM = "transfer_from"
    APPROVE = "approve"
    BURN = "burn"
    # Administrative events
    ADMIN_CHANGED = "admin_changed"
    PAUSED = "paused"
    UNPAUSED = "unpaused"
    MINTER_ADDED = "minter_added"
    MINTER_REMOVED = "minter_removed"


# Events that move value or delegated rights. These are the ones blocked by pause.
VALUE_EVENT_KINDS = frozenset({
    EventKind.MINT,
    EventKind.TRANSFER,
    EventKind.TRANSFER_FROM,
    EventKind.APPROVE,
    EventKind.BURN,
})


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class OperationRejected(LedgerError):
    """Raised by Result.unwrap() when the operation returned a failure."""

    def __init__(self, code: ErrorCode, reason: str = ""):
        self.code = code
        self.reason = reason
        message = f"{code.name} ({code.value})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_identity(value: Any, role: str = "identity") -> str:
    """Return value if it is a non-empty string identity, else raise ValueError."""
    if not isinstance(value, str):
        raise ValueError(f"{role} must be str, got {type(value)}")
    if not value.strip():
        raise ValueError(f"{role} cannot be empty")
    return value


def require_int(value: Any, role: str = "amount") -> int:
    """
    Return value if it is a plain int.

    bool is rejected even though it subclasses int; so are float and Decimal,
    since amounts are always counted in the smallest token unit.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{role} must be int, got {type(value)}")
    return value


# ============================================================================
# CANONICAL HASHING
# ============================================================================

def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Dict keys are sorted so that two events with the same content always
    produce the same string regardless of construction order.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_event_id(
    kind: EventKind,
    sequence_number: int,
    timestamp: datetime,
    caller: str,
    fields: Tuple[Tuple[str, Any], ...],
) -> str:
    """Deterministic content hash of an event, used by indexers for de-duplication."""
    content = "|".join([
        f"kind:{kind.value}",
        f"seq:{sequence_number}",
        f"time:{timestamp.isoformat()}",
        f"caller:{caller}",
        f"fields:{_canonicalize(dict(fields))}",
    ])
    return hashlib.sha256(content.encode()).hexdigest()[:16]


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class MintRecord:
    """
    Immutable audit entry created by each successful mint.

    Attributes:
        record_id: Sequential id, starting at 1.
        amount: Base units minted.
        recipient: Identity credited.
        metadata: Free text supplied by the minter.
        timestamp: Ledger logical time at commit.
        minter: Identity that performed the mint.
    """
    record_id: int
    amount: int
    recipient: str
    metadata: str
    timestamp: datetime
    minter: str

    def __repr__(self) -> str:
        return f"MintRecord(#{self.record_id}: {self.amount} → {self.recipient})"


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """
    Structured record of a committed state change, for auditors and indexers.

    Attributes:
        kind: What happened.
        sequence_number: Monotonic position in the ledger's event log (from 0).
        timestamp: Ledger logical time at commit.
        caller: Identity that invoked the operation.
        fields: Operation key fields as sorted (name, value) pairs.
        event_id: Content hash of the above (auto-computed).
    """
    kind: EventKind
    sequence_number: int
    timestamp: datetime
    caller: str
    fields: Tuple[Tuple[str, Any], ...] = ()
    event_id: str = field(default="")

    def __post_init__(self):
        object.__setattr__(self, 'fields', tuple(sorted(self.fields)))
        if not self.event_id:
            computed_id = _compute_event_id(
                self.kind, self.sequence_number, self.timestamp, self.caller, self.fields
            )
            object.__setattr__(self, 'event_id', computed_id)

    @property
    def data(self) -> Dict[str, Any]:
        """Event fields as a fresh dictionary."""
        return dict(self.fields)

    def get(self, name: str, default: Any = None) -> Any:
        for key, value in self.fields:
            if key == name:
                return value
        return default

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in self.fields)
        return f"LedgerEvent(#{self.sequence_number} {self.kind.value} by {self.caller}: {body})"


@dataclass(frozen=True, slots=True)
class Result:
    """
    Outcome of a ledger operation: a success value or exactly one ErrorCode.

    Attributes:
        value: Success value (record id for mint, True for other mutations,
               the record for get_mint_record). None on failure.
        error: The failure, or None on success.
        reason: Human-readable detail for a failure.
        events: Events emitted by a successful mutation (empty on failure).
    """
    value: Any = None
    error: Optional[ErrorCode] = None
    reason: str = ""
    events: Tuple[LedgerEvent, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the success value, or raise OperationRejected."""
        if self.error is not None:
            raise OperationRejected(self.error, self.reason)
        return self.value

    @classmethod
    def success(cls, value: Any = True, events: Tuple[LedgerEvent, ...] = ()) -> Result:
        return cls(value=value, events=tuple(events))

    @classmethod
    def failure(cls, error: ErrorCode, reason: str = "") -> Result:
        return cls(error=error, reason=reason)

    def __repr__(self) -> str:
        if self.ok:
            return f"Ok({self.value!r})"
        return f"Err({self.error.name})"


# A failed precondition: (code, reason). Guards return None when they pass.
Failure = Tuple[ErrorCode, str]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Auditors and reconciliation helpers accept a LedgerView to declare that
    they only read. TokenLedger implements this protocol but also provides
    mutation methods.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_total_supply(self) -> int:
        ...

    def get_balance(self, account: str) -> int:
        """Return the balance of an account, 0 if it has never held tokens."""
        ...

    def get_allowance(self, owner: str, spender: str) -> int:
        ...

    def get_allowances(self) -> Dict[Tuple[str, str], int]:
        """Return all non-zero allowances keyed by (owner, spender)."""
        ...

    def get_balances(self) -> Dict[str, int]:
        """Return all non-zero balances."""
        ...

    def get_mint_record(self, record_id: int) -> Result:
        ...

    def get_mint_counter(self) -> int:
        ...

    def is_minter(self, account: str) -> bool:
        ...

    def is_paused(self) -> bool:
        ...

    def get_admin(self) -> str:
        ...

    def list_minters(self) -> List[str]:
        ...
