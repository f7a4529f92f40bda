"""
ledger.py - Stateful TUTOR Token Ledger

The TokenLedger class is the central state manager for the token system.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by auditors
    - Gates every mutation behind access-control and pause checks
    - Applies each operation atomically (all effects commit or none do)
    - Keeps balances, allowances, supply, minters and mint records consistent
    - Records every committed change in the event log, enabling clone_at()
      and replay() for historical state reconstruction
"""

from __future__ import annotations
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Any
import threading

from .core import (
    # Types
    MintRecord, LedgerEvent, EventKind, Result, ErrorCode, Failure,
    TokenConfig,
    # Constants
    DEFAULT_CONFIG,
    # Exceptions
    LedgerError,
    # Helper functions
    require_identity, require_int,
)


EventHandler = Callable[[LedgerEvent], None]


class TokenLedger:
    """
    Fungible-token ledger with controlled issuance and a full audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    auditing functions that access only read-only methods.

    Design Principles:
        - Always validates: every precondition is checked, in a fixed order,
          before any state is touched. The first failure is returned as a
          Result and nothing changes.
        - Always logs: every successful mutation appends to the event log,
          which is complete enough to rebuild the ledger with replay().

    Thread Safety:
        Every operation, reads included, runs under a single re-entrant lock,
        so operations are applied in a total order and never observe a
        half-applied change.

    Example:
        ledger = TokenLedger("deployer", verbose=False)
        ledger.add_minter("deployer", "platform")
        record_id = ledger.mint("platform", 1_000_000, "alice", "signup bonus").unwrap()
        ledger.transfer("alice", 250_000, "bob")
    """

    def __init__(
        self,
        deployer: str,
        ledger_id: str = "tutor-ledger",
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        config: TokenConfig = DEFAULT_CONFIG,
    ):
        """
        Deploy a ledger, crediting the whole initial supply to the deployer.

        Args:
            deployer: Deploying identity. Becomes admin and sole initial minter.
            ledger_id: Identifier of this ledger instance (distinct from the token name)
            initial_time: Starting time for the logical clock (default: 1970-01-01)
            verbose: Print one line per accepted or rejected operation (default: True)
            config: Token parameters (default: TUTOR)
        """
        require_identity(deployer, "deployer")
        self.ledger_id = ledger_id
        self.config = config
        self.verbose = verbose
        self._deployer = deployer
        self._admin = deployer
        self._paused = False
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._minters: Dict[str, bool] = {deployer: True}
        self._mint_records: Dict[int, MintRecord] = {}
        self._mint_counter: int = 0
        self._total_supply: int = 0
        self._event_log: List[LedgerEvent] = []
        self._subscribers: List[EventHandler] = []
        self._genesis_time: datetime = initial_time or datetime(1970, 1, 1)
        self._current_time: datetime = self._genesis_time
        self._lock = threading.RLock()

        # Genesis: one-time seeding, there is no other path that credits without a mint
        if config.initial_supply:
            self._credit(deployer, config.initial_supply)
            self._total_supply = config.initial_supply

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    @property
    def deployer(self) -> str:
        return self._deployer

    @property
    def event_log(self) -> Tuple[LedgerEvent, ...]:
        """All committed events, oldest first."""
        with self._lock:
            return tuple(self._event_log)

    def get_name(self) -> str:
        return self.config.name

    def get_symbol(self) -> str:
        return self.config.symbol

    def get_decimals(self) -> int:
        return self.config.decimals

    def get_total_supply(self) -> int:
        with self._lock:
            return self._total_supply

    def get_balance(self, account: str) -> int:
        """
        Get the balance of an account.

        Returns:
            Current balance in base units (0 if the account never held tokens)
        """
        with self._lock:
            return self._balances.get(account, 0)

    def get_balances(self) -> Dict[str, int]:
        """Get a copy of every non-zero balance."""
        with self._lock:
            return dict(self._balances)

    def list_accounts(self) -> List[str]:
        """List accounts holding a non-zero balance, sorted."""
        with self._lock:
            return sorted(self._balances)

    def get_allowance(self, owner: str, spender: str) -> int:
        """Amount `spender` may still move out of `owner`'s balance."""
        with self._lock:
            return self._allowances.get((owner, spender), 0)

    def get_allowances(self) -> Dict[Tuple[str, str], int]:
        """Get a copy of every non-zero allowance, keyed by (owner, spender)."""
        with self._lock:
            return dict(self._allowances)

    def get_mint_record(self, record_id: int) -> Result:
        """
        Look up a mint record by id.

        Returns:
            Result holding the MintRecord, or ErrorCode.NOT_FOUND
        """
        with self._lock:
            record = self._mint_records.get(record_id)
        if record is None:
            return Result.failure(ErrorCode.NOT_FOUND, f"no mint record #{record_id}")
        return Result.success(record)

    def get_mint_counter(self) -> int:
        """Id of the most recent mint record (0 before the first mint)."""
        with self._lock:
            return self._mint_counter

    def is_minter(self, account: str) -> bool:
        with self._lock:
            return self._minters.get(account, False)

    def list_minters(self) -> List[str]:
        """List identities currently authorized to mint, sorted."""
        with self._lock:
            return sorted(m for m, allowed in self._minters.items() if allowed)

    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    def get_admin(self) -> str:
        with self._lock:
            return self._admin

    def verify_supply(self) -> Dict[str, Any]:
        """
        Verify the ledger invariants.

        Checks that total supply equals the sum of all balances, that no
        balance or allowance is negative, and that mint record ids run
        1..counter with no gaps.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'total_supply': int - Recorded total supply
            - 'sum_of_balances': int - Sum over all accounts
            - 'negative_balances': List[str] - Accounts below zero
            - 'negative_allowances': List[Tuple[str, str]] - (owner, spender) below zero
            - 'mint_ids_contiguous': bool - Record ids are exactly 1..counter

        Example:
            result = ledger.verify_supply()
            assert result['valid'], result
        """
        with self._lock:
            # Sorted so the accumulation order is deterministic
            sum_of_balances = sum(self._balances[a] for a in sorted(self._balances))
            negative_balances = sorted(a for a, b in self._balances.items() if b < 0)
            negative_allowances = sorted(k for k, v in self._allowances.items() if v < 0)
            contiguous = sorted(self._mint_records) == list(range(1, self._mint_counter + 1))
            total = self._total_supply

        return {
            'valid': (
                total == sum_of_balances
                and not negative_balances
                and not negative_allowances
                and contiguous
            ),
            'total_supply': total,
            'sum_of_balances': sum_of_balances,
            'negative_balances': negative_balances,
            'negative_allowances': negative_allowances,
            'mint_ids_contiguous': contiguous,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        with self._lock:
            if new_time < self._current_time:
                raise ValueError(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time

    # ========================================================================
    # EVENT SUBSCRIPTION
    # ========================================================================

    def subscribe(self, handler: EventHandler) -> None:
        """
        Register a handler called synchronously with each committed event.

        Handlers run after the state change is applied. An exception raised by
        a handler propagates to the caller of the operation; the state change
        itself stays committed.
        """
        with self._lock:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            self._subscribers.remove(handler)

    # ========================================================================
    # GUARDS (each returns None when the check passes)
    # ========================================================================

    def _check_not_paused(self) -> Optional[Failure]:
        if self._paused:
            return ErrorCode.PAUSED, "ledger is paused"
        return None

    def _check_admin(self, caller: str) -> Optional[Failure]:
        if caller != self._admin:
            return ErrorCode.UNAUTHORIZED, f"{caller} is not admin"
        return None

    def _check_minter(self, caller: str) -> Optional[Failure]:
        if not self._minters.get(caller, False):
            return ErrorCode.INVALID_MINTER, f"{caller} is not an authorized minter"
        return None

    def _check_positive(self, amount: int) -> Optional[Failure]:
        if amount <= 0:
            return ErrorCode.INVALID_AMOUNT, f"amount must be positive, got {amount}"
        return None

    def _check_non_negative(self, amount: int) -> Optional[Failure]:
        if amount < 0:
            return ErrorCode.INVALID_AMOUNT, f"amount cannot be negative, got {amount}"
        return None

    def _check_mint_recipient(self, recipient: str) -> Optional[Failure]:
        # The deployer received the genesis supply and may not receive mints
        if recipient == self._deployer:
            return ErrorCode.INVALID_RECIPIENT, f"cannot mint to deployer {recipient}"
        return None

    def _check_metadata(self, metadata: str) -> Optional[Failure]:
        limit = self.config.max_metadata_len
        if len(metadata) > limit:
            return ErrorCode.METADATA_TOO_LONG, f"metadata is {len(metadata)} > {limit} characters"
        return None

    def _check_balance(self, account: str, amount: int) -> Optional[Failure]:
        balance = self._balances.get(account, 0)
        if balance < amount:
            return ErrorCode.INSUFFICIENT_BALANCE, f"{account} holds {balance} < {amount}"
        return None

    def _check_allowance(self, owner: str, spender: str, amount: int) -> Optional[Failure]:
        allowance = self._allowances.get((owner, spender), 0)
        if allowance < amount:
            return ErrorCode.UNAUTHORIZED, f"allowance {owner}→{spender} is {allowance} < {amount}"
        return None

    # ========================================================================
    # STATE PRIMITIVES (called only after all guards pass)
    # ========================================================================

    def _credit(self, account: str, amount: int) -> None:
        if not amount:
            return
        self._balances[account] = self._balances.get(account, 0) + amount

    def _debit(self, account: str, amount: int) -> None:
        remaining = self._balances.get(account, 0) - amount
        if remaining:
            self._balances[account] = remaining
        else:
            # Zero balances are dropped so the map holds non-zero accounts only
            self._balances.pop(account, None)

    def _set_allowance(self, owner: str, spender: str, amount: int) -> None:
        if amount:
            self._allowances[(owner, spender)] = amount
        else:
            self._allowances.pop((owner, spender), None)

    def _emit(self, kind: EventKind, caller: str, **fields: Any) -> LedgerEvent:
        event = LedgerEvent(
            kind=kind,
            sequence_number=len(self._event_log),
            timestamp=self._current_time,
            caller=caller,
            fields=tuple(fields.items()),
        )
        self._event_log.append(event)
        return event

    def _reject(self, operation: str, failure: Failure) -> Result:
        code, reason = failure
        if self.verbose:
            print(f"✗ REJECTED: {operation} - {code.name}: {reason}")
        return Result.failure(code, reason)

    def _commit(self, operation: str, value: Any, event: LedgerEvent) -> Result:
        if self.verbose:
            print(f"✓ APPLIED: {operation} {event!r}")
        for handler in list(self._subscribers):
            handler(event)
        return Result.success(value, (event,))

    def _format(self, amount: int) -> str:
        return f"{self.config.to_whole_tokens(amount)} {self.config.symbol}"

    # ========================================================================
    # ADMINISTRATIVE OPERATIONS (Mutating, not pause-gated)
    # ========================================================================

    def set_admin(self, caller: str, new_admin: str) -> Result:
        """
        Hand admin rights to another identity.

        Returns:
            Ok(True), or Err(UNAUTHORIZED) if caller is not the current admin
        """
        require_identity(caller, "caller")
        require_identity(new_admin, "new_admin")
        with self._lock:
            failure = self._check_admin(caller)
            if failure:
                return self._reject("set_admin", failure)
            previous = self._admin
            self._admin = new_admin
            event = self._emit(
                EventKind.ADMIN_CHANGED, caller, previous_admin=previous, new_admin=new_admin
            )
            return self._commit("set_admin", True, event)

    def pause(self, caller: str) -> Result:
        """Halt all value-moving operations. Idempotent."""
        require_identity(caller, "caller")
        with self._lock:
            failure = self._check_admin(caller)
            if failure:
                return self._reject("pause", failure)
            self._paused = True
            event = self._emit(EventKind.PAUSED, caller)
            return self._commit("pause", True, event)

    def unpause(self, caller: str) -> Result:
        """Resume value-moving operations. Idempotent."""
        require_identity(caller, "caller")
        with self._lock:
            failure = self._check_admin(caller)
            if failure:
                return self._reject("unpause", failure)
            self._paused = False
            event = self._emit(EventKind.UNPAUSED, caller)
            return self._commit("unpause", True, event)

    def add_minter(self, caller: str, minter: str) -> Result:
        """
        Authorize an identity to mint.

        Returns:
            Ok(True), Err(UNAUTHORIZED) if caller is not admin, or
            Err(ALREADY_REGISTERED) if minter is already authorized
        """
        require_identity(caller, "caller")
        require_identity(minter, "minter")
        with self._lock:
            failure = self._check_admin(caller)
            if not failure and self._minters.get(minter, False):
                failure = ErrorCode.ALREADY_REGISTERED, f"{minter} is already a minter"
            if failure:
                return self._reject("add_minter", failure)
            self._minters[minter] = True
            event = self._emit(EventKind.MINTER_ADDED, caller, minter=minter)
            return self._commit("add_minter", True, event)

    def remove_minter(self, caller: str, minter: str) -> Result:
        """Revoke mint rights. Succeeds even if the identity was never a minter."""
        require_identity(caller, "caller")
        require_identity(minter, "minter")
        with self._lock:
            failure = self._check_admin(caller)
            if failure:
                return self._reject("remove_minter", failure)
            self._minters[minter] = False
            event = self._emit(EventKind.MINTER_REMOVED, caller, minter=minter)
            return self._commit("remove_minter", True, event)

    # ========================================================================
    # VALUE OPERATIONS (Mutating, pause-gated)
    # ========================================================================

    def mint(self, caller: str, amount: int, recipient: str, metadata: str = "") -> Result:
        """
        Create new supply and credit it to recipient.

        Checks, in order: not paused, caller is a minter, amount > 0,
        recipient is not the deployer, metadata within bound.

        Args:
            caller: Minting identity
            amount: Base units to create
            recipient: Identity to credit
            metadata: Free text stored in the mint record

        Returns:
            Ok(record_id) with one MINT event, or the first failed check
        """
        require_identity(caller, "caller")
        require_int(amount)
        require_identity(recipient, "recipient")
        if not isinstance(metadata, str):
            raise ValueError(f"metadata must be str, got {type(metadata)}")

        with self._lock:
            failure = (
                self._check_not_paused()
                or self._check_minter(caller)
                or self._check_positive(amount)
                or self._check_mint_recipient(recipient)
                or self._check_metadata(metadata)
            )
            if failure:
                return self._reject("mint", failure)

            record_id = self._mint_counter + 1
            record = MintRecord(
                record_id=record_id,
                amount=amount,
                recipient=recipient,
                metadata=metadata,
                timestamp=self._current_time,
                minter=caller,
            )
            self._credit(recipient, amount)
            self._total_supply += amount
            self._mint_records[record_id] = record
            self._mint_counter = record_id

            event = self._emit(
                EventKind.MINT, caller,
                amount=amount, recipient=recipient, metadata=metadata, record_id=record_id,
            )
            return self._commit(f"mint {self._format(amount)}", record_id, event)

    def transfer(self, caller: str, amount: int, recipient: str) -> Result:
        """
        Move tokens from caller to recipient.

        Returns:
            Ok(True), or Err(PAUSED / INVALID_AMOUNT / INSUFFICIENT_BALANCE)
        """
        require_identity(caller, "caller")
        require_int(amount)
        require_identity(recipient, "recipient")

        with self._lock:
            failure = (
                self._check_not_paused()
                or self._check_positive(amount)
                or self._check_balance(caller, amount)
            )
            if failure:
                return self._reject("transfer", failure)

            self._debit(caller, amount)
            self._credit(recipient, amount)

            event = self._emit(
                EventKind.TRANSFER, caller, amount=amount, sender=caller, recipient=recipient
            )
            return self._commit(f"transfer {self._format(amount)}", True, event)

    def approve(self, caller: str, spender: str, amount: int) -> Result:
        """
        Set the allowance of spender over caller's balance.

        The new amount replaces any previous allowance; it is not added to it.
        Zero revokes the allowance.
        """
        require_identity(caller, "caller")
        require_identity(spender, "spender")
        require_int(amount)

        with self._lock:
            failure = self._check_not_paused() or self._check_non_negative(amount)
            if failure:
                return self._reject("approve", failure)

            self._set_allowance(caller, spender, amount)

            event = self._emit(
                EventKind.APPROVE, caller, owner=caller, spender=spender, amount=amount
            )
            return self._commit(f"approve {self._format(amount)}", True, event)

    def transfer_from(self, caller: str, amount: int, owner: str, recipient: str) -> Result:
        """
        Spend part of an allowance: move tokens from owner to recipient.

        Checks, in order: not paused, amount >= 0, allowance(owner, caller) >= amount
        (else UNAUTHORIZED), owner balance >= amount. On success the allowance
        is reduced by exactly amount. A zero amount succeeds and changes no
        balance.
        """
        require_identity(caller, "caller")
        require_int(amount)
        require_identity(owner, "owner")
        require_identity(recipient, "recipient")

        with self._lock:
            failure = (
                self._check_not_paused()
                or self._check_non_negative(amount)
                or self._check_allowance(owner, caller, amount)
                or self._check_balance(owner, amount)
            )
            if failure:
                return self._reject("transfer_from", failure)

            self._debit(owner, amount)
            self._credit(recipient, amount)
            self._set_allowance(owner, caller, self._allowances.get((owner, caller), 0) - amount)

            event = self._emit(
                EventKind.TRANSFER_FROM, caller,
                amount=amount, owner=owner, recipient=recipient, spender=caller,
            )
            return self._commit(f"transfer_from {self._format(amount)}", True, event)

    def burn(self, caller: str, amount: int) -> Result:
        """Destroy tokens held by caller, reducing total supply."""
        require_identity(caller, "caller")
        require_int(amount)

        with self._lock:
            failure = (
                self._check_not_paused()
                or self._check_positive(amount)
                or self._check_balance(caller, amount)
            )
            if failure:
                return self._reject("burn", failure)

            self._debit(caller, amount)
            self._total_supply -= amount

            event = self._emit(EventKind.BURN, caller, amount=amount, owner=caller)
            return self._commit(f"burn {self._format(amount)}", True, event)

    # ========================================================================
    # RECONSTRUCTION
    # ========================================================================

    def _apply_event(self, event: LedgerEvent) -> Result:
        """Re-execute the operation that produced a logged event."""
        d = event.data
        caller = event.caller
        kind = event.kind
        if kind == EventKind.MINT:
            return self.mint(caller, d['amount'], d['recipient'], d['metadata'])
        if kind == EventKind.TRANSFER:
            return self.transfer(caller, d['amount'], d['recipient'])
        if kind == EventKind.TRANSFER_FROM:
            return self.transfer_from(caller, d['amount'], d['owner'], d['recipient'])
        if kind == EventKind.APPROVE:
            return self.approve(caller, d['spender'], d['amount'])
        if kind == EventKind.BURN:
            return self.burn(caller, d['amount'])
        if kind == EventKind.ADMIN_CHANGED:
            return self.set_admin(caller, d['new_admin'])
        if kind == EventKind.PAUSED:
            return self.pause(caller)
        if kind == EventKind.UNPAUSED:
            return self.unpause(caller)
        if kind == EventKind.MINTER_ADDED:
            return self.add_minter(caller, d['minter'])
        if kind == EventKind.MINTER_REMOVED:
            return self.remove_minter(caller, d['minter'])
        raise LedgerError(f"Unknown event kind: {kind}")

    def clone(self) -> TokenLedger:
        """
        Create a deep copy of this ledger.

        All state is fully independent: modifications to the clone will not
        affect the original ledger, and vice versa. Subscribers are not
        copied; the clone starts with none.

        Returns:
            A new TokenLedger instance with identical state
        """
        with self._lock:
            cloned = TokenLedger.__new__(TokenLedger)
            cloned.ledger_id = self.ledger_id
            cloned.config = self.config
            cloned.verbose = self.verbose
            cloned._deployer = self._deployer
            cloned._admin = self._admin
            cloned._paused = self._paused
            cloned._balances = dict(self._balances)
            cloned._allowances = dict(self._allowances)
            cloned._minters = dict(self._minters)
            # MintRecord and LedgerEvent are immutable, sharing them is safe
            cloned._mint_records = dict(self._mint_records)
            cloned._mint_counter = self._mint_counter
            cloned._total_supply = self._total_supply
            cloned._event_log = list(self._event_log)
            cloned._subscribers = []
            cloned._genesis_time = self._genesis_time
            cloned._current_time = self._current_time
            cloned._lock = threading.RLock()
            return cloned

    def replay(self, until: Optional[datetime] = None) -> TokenLedger:
        """
        Create a new ledger by replaying the event log.

        A fresh ledger is deployed with the same deployer, genesis time and
        config, then each logged event is re-executed in order, advancing the
        clock to the event's timestamp first. Because every operation is
        deterministic the result has identical state and an identical log.

        Args:
            until: Only replay events committed at or before this time

        Returns:
            New TokenLedger instance with replayed state

        Raises:
            LedgerError: If a logged event is rejected during replay
        """
        with self._lock:
            events = list(self._event_log)

        new_ledger = TokenLedger(
            self._deployer,
            ledger_id=f"{self.ledger_id}_replayed",
            initial_time=self._genesis_time,
            verbose=self.verbose,
            config=self.config,
        )

        for event in events:
            if until is not None and event.timestamp > until:
                break
            if event.timestamp > new_ledger.current_time:
                new_ledger.advance_time(event.timestamp)
            result = new_ledger._apply_event(event)
            if not result.ok:
                raise LedgerError(
                    f"Replay failed at event #{event.sequence_number} "
                    f"({event.kind.value}): {result.error.name}"
                )

        return new_ledger

    def clone_at(self, target_time: datetime) -> TokenLedger:
        """
        Reconstruct the ledger as it existed at a past time.

        Replays the events committed at or before target_time and leaves the
        clock at target_time.

        Raises:
            ValueError: If target_time is in the future
        """
        if target_time > self._current_time:
            raise ValueError(f"Target time {target_time} is in the future")
        cloned = self.replay(until=target_time)
        cloned.ledger_id = self.ledger_id
        if target_time > cloned.current_time:
            cloned.advance_time(target_time)
        return cloned

