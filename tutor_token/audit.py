"""
audit.py - Event Stream Audit Projection

An external observer's view of the ledger, built only from committed events.
Auditors and indexers feed LedgerEvents (from TokenLedger.event_log or a
subscription) into an AuditProjection, then reconcile it against the live
ledger through the read-only LedgerView protocol.

Following the ledger's handler conventions:
- No handler classes, just functions
- Dict of functions keyed by EventKind instead of a class hierarchy
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .core import (
    EventKind, LedgerEvent, LedgerView, MintRecord, TokenConfig,
    LedgerError, DEFAULT_CONFIG,
)


class AuditProjection:
    """
    Balances, allowances, supply and mint history rebuilt from events.

    The projection starts from the genesis state implied by the deployer and
    config, then applies events strictly in sequence. Events already seen
    (same event_id) are ignored, so the projection can safely consume the same
    stream twice.

    Example:
        projection = AuditProjection(ledger.deployer, ledger.config)
        ledger.subscribe(projection.apply)
        ...
        report = reconcile(projection, ledger)
        assert report['valid']
    """

    def __init__(
        self,
        deployer: str,
        config: TokenConfig = DEFAULT_CONFIG,
        handlers: Optional[Dict[EventKind, 'Handler']] = None,
    ):
        self.deployer = deployer
        self.config = config
        self.admin = deployer
        self.paused = False
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.minters: Set[str] = {deployer}
        self.mint_records: Dict[int, MintRecord] = {}
        self.total_supply = config.initial_supply
        self.seen_event_ids: Set[str] = set()
        self.next_sequence = 0
        self.handlers: Dict[EventKind, Handler] = dict(handlers or DEFAULT_HANDLERS)
        if config.initial_supply:
            self.balances[deployer] = config.initial_supply

    def apply(self, event: LedgerEvent) -> bool:
        """
        Fold one event into the projection.

        Returns:
            True if applied, False if the event was a duplicate

        Raises:
            LedgerError: On a sequence gap or an event kind with no handler
        """
        if event.event_id in self.seen_event_ids:
            return False
        if event.sequence_number != self.next_sequence:
            raise LedgerError(
                f"Event sequence gap: expected #{self.next_sequence}, got #{event.sequence_number}"
            )
        handler = self.handlers.get(event.kind)
        if handler is None:
            raise LedgerError(f"No audit handler for event kind '{event.kind.value}'")
        handler(self, event)
        self.seen_event_ids.add(event.event_id)
        self.next_sequence += 1
        return True

    def apply_all(self, events: Iterable[LedgerEvent]) -> int:
        """Apply events in order. Returns how many were new."""
        return sum(1 for event in events if self.apply(event))

    def get_balance(self, account: str) -> int:
        return self.balances.get(account, 0)

    def get_allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def _move(self, source: str, dest: str, amount: int) -> None:
        self._adjust(source, -amount)
        self._adjust(dest, amount)

    def _adjust(self, account: str, delta: int) -> None:
        balance = self.balances.get(account, 0) + delta
        if balance:
            self.balances[account] = balance
        else:
            self.balances.pop(account, None)

    def _set_allowance(self, owner: str, spender: str, amount: int) -> None:
        if amount:
            self.allowances[(owner, spender)] = amount
        else:
            self.allowances.pop((owner, spender), None)


Handler = Callable[[AuditProjection, LedgerEvent], None]


# ============================================================================
# HANDLER FUNCTIONS
# ============================================================================

def handle_mint(projection: AuditProjection, event: LedgerEvent) -> None:
    """Credit the recipient and record the mint; ids must arrive in order."""
    d = event.data
    expected_id = len(projection.mint_records) + 1
    if d['record_id'] != expected_id:
        raise LedgerError(f"Mint record id {d['record_id']} out of order, expected {expected_id}")
    projection._adjust(d['recipient'], d['amount'])
    projection.total_supply += d['amount']
    projection.mint_records[d['record_id']] = MintRecord(
        record_id=d['record_id'],
        amount=d['amount'],
        recipient=d['recipient'],
        metadata=d['metadata'],
        timestamp=event.timestamp,
        minter=event.caller,
    )


def handle_transfer(projection: AuditProjection, event: LedgerEvent) -> None:
    d = event.data
    projection._move(d['sender'], d['recipient'], d['amount'])


def handle_transfer_from(projection: AuditProjection, event: LedgerEvent) -> None:
    """Move funds and consume the spender's allowance."""
    d = event.data
    projection._move(d['owner'], d['recipient'], d['amount'])
    remaining = projection.get_allowance(d['owner'], d['spender']) - d['amount']
    projection._set_allowance(d['owner'], d['spender'], remaining)


def handle_approve(projection: AuditProjection, event: LedgerEvent) -> None:
    d = event.data
    projection._set_allowance(d['owner'], d['spender'], d['amount'])


def handle_burn(projection: AuditProjection, event: LedgerEvent) -> None:
    d = event.data
    projection._adjust(d['owner'], -d['amount'])
    projection.total_supply -= d['amount']


def handle_admin_changed(projection: AuditProjection, event: LedgerEvent) -> None:
    projection.admin = event.get('new_admin')


def handle_paused(projection: AuditProjection, event: LedgerEvent) -> None:
    projection.paused = True


def handle_unpaused(projection: AuditProjection, event: LedgerEvent) -> None:
    projection.paused = False


def handle_minter_added(projection: AuditProjection, event: LedgerEvent) -> None:
    projection.minters.add(event.get('minter'))


def handle_minter_removed(projection: AuditProjection, event: LedgerEvent) -> None:
    projection.minters.discard(event.get('minter'))


# ============================================================================
# HANDLER REGISTRY
# ============================================================================

DEFAULT_HANDLERS: Dict[EventKind, Handler] = {
    EventKind.MINT: handle_mint,
    EventKind.TRANSFER: handle_transfer,
    EventKind.TRANSFER_FROM: handle_transfer_from,
    EventKind.APPROVE: handle_approve,
    EventKind.BURN: handle_burn,
    EventKind.ADMIN_CHANGED: handle_admin_changed,
    EventKind.PAUSED: handle_paused,
    EventKind.UNPAUSED: handle_unpaused,
    EventKind.MINTER_ADDED: handle_minter_added,
    EventKind.MINTER_REMOVED: handle_minter_removed,
}


def project(events: Iterable[LedgerEvent], deployer: str, config: TokenConfig = DEFAULT_CONFIG) -> AuditProjection:
    """Build a projection from a complete event stream."""
    projection = AuditProjection(deployer, config)
    projection.apply_all(events)
    return projection


# ============================================================================
# RECONCILIATION
# ============================================================================

def reconcile(projection: AuditProjection, view: LedgerView) -> Dict[str, Any]:
    """
    Compare an event-derived projection with live ledger state.

    Args:
        projection: State rebuilt from events
        view: Read-only ledger access

    Returns:
        Dict with keys:
        - 'valid': bool - True if nothing differs
        - 'discrepancies': List[Dict] - each with field, expected (projection), actual (view)
    """
    discrepancies: List[Dict[str, Any]] = []

    def check(field: str, expected: Any, actual: Any) -> None:
        if expected != actual:
            discrepancies.append({'field': field, 'expected': expected, 'actual': actual})

    check('total_supply', projection.total_supply, view.get_total_supply())
    check('balances', dict(projection.balances), view.get_balances())
    check('allowances', dict(projection.allowances), view.get_allowances())
    check('minters', sorted(projection.minters), view.list_minters())
    check('admin', projection.admin, view.get_admin())
    check('paused', projection.paused, view.is_paused())
    check('mint_counter', len(projection.mint_records), view.get_mint_counter())
    for record_id, record in sorted(projection.mint_records.items()):
        check(f'mint_record[{record_id}]', record, view.get_mint_record(record_id).value)

    return {
        'valid': not discrepancies,
        'discrepancies': discrepancies,
    }
