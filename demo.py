#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the TUTOR Token Ledger Step by Step

This is a pedagogical demonstration of how the token ledger works.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Foundation     - Deployment, genesis supply, the minter registry
  4-7:   Core Mechanics - Minting, transfers, rejections, allowances, burning
  8-9:   Governance     - Pausing, admin hand-over
  10-12: Audit          - The event log, clone_at, replay and reconciliation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from tutor_token import (
    TokenLedger, OperationRejected,
    project, reconcile,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    deployer: str = "tutor_foundation"
    platform: str = "learning_platform"
    alice: str = "alice"
    bob: str = "bob"

    # Base units (6 decimals): 1_000_000 == 1 TUT
    course_reward: int = 25_000_000
    alice_to_bob: int = 5_000_000
    bob_allowance: int = 8_000_000
    bob_spend: int = 3_000_000
    alice_burn: int = 2_000_000


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(ledger: TokenLedger, *accounts: str):
    for account in accounts:
        amount = ledger.get_balance(account)
        print(f"  {account:<20} {ledger.config.to_whole_tokens(amount):>24} {ledger.get_symbol()}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_deploy():
    """Deploy the ledger and inspect the genesis state."""
    step_header(1, "Deploying the Ledger",
        "The deployer receives the entire initial supply and becomes admin.")

    print("""
    A token ledger records who holds how many tokens. At deployment:

    - The deployer is credited with the INITIAL SUPPLY (100,000,000 TUT)
    - The deployer becomes ADMIN (controls pause and the minter registry)
    - The deployer is the first authorized MINTER

    Amounts are integers in base units. With 6 decimals, 1 TUT = 1,000,000.
    """)

    wait_for_enter()

    print(f">>> ledger = TokenLedger({CONFIG.deployer!r}, initial_time=datetime(2025, 1, 1, 9, 0))")
    ledger = TokenLedger(CONFIG.deployer, initial_time=CONFIG.start_time, verbose=True)

    section_header("Token Metadata")
    print(f"Name:         {ledger.get_name()}")
    print(f"Symbol:       {ledger.get_symbol()}")
    print(f"Decimals:     {ledger.get_decimals()}")
    print(f"Total supply: {ledger.config.to_whole_tokens(ledger.get_total_supply())} TUT")

    section_header("Genesis State")
    print(f"Admin:        {ledger.get_admin()}")
    print(f"Minters:      {ledger.list_minters()}")
    print(f"Paused:       {ledger.is_paused()}")
    print(f"Event log:    {len(ledger.event_log)} entries")
    show_balances(ledger, CONFIG.deployer)

    return ledger


def step_02_add_minter(ledger: TokenLedger):
    """Register the learning platform as a minter."""
    step_header(2, "The Minter Registry",
        "Only the admin can authorize identities to create new supply.")

    print(f'>>> ledger.add_minter({CONFIG.deployer!r}, {CONFIG.platform!r})')
    ledger.add_minter(CONFIG.deployer, CONFIG.platform)

    section_header("A non-admin cannot grant mint rights")
    print(f'>>> ledger.add_minter({CONFIG.alice!r}, {CONFIG.alice!r})')
    result = ledger.add_minter(CONFIG.alice, CONFIG.alice)
    print(f"Result: {result!r}")

    section_header("Registering twice is rejected")
    result = ledger.add_minter(CONFIG.deployer, CONFIG.platform)
    print(f"Result: {result!r}")

    print(f"\nMinters: {ledger.list_minters()}")
    return ledger


def step_03_mint(ledger: TokenLedger):
    """Mint a course reward and inspect the mint record."""
    step_header(3, "Minting Rewards",
        "Each mint increases supply and leaves a numbered, immutable mint record.")

    ledger.advance_time(CONFIG.start_time + timedelta(hours=1))
    print(f'>>> ledger.mint({CONFIG.platform!r}, {CONFIG.course_reward:,}, {CONFIG.alice!r}, "completed: Intro to Python")')
    result = ledger.mint(CONFIG.platform, CONFIG.course_reward, CONFIG.alice, "completed: Intro to Python")
    record_id = result.unwrap()

    section_header("Mint Record")
    record = ledger.get_mint_record(record_id).unwrap()
    print(f"Id:        {record.record_id}")
    print(f"Amount:    {ledger.config.to_whole_tokens(record.amount)} TUT")
    print(f"Recipient: {record.recipient}")
    print(f"Metadata:  {record.metadata!r}")
    print(f"Timestamp: {record.timestamp}")
    print(f"Minter:    {record.minter}")

    section_header("Mints to the deployer are refused")
    result = ledger.mint(CONFIG.platform, 1, CONFIG.deployer)
    print(f"Result: {result!r}")

    return ledger


# ============================================================================
# PHASE 2: CORE MECHANICS (Steps 4-7)
# ============================================================================

def step_04_transfer(ledger: TokenLedger):
    """Move tokens between holders."""
    step_header(4, "Transfers",
        "A transfer debits the caller and credits the recipient. Supply is unchanged.")

    ledger.advance_time(CONFIG.start_time + timedelta(hours=2))
    supply_before = ledger.get_total_supply()
    print(f'>>> ledger.transfer({CONFIG.alice!r}, {CONFIG.alice_to_bob:,}, {CONFIG.bob!r})')
    ledger.transfer(CONFIG.alice, CONFIG.alice_to_bob, CONFIG.bob)

    section_header("Balances")
    show_balances(ledger, CONFIG.alice, CONFIG.bob)
    print(f"\nSupply unchanged: {ledger.get_total_supply() == supply_before}")
    return ledger


def step_05_rejection(ledger: TokenLedger):
    """A failed operation returns an error and changes nothing."""
    step_header(5, "Rejected Operations",
        "Failures are returned as results. Nothing is applied and nothing is logged.")

    events_before = len(ledger.event_log)
    balances_before = ledger.get_balances()

    print(f'>>> ledger.transfer({CONFIG.bob!r}, 10**12, {CONFIG.alice!r})')
    result = ledger.transfer(CONFIG.bob, 10**12, CONFIG.alice)
    print(f"Result: {result!r}")
    print(f"Error code: {result.error.name} ({result.error.value})")
    print(f"Reason:     {result.reason}")

    section_header("Atomicity")
    print(f"Balances unchanged: {ledger.get_balances() == balances_before}")
    print(f"No new events:      {len(ledger.event_log) == events_before}")

    section_header("unwrap() turns a failure into an exception")
    try:
        ledger.burn(CONFIG.bob, 0).unwrap()
    except OperationRejected as e:
        print(f"{type(e).__name__}: {e}")

    return ledger


def step_06_allowances(ledger: TokenLedger):
    """Delegate spending with approve / transfer_from."""
    step_header(6, "Allowances",
        "An owner can let a spender move up to a fixed amount on their behalf.")

    print(f'>>> ledger.approve({CONFIG.alice!r}, {CONFIG.bob!r}, {CONFIG.bob_allowance:,})')
    ledger.approve(CONFIG.alice, CONFIG.bob, CONFIG.bob_allowance)
    print(f'>>> ledger.transfer_from({CONFIG.bob!r}, {CONFIG.bob_spend:,}, {CONFIG.alice!r}, {CONFIG.bob!r})')
    ledger.transfer_from(CONFIG.bob, CONFIG.bob_spend, CONFIG.alice, CONFIG.bob)

    section_header("After spending")
    show_balances(ledger, CONFIG.alice, CONFIG.bob)
    remaining = ledger.get_allowance(CONFIG.alice, CONFIG.bob)
    print(f"  allowance(alice, bob) {ledger.config.to_whole_tokens(remaining):>21} TUT")

    section_header("Spending beyond the allowance")
    result = ledger.transfer_from(CONFIG.bob, remaining + 1, CONFIG.alice, CONFIG.bob)
    print(f"Result: {result!r}")

    section_header("Key Insight")
    print("""
    approve() OVERWRITES the allowance; it does not add to it.
    To change an allowance safely, first approve 0, then the new amount.
    """)
    return ledger


def step_07_burn(ledger: TokenLedger):
    """Destroy tokens."""
    step_header(7, "Burning",
        "Burning removes tokens from the holder and from total supply.")

    ledger.advance_time(CONFIG.start_time + timedelta(hours=3))
    supply_before = ledger.get_total_supply()
    print(f'>>> ledger.burn({CONFIG.alice!r}, {CONFIG.alice_burn:,})')
    ledger.burn(CONFIG.alice, CONFIG.alice_burn)

    delta = supply_before - ledger.get_total_supply()
    print(f"\nSupply decreased by {ledger.config.to_whole_tokens(delta)} TUT")
    show_balances(ledger, CONFIG.alice)
    return ledger


# ============================================================================
# PHASE 3: GOVERNANCE (Steps 8-9)
# ============================================================================

def step_08_pause(ledger: TokenLedger):
    """Emergency stop."""
    step_header(8, "Pausing",
        "While paused, every value-moving operation fails. Admin operations still work.")

    ledger.advance_time(CONFIG.start_time + timedelta(hours=4))
    print(f'>>> ledger.pause({CONFIG.deployer!r})')
    ledger.pause(CONFIG.deployer)

    section_header("Value operations fail with PAUSED")
    ledger.transfer(CONFIG.alice, 1, CONFIG.bob)
    ledger.mint(CONFIG.platform, 1, CONFIG.bob)

    section_header("Registry changes still succeed")
    ledger.remove_minter(CONFIG.deployer, CONFIG.platform)
    print(f"Minters: {ledger.list_minters()}")

    print(f'\n>>> ledger.unpause({CONFIG.deployer!r})')
    ledger.unpause(CONFIG.deployer)
    return ledger


def step_09_admin_handover(ledger: TokenLedger):
    """Transfer admin rights."""
    step_header(9, "Admin Hand-over",
        "The admin can pass control to another identity. The old admin loses it at once.")

    print(f'>>> ledger.set_admin({CONFIG.deployer!r}, "governance_council")')
    ledger.set_admin(CONFIG.deployer, "governance_council")

    result = ledger.pause(CONFIG.deployer)
    print(f"\nOld admin tries to pause: {result!r}")
    print(f"Admin is now: {ledger.get_admin()}")
    return ledger


# ============================================================================
# PHASE 4: AUDIT (Steps 10-12)
# ============================================================================

def step_10_event_log(ledger: TokenLedger):
    """Inspect the event log."""
    step_header(10, "The Event Log",
        "Every committed operation leaves exactly one event.")

    for event in ledger.event_log:
        print(f"  {event.timestamp:%H:%M}  {event.event_id}  {event!r}")
    return ledger


def step_11_time_travel(ledger: TokenLedger):
    """Reconstruct past state."""
    step_header(11, "Time Travel (clone_at)",
        "Rebuild the ledger exactly as it was at an earlier time.")

    target = CONFIG.start_time + timedelta(hours=1, minutes=30)
    print(f">>> past = ledger.clone_at(datetime({target:%Y, %m, %d, %H, %M}))")
    quiet = ledger.clone()
    quiet.verbose = False
    past = quiet.clone_at(target)

    section_header(f"State at {target:%H:%M}")
    show_balances(past, CONFIG.alice, CONFIG.bob)
    print(f"  Minters: {past.list_minters()}")
    print(f"  Admin:   {past.get_admin()}")
    return ledger


def step_12_replay_and_audit(ledger: TokenLedger):
    """Prove determinism and reconcile an external audit."""
    step_header(12, "Replay and Audit",
        "Replaying the log reproduces identical state; an auditor can rebuild it too.")

    quiet = ledger.clone()
    quiet.verbose = False
    replayed = quiet.replay()

    section_header("Replay")
    same_ids = [e.event_id for e in replayed.event_log] == [e.event_id for e in ledger.event_log]
    print(f"Balances match:  {replayed.get_balances() == ledger.get_balances()}")
    print(f"Event ids match: {same_ids}")

    section_header("Independent audit projection")
    projection = project(ledger.event_log, ledger.deployer, ledger.config)
    report = reconcile(projection, ledger)
    print(f"Reconciled: {report['valid']}")

    section_header("Supply invariant")
    check = ledger.verify_supply()
    print(f"Total supply:    {ledger.config.to_whole_tokens(check['total_supply'])} TUT")
    print(f"Sum of balances: {ledger.config.to_whole_tokens(check['sum_of_balances'])} TUT")
    print(f"Valid:           {check['valid']}")

    if not report['valid'] or not check['valid']:
        raise SystemExit(1)


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       TUTOR TOKEN LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)
    print("""
    PHASES:
      1-3:   Foundation     - Deployment, genesis supply, minters
      4-7:   Core Mechanics - Transfers, rejections, allowances, burning
      8-9:   Governance     - Pausing, admin hand-over
      10-12: Audit          - Event log, clone_at, replay, reconciliation
    """)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    steps = [
        step_02_add_minter,
        step_03_mint,
        step_04_transfer,
        step_05_rejection,
        step_06_allowances,
        step_07_burn,
        step_08_pause,
        step_09_admin_handover,
        step_10_event_log,
        step_11_time_travel,
    ]
    ledger = step_01_deploy()
    wait_for_enter()
    for step in steps:
        ledger = step(ledger)
        wait_for_enter()
    step_12_replay_and_audit(ledger)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - The deployer holds the genesis supply; only minters create more
      - Operations are atomic and return results instead of raising
      - Allowances let a spender move a bounded amount
      - Pause halts value movement; admin operations continue
      - The event log rebuilds any past state and supports external audit

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
