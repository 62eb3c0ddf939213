"""
In-memory collaborators and helpers for exercising MarketEngine without a real
token or venue.
"""
from decimal import Decimal
from typing import Dict, Any, List, Optional, Tuple

from .lifecycle import MarketEngine
from .registry import pool_id_for
from .state import PoolKey, Side

ALICE = '0x' + 'a' * 40
BOB = '0x' + 'b' * 40
CAROL = '0x' + 'c' * 40
USDC_ADDRESS = '0x' + '5' * 40
RESOLVER_ADDRESS = '0x' + '6' * 40

NOW = 1_700_000_000
DEADLINE = NOW + 3600
MIN_DEPOSIT = Decimal('1000')
STARTING_BALANCE = Decimal('10000')


class FakeToken:
    """ERC20-like deposit asset: raises on any failed transfer, never moves partially."""

    def __init__(self, address: str):
        self.address = address
        self.balances: Dict[str, Decimal] = {}
        self.allowances: Dict[tuple, Decimal] = {}
        self.on_transfer = None

    def mint(self, holder: str, amount: Decimal) -> None:
        self.balances[holder] = self.balance_of(holder) + amount

    def approve(self, owner: str, spender: str, amount: Decimal) -> None:
        self.allowances[(owner, spender)] = amount

    def balance_of(self, holder: str) -> Decimal:
        return self.balances.get(holder, Decimal('0'))

    def transfer(self, sender: str, recipient: str, amount: Decimal) -> None:
        if self.balance_of(sender) < amount:
            raise RuntimeError("transfer amount exceeds balance")
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        if self.on_transfer is not None:
            self.on_transfer(sender, recipient, amount)

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: Decimal) -> None:
        allowance = self.allowances.get((owner, spender), Decimal('0'))
        if allowance < amount:
            raise RuntimeError("insufficient allowance")
        self.transfer(owner, recipient, amount)
        self.allowances[(owner, spender)] = allowance - amount


class FakeVenue:
    """
    Records pool initialisation and liquidity; ticks are set directly by tests.

    fail_initialize fails every initialize_pool call, fail_initialize_call only
    the n-th one (1-based, counted over the venue's lifetime).
    """

    def __init__(self, address: str):
        self.address = address
        self.pools: Dict[str, Dict[str, Any]] = {}
        self.liquidity: List[Tuple[str, Decimal, Decimal]] = []
        self.fail_initialize = False
        self.fail_initialize_call: Optional[int] = None
        self.fail_add_liquidity = False
        self.initialize_calls = 0

    def pool_exists(self, pool_id: str) -> bool:
        return pool_id in self.pools

    def initialize_pool(self, pool_key: PoolKey, tick: int) -> str:
        self.initialize_calls += 1
        if self.fail_initialize or self.initialize_calls == self.fail_initialize_call:
            raise RuntimeError("pool manager reverted")
        pool_id = pool_id_for(pool_key)
        if pool_id in self.pools:
            raise RuntimeError("pool already initialized")
        self.pools[pool_id] = {'key': pool_key, 'tick': tick}
        return pool_id

    def add_liquidity(self, positions: List[Tuple[str, Decimal, Decimal]]) -> None:
        if self.fail_add_liquidity:
            raise RuntimeError("liquidity router reverted")
        for pool_id, _, _ in positions:
            if pool_id not in self.pools:
                raise RuntimeError(f"pool {pool_id} not initialized")
        self.liquidity.extend(positions)

    def current_tick(self, pool_id: str) -> int:
        return self.pools[pool_id]['tick']


def open_proposal(engine: MarketEngine, market_id: int, who: str, description: str = 'Ship it', now: int = NOW) -> int:
    """Deposit exactly the market minimum and create a proposal with it."""
    min_deposit = engine.get_market(market_id)['min_deposit']
    engine.deposit_to_market(who, market_id, min_deposit, now=now)
    return engine.create_proposal(who, market_id, description, now=now)


def accept_pool(engine: MarketEngine, proposal_id: int) -> str:
    return engine.get_claim_instances(proposal_id)[Side.ACCEPT]['pool_id']


def reject_pool(engine: MarketEngine, proposal_id: int) -> str:
    return engine.get_claim_instances(proposal_id)[Side.REJECT]['pool_id']


def accept_tick(engine: MarketEngine, proposal_id: int, tick: int) -> int:
    """Venue tick that prices the accept claim at 1.0001**tick, whatever the currency order."""
    instance = engine.get_claim_instances(proposal_id)[Side.ACCEPT]
    return tick if instance['claim_is_token0'] else -tick
