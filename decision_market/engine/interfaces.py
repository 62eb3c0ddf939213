"""
Capability interfaces for the engine's external collaborators.

The engine depends on these by contract only; concrete adapters for a real
venue, oracle or token are injected into MarketEngine.
"""
from decimal import Decimal
from typing import List, Tuple
from typing_extensions import Protocol

from .state import Outcome, PoolKey


class FungibleAsset(Protocol):
    """A market's deposit asset. Every call must raise instead of partially transferring."""
    address: str

    def balance_of(self, holder: str) -> Decimal:
        ...

    def transfer(self, sender: str, recipient: str, amount: Decimal) -> None:
        ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: Decimal) -> None:
        ...


class Venue(Protocol):
    """The external AMM venue the claim instances trade on."""
    address: str

    def pool_exists(self, pool_id: str) -> bool:
        ...

    def initialize_pool(self, pool_key: PoolKey, tick: int) -> str:
        """Create the pool at the given starting tick and return its pool id."""
        ...

    def add_liquidity(self, positions: List[Tuple[str, Decimal, Decimal]]) -> None:
        """
        Fund every (pool_id, claim_amount, quote_amount) position in one call.
        Must raise without funding any pool if any position fails.
        """
        ...

    def current_tick(self, pool_id: str) -> int:
        ...


class VerificationGateway(Protocol):
    """Outcome verification. verify must raise (never return False) when the proof does not hold."""
    address: str

    def verify(self, proposal_id: int, outcome: Outcome, proof: bytes) -> None:
        ...
