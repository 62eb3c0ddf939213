"""
Price observation: venue ticks to canonical prices.

The venue reports prices as signed integer ticks with price = 1.0001 ** tick
(currency1 per currency0). The canonical price is always expressed as synthetic
dollars per claim, so the tick is negated when the claim is currency1. Prices
are Decimals floored to PRICE_DECIMALS, computed with mpmath at a fixed
working precision so the mapping is deterministic and monotonic.
"""
import logging
from decimal import Decimal
from typing import Dict, Optional, TYPE_CHECKING

import mpmath as mp

from decision_market.utils import ZERO, price_value
from .errors import InvalidInputError
from .registry import to_pool_id
from .state import PoolKey

if TYPE_CHECKING:
    from .lifecycle import MarketEngine

logger = logging.getLogger(__name__)

MIN_TICK = -887272
MAX_TICK = 887272
TICK_BASE = '1.0001'
_WORK_DPS = 80


def validate_tick(tick: int) -> None:
    if isinstance(tick, bool) or not isinstance(tick, int):
        raise InvalidInputError(f"Tick must be an integer, got {tick!r}")
    if not (MIN_TICK <= tick <= MAX_TICK):
        raise InvalidInputError(f"Tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")


def tick_to_price(tick: int, claim_is_token0: bool = True) -> Decimal:
    """
    Canonical claim price for a venue tick.
    """
    validate_tick(tick)
    exponent = tick if claim_is_token0 else -tick
    with mp.workdps(_WORK_DPS):
        value = mp.power(mp.mpf(TICK_BASE), exponent)
        text = mp.nstr(value, _WORK_DPS - 5)
    return price_value(Decimal(text))


def price_to_tick(price: Decimal, claim_is_token0: bool = True) -> int:
    """
    Largest tick whose canonical price does not exceed `price`.
    """
    price = Decimal(price)
    if price <= ZERO:
        raise InvalidInputError(f"Price must be positive, got {price}")
    with mp.workdps(_WORK_DPS):
        raw = mp.log(mp.mpf(str(price))) / mp.log(mp.mpf(TICK_BASE))
        tick = int(mp.floor(raw))
    tick = max(MIN_TICK, min(MAX_TICK, tick))
    # Guard against rounding at exact tick boundaries
    while tick > MIN_TICK and tick_to_price(tick) > price:
        tick -= 1
    while tick < MAX_TICK and tick_to_price(tick + 1) <= price:
        tick += 1
    return tick if claim_is_token0 else -tick


def average_tick(tick_sum: int, count: int) -> int:
    """Integer mean, truncated toward zero."""
    if count <= 0:
        raise InvalidInputError(f"Cannot average {count} ticks")
    quotient = abs(tick_sum) // count
    return quotient if tick_sum >= 0 else -quotient


class PriceObservationAdapter:
    """
    Sits between the venue's swap callbacks and the engine.

    Every executed swap in a batch window is reported through observe_swap; the
    post-trade callback (after_swap) averages the accumulated ticks, forwards the
    average to MarketEngine.record_post_swap and resets the accumulator.
    """

    def __init__(self, engine: 'MarketEngine', venue_address: str):
        self.engine = engine
        self.venue_address = venue_address
        self._accumulators: Dict[str, Dict[str, int]] = {}

    def observe_swap(self, pool: str | PoolKey, tick: int) -> None:
        validate_tick(tick)
        pool_id = to_pool_id(pool)
        acc = self._accumulators.setdefault(pool_id, {'tick_sum': 0, 'count': 0})
        acc['tick_sum'] += tick
        acc['count'] += 1

    def pending(self, pool: str | PoolKey) -> int:
        """Number of swaps accumulated since the last post-trade callback."""
        acc = self._accumulators.get(to_pool_id(pool))
        return acc['count'] if acc else 0

    def after_swap(self, pool: str | PoolKey) -> Optional[int]:
        """
        Forward the batch-average tick to the engine. Returns the tick forwarded,
        or None when nothing was observed since the last callback.
        """
        pool_id = to_pool_id(pool)
        acc = self._accumulators.get(pool_id)
        if not acc or acc['count'] == 0:
            return None
        avg = average_tick(acc['tick_sum'], acc['count'])
        try:
            self.engine.record_post_swap(self.venue_address, pool_id, avg)
        finally:
            self._accumulators.pop(pool_id, None)
        logger.info(f"Pool {pool_id[:10]}: forwarded average tick {avg} over {acc['count']} swaps")
        return avg
