from .errors import (
    MarketError,
    NotFoundError,
    StateConflictError,
    ReentrancyError,
    UnauthorizedError,
    InsufficientBalanceError,
    NothingToRedeemError,
    InvalidInputError,
    ExternalCallError,
    VerificationError,
)
from .state import (
    EngineState,
    Market,
    Proposal,
    PriceTracker,
    ClaimInstance,
    PoolKey,
    MarketStatus,
    Side,
    Outcome,
    init_state,
    serialize_state,
    deserialize_state,
)
from .interfaces import FungibleAsset, Venue, VerificationGateway
from .pricing import PriceObservationAdapter, tick_to_price, price_to_tick
from .resolvers import SimpleResolver
from .lifecycle import MarketEngine, split_min_deposit
