import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from typing_extensions import TypedDict

from decision_market.config import EngineParams
from decision_market.db.queries import fetch_engine_state, save_engine_state, insert_events
from decision_market.engine.errors import MarketError
from decision_market.engine.interfaces import FungibleAsset, Venue, VerificationGateway
from decision_market.engine.lifecycle import MarketEngine
from decision_market.engine.state import EngineState, Outcome, init_state
from decision_market.services.realtime import publish_events

logger = logging.getLogger(__name__)

class MarketContext(TypedDict):
    """Collaborators and params needed to rebuild an engine around the persisted store."""
    venue: Venue
    assets: Dict[str, FungibleAsset]
    gateways: Dict[str, VerificationGateway]
    params: EngineParams

ENTRY_POINTS = frozenset({
    'create_market',
    'deposit_to_market',
    'create_proposal',
    'provision_liquidity',
    'mint_claims',
    'redeem_claims',
    'record_post_swap',
    'graduate_market',
    'resolve_market',
    'redeem_rewards',
    'transfer_claims',
    'transfer_synthetic',
    'set_synthetic_minter',
})

def load_state(params: EngineParams) -> EngineState:
    """Persisted store for the configured engine, or a fresh one."""
    state = fetch_engine_state(params['engine_address'])
    if state is None:
        logger.info(f"No stored state for engine {params['engine_address']}, starting empty")
        state = init_state(params)
    return state

def build_engine(context: MarketContext, state: EngineState) -> MarketEngine:
    return MarketEngine(state, context['venue'], context['assets'], context['gateways'], context['params'])

def run_entry_point(context: MarketContext, operation: str, *args: Any, **kwargs: Any) -> Any:
    """
    Load the store, run one engine entry point, then persist the store and its new events.
    Nothing is saved or published when the entry point raises.
    """
    if operation not in ENTRY_POINTS:
        raise ValueError(f"Unknown engine entry point: {operation}")

    params = context['params']
    state = load_state(params)
    engine = build_engine(context, state)

    try:
        result = getattr(engine, operation)(*args, **kwargs)
    except MarketError as e:
        logger.warning(f"{operation} rejected: {e}")
        raise

    new_events = engine.drain_events()
    save_engine_state(state)
    insert_events(params['engine_address'], new_events)
    publish_events(params['channel'], new_events)
    logger.info(f"{operation} committed with {len(new_events)} event(s)")
    return result

def create_market_service(context: MarketContext, caller: str, asset: str, min_deposit: Decimal,
                          deadline: int, gateway: str, now: Optional[int] = None) -> int:
    return run_entry_point(context, 'create_market', caller, asset, min_deposit, deadline, gateway, now=now)

def deposit_service(context: MarketContext, caller: str, market_id: int, amount: Decimal,
                    now: Optional[int] = None) -> Decimal:
    return run_entry_point(context, 'deposit_to_market', caller, market_id, amount, now=now)

def create_proposal_service(context: MarketContext, caller: str, market_id: int, description: str,
                            now: Optional[int] = None) -> int:
    return run_entry_point(context, 'create_proposal', caller, market_id, description, now=now)

def graduate_market_service(context: MarketContext, caller: str, market_id: int,
                            now: Optional[int] = None) -> int:
    return run_entry_point(context, 'graduate_market', caller, market_id, now=now)

def resolve_market_service(context: MarketContext, caller: str, market_id: int, outcome: Outcome,
                           proof: bytes) -> Any:
    return run_entry_point(context, 'resolve_market', caller, market_id, outcome, proof)

def redeem_rewards_service(context: MarketContext, caller: str, market_id: int) -> Decimal:
    return run_entry_point(context, 'redeem_rewards', caller, market_id)
