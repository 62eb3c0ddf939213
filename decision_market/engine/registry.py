import hashlib
import json
from typing import Dict, Optional, Tuple

from decision_market.config import EngineParams
from .errors import NotFoundError, StateConflictError
from .state import ClaimInstance, EngineState, PoolKey, SIDES, Side

_SYMBOL_PREFIX = {Side.ACCEPT: 'ACC', Side.REJECT: 'REJ'}


def derive_claim_token(engine_address: str, proposal_id: int, side: Side) -> str:
    """
    Deterministic, globally unique token identifier for one side of a proposal.
    """
    seed = f"{engine_address.lower()}:{proposal_id}:{Side(side).value}".encode()
    return '0x' + hashlib.sha256(seed).hexdigest()[:40]


def make_pool_key(claim_token: str, quote_token: str, params: EngineParams) -> Tuple[PoolKey, bool]:
    """
    Pool key pairing a claim with the synthetic dollar. Currencies are sorted by address,
    so the second value reports whether the claim ended up as currency0.
    """
    currency0, currency1 = sorted([claim_token.lower(), quote_token.lower()])
    pool_key: PoolKey = {
        'currency0': currency0,
        'currency1': currency1,
        'fee': params['pool_fee'],
        'tick_spacing': params['tick_spacing'],
        'hooks': params['hooks_address'].lower(),
    }
    return pool_key, currency0 == claim_token.lower()


def pool_id_for(pool_key: PoolKey) -> str:
    encoded = json.dumps(pool_key, sort_keys=True).encode()
    return '0x' + hashlib.sha256(encoded).hexdigest()


def to_pool_id(pool: str | PoolKey) -> str:
    """Accept either a venue pool id or a full pool key."""
    if isinstance(pool, dict):
        return pool_id_for(pool)
    return pool


def register_claim_instances(state: EngineState, proposal_id: int, params: EngineParams) -> Dict[Side, ClaimInstance]:
    """
    Allocate the accept/reject instances for a proposal and index their pools.
    """
    if proposal_id in state['claim_instances']:
        raise StateConflictError(f"Claim instances already registered for proposal {proposal_id}")

    quote_token = state['synthetic']['address']
    instances: Dict[Side, ClaimInstance] = {}
    for side in SIDES:
        token = derive_claim_token(state['engine_address'], proposal_id, side)
        pool_key, claim_is_token0 = make_pool_key(token, quote_token, params)
        pool_id = pool_id_for(pool_key)
        if pool_id in state['pool_index']:
            raise StateConflictError(f"Pool {pool_id} is already mapped to proposal {state['pool_index'][pool_id][0]}")
        instances[side] = {
            'token': token,
            'symbol': f"{_SYMBOL_PREFIX[side]}-{proposal_id}",
            'proposal_id': proposal_id,
            'side': side,
            'pool_key': pool_key,
            'pool_id': pool_id,
            'claim_is_token0': claim_is_token0,
        }

    state['claim_instances'][proposal_id] = instances
    for side, instance in instances.items():
        state['pool_index'][instance['pool_id']] = (proposal_id, side)
    return instances


def get_claim_instances(state: EngineState, proposal_id: int) -> Dict[Side, ClaimInstance]:
    instances = state['claim_instances'].get(proposal_id)
    if instances is None:
        raise NotFoundError(f"No claim instances for proposal {proposal_id}")
    return instances


def lookup_pool(state: EngineState, pool: str | PoolKey) -> Optional[Tuple[int, Side]]:
    return state['pool_index'].get(to_pool_id(pool))


def resolve_pool(state: EngineState, pool: str | PoolKey) -> Tuple[ClaimInstance, int, Side]:
    """
    Map a venue pool to (instance, proposal_id, side), raising NotFoundError for unknown pools.
    """
    pool_id = to_pool_id(pool)
    entry = state['pool_index'].get(pool_id)
    if entry is None:
        raise NotFoundError(f"Unknown pool: {pool_id}")
    proposal_id, side = entry
    return state['claim_instances'][proposal_id][side], proposal_id, side
