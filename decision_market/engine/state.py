from enum import Enum
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from typing_extensions import TypedDict

from decision_market.config import EngineParams
from decision_market.utils import ZERO, to_jsonable
from .errors import NotFoundError


class MarketStatus(str, Enum):
    OPEN = 'OPEN'
    PROPOSAL_ACCEPTED = 'PROPOSAL_ACCEPTED'
    RESOLVED_ACCEPT = 'RESOLVED_ACCEPT'
    RESOLVED_REJECT = 'RESOLVED_REJECT'


class Side(str, Enum):
    ACCEPT = 'ACCEPT'
    REJECT = 'REJECT'


# The verification gateway confirms one of the two claim sides
Outcome = Side

SIDES = (Side.ACCEPT, Side.REJECT)
RESOLVED_STATUSES = (MarketStatus.RESOLVED_ACCEPT, MarketStatus.RESOLVED_REJECT)


class Market(TypedDict):
    market_id: int
    creator: str
    asset: str
    min_deposit: Decimal
    deadline: int
    gateway: str
    status: MarketStatus
    total_deposits: Decimal
    proposal_count: int
    created_at: int


class Proposal(TypedDict):
    proposal_id: int
    market_id: int
    creator: str
    description: str
    deposit: Decimal
    accept_token: str
    reject_token: str
    created_at: int


class PoolKey(TypedDict):
    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str


class ClaimInstance(TypedDict):
    token: str
    symbol: str
    proposal_id: int
    side: Side
    pool_key: PoolKey
    pool_id: str
    claim_is_token0: bool


class PriceTracker(TypedDict):
    proposal_id: Optional[int]
    max_price: Optional[Decimal]
    raw_tick: Optional[int]


class SyntheticLedger(TypedDict):
    address: str
    owner: str
    minter: str
    total_supply: Dict[str, Decimal]
    balances: Dict[Tuple[str, str], Decimal]


class EngineState(TypedDict):
    """
    The whole engine store. Owned by one MarketEngine; every other component only reads it.

    Composite keys:
      deposits      (market_id, participant)
      claims        (holder, proposal_id, side)
      claim_supply  (proposal_id, side)
      pool_index    pool_id -> (proposal_id, side)
      synthetic     balances (holder, asset), total_supply by asset

    Change notifications are not part of the store; MarketEngine buffers them
    per call and the service layer drains them into the events table.
    """
    engine_address: str
    next_market_id: int
    next_proposal_id: int
    markets: Dict[int, Market]
    proposals: Dict[int, Proposal]
    market_proposals: Dict[int, List[int]]
    trackers: Dict[int, PriceTracker]
    accepted: Dict[int, int]
    deposits: Dict[Tuple[int, str], Decimal]
    claim_instances: Dict[int, Dict[Side, ClaimInstance]]
    pool_index: Dict[str, Tuple[int, Side]]
    claims: Dict[Tuple[str, int, Side], Decimal]
    claim_supply: Dict[Tuple[int, Side], Decimal]
    synthetic: SyntheticLedger
    seeded: Dict[int, Decimal]
    locked: bool


def init_state(params: EngineParams) -> EngineState:
    """
    Initialize an empty store. The engine is the synthetic-dollar minter, the operator its owner.
    """
    return {
        'engine_address': params['engine_address'],
        'next_market_id': 1,
        'next_proposal_id': 1,
        'markets': {},
        'proposals': {},
        'market_proposals': {},
        'trackers': {},
        'accepted': {},
        'deposits': {},
        'claim_instances': {},
        'pool_index': {},
        'claims': {},
        'claim_supply': {},
        'synthetic': {
            'address': params['synthetic_address'],
            'owner': params['operator_address'],
            'minter': params['engine_address'],
            'total_supply': {},
            'balances': {},
        },
        'seeded': {},
        'locked': False,
    }


def get_market(state: EngineState, market_id: int) -> Market:
    market = state['markets'].get(market_id)
    if market is None:
        raise NotFoundError(f"Market not found: {market_id}")
    return market


def get_proposal(state: EngineState, proposal_id: int) -> Proposal:
    proposal = state['proposals'].get(proposal_id)
    if proposal is None:
        raise NotFoundError(f"Proposal not found: {proposal_id}")
    return proposal


def get_tracker(state: EngineState, market_id: int) -> PriceTracker:
    get_market(state, market_id)
    return state['trackers'][market_id]


def get_deposit(state: EngineState, market_id: int, participant: str) -> Decimal:
    return state['deposits'].get((market_id, participant), ZERO)


# Serialization: composite tuple keys are joined with '|', enums and Decimals become strings.

def _join(key: Tuple[Any, ...]) -> str:
    return '|'.join(str(part.value if isinstance(part, Enum) else part) for part in key)


def serialize_state(state: EngineState) -> Dict[str, Any]:
    """
    Serialize state to JSON-compatible dict, converting int and tuple keys to str.
    """
    serialized = {
        'engine_address': state['engine_address'],
        'next_market_id': state['next_market_id'],
        'next_proposal_id': state['next_proposal_id'],
        'markets': {str(k): _enum_values(v) for k, v in state['markets'].items()},
        'proposals': {str(k): dict(v) for k, v in state['proposals'].items()},
        'market_proposals': {str(k): list(v) for k, v in state['market_proposals'].items()},
        'trackers': {str(k): dict(v) for k, v in state['trackers'].items()},
        'accepted': {str(k): v for k, v in state['accepted'].items()},
        'deposits': {_join(k): v for k, v in state['deposits'].items()},
        'claim_instances': {
            str(pid): {side.value: _enum_values(inst) for side, inst in sides.items()}
            for pid, sides in state['claim_instances'].items()
        },
        'pool_index': {k: [pid, side.value] for k, (pid, side) in state['pool_index'].items()},
        'claims': {_join(k): v for k, v in state['claims'].items()},
        'claim_supply': {_join(k): v for k, v in state['claim_supply'].items()},
        'synthetic': {
            **state['synthetic'],
            'total_supply': dict(state['synthetic']['total_supply']),
            'balances': {_join(k): v for k, v in state['synthetic']['balances'].items()},
        },
        'seeded': {str(k): v for k, v in state['seeded'].items()},
        'locked': state['locked'],
    }
    return to_jsonable(serialized)


def _enum_values(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in record.items()}


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(value)


def deserialize_state(json_dict: Dict[str, Any]) -> EngineState:
    """
    Deserialize from JSON dict, restoring int/tuple keys, enums and Decimals.
    """
    markets = {}
    for k, m in json_dict['markets'].items():
        markets[int(k)] = {
            **m,
            'status': MarketStatus(m['status']),
            'min_deposit': Decimal(m['min_deposit']),
            'total_deposits': Decimal(m['total_deposits']),
        }

    proposals = {int(k): {**p, 'deposit': Decimal(p['deposit'])} for k, p in json_dict['proposals'].items()}

    trackers = {}
    for k, t in json_dict['trackers'].items():
        trackers[int(k)] = {
            'proposal_id': t['proposal_id'],
            'max_price': _optional_decimal(t['max_price']),
            'raw_tick': t['raw_tick'],
        }

    deposits = {}
    for k, v in json_dict['deposits'].items():
        market_id, participant = k.split('|')
        deposits[(int(market_id), participant)] = Decimal(v)

    claims = {}
    for k, v in json_dict['claims'].items():
        holder, proposal_id, side = k.split('|')
        claims[(holder, int(proposal_id), Side(side))] = Decimal(v)

    claim_supply = {}
    for k, v in json_dict['claim_supply'].items():
        proposal_id, side = k.split('|')
        claim_supply[(int(proposal_id), Side(side))] = Decimal(v)

    claim_instances = {}
    for pid, sides in json_dict['claim_instances'].items():
        claim_instances[int(pid)] = {
            Side(side): {**inst, 'side': Side(inst['side'])} for side, inst in sides.items()
        }

    synthetic = json_dict['synthetic']
    synthetic_balances = {}
    for k, v in synthetic['balances'].items():
        holder, asset = k.split('|')
        synthetic_balances[(holder, asset)] = Decimal(v)

    return {
        'engine_address': json_dict['engine_address'],
        'next_market_id': json_dict['next_market_id'],
        'next_proposal_id': json_dict['next_proposal_id'],
        'markets': markets,
        'proposals': proposals,
        'market_proposals': {int(k): list(v) for k, v in json_dict['market_proposals'].items()},
        'trackers': trackers,
        'accepted': {int(k): v for k, v in json_dict['accepted'].items()},
        'deposits': deposits,
        'claim_instances': claim_instances,
        'pool_index': {k: (v[0], Side(v[1])) for k, v in json_dict['pool_index'].items()},
        'claims': claims,
        'claim_supply': claim_supply,
        'synthetic': {
            **synthetic,
            'total_supply': {k: Decimal(v) for k, v in synthetic['total_supply'].items()},
            'balances': synthetic_balances,
        },
        'seeded': {int(k): Decimal(v) for k, v in json_dict['seeded'].items()},
        'locked': json_dict['locked'],
    }
