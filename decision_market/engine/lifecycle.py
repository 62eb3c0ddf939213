"""
Lifecycle engine: the market/proposal state machine and every mutating entry point.

    OPEN --graduate--> PROPOSAL_ACCEPTED --resolve--> RESOLVED_ACCEPT | RESOLVED_REJECT

Entry points are serialized through a single store-wide lock and are atomic:
the store is snapshotted on entry and restored if anything raises, including
the venue, the verification gateway or a market's deposit asset. Transfers of
the external deposit asset run after the store has been updated, so a failing
transfer rolls every update back.

Deadlines are plain data: time-dependent entry points take the caller-supplied
`now` (unix seconds) and fall back to the wall clock only when it is omitted.

Change notifications are buffered on the engine, not in the store; the
service layer drains them after each committed call.
"""
import copy
import functools
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from decision_market.config import EngineParams, get_default_engine_params
from decision_market.utils import ZERO, floor_amount, get_current_s, is_null_address, to_jsonable
from . import ledger
from .errors import (
    ExternalCallError,
    InsufficientBalanceError,
    InvalidInputError,
    MarketError,
    NotFoundError,
    NothingToRedeemError,
    ReentrancyError,
    StateConflictError,
    UnauthorizedError,
)
from .interfaces import FungibleAsset, Venue, VerificationGateway
from .pricing import price_to_tick, tick_to_price, validate_tick
from .registry import get_claim_instances, lookup_pool, register_claim_instances, resolve_pool
from .state import (
    ClaimInstance,
    EngineState,
    Market,
    MarketStatus,
    Outcome,
    PriceTracker,
    Proposal,
    RESOLVED_STATUSES,
    SIDES,
    Side,
    get_deposit,
    get_market,
    get_proposal,
    get_tracker,
)

logger = logging.getLogger(__name__)


def entry_point(method: Callable[..., Any]) -> Callable[..., Any]:
    """
    Refuse re-entry, snapshot the store, and restore the snapshot (and drop the
    call's buffered events) if the call raises.
    """
    @functools.wraps(method)
    def wrapper(self: 'MarketEngine', *args: Any, **kwargs: Any) -> Any:
        state = self.state
        if state['locked']:
            raise ReentrancyError(f"{method.__name__} called while another entry point is running")
        snapshot = copy.deepcopy(state)
        buffered = len(self.events)
        state['locked'] = True
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            state.clear()
            state.update(snapshot)
            del self.events[buffered:]
            logger.warning(f"{method.__name__} rolled back: {type(e).__name__}: {e}")
            raise
        finally:
            state['locked'] = False
    return wrapper


def split_min_deposit(min_deposit: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Split a proposal deposit into (creator share, liquidity share).

    The creator share is half the deposit rounded down to the token base unit;
    the liquidity share takes the remainder, so an odd number of base units
    always leaves the extra unit with the liquidity seeded into the venue.
    """
    creator_share = floor_amount(min_deposit / 2)
    return creator_share, min_deposit - creator_share


class MarketEngine:
    """
    Owns the store and every write to it.

    Collaborators are injected: the venue the claims trade on, the deposit
    assets markets may use (by address) and the verification gateways markets
    may resolve through (by address).
    """

    def __init__(
        self,
        state: EngineState,
        venue: Venue,
        assets: Mapping[str, FungibleAsset],
        gateways: Mapping[str, VerificationGateway],
        params: Optional[EngineParams] = None,
    ):
        self.params = params or get_default_engine_params()
        if state['engine_address'] != self.params['engine_address']:
            raise InvalidInputError(
                f"Store belongs to {state['engine_address']}, params name {self.params['engine_address']}")
        self.state = state
        self.venue = venue
        self.assets: Dict[str, FungibleAsset] = dict(assets)
        self.gateways: Dict[str, VerificationGateway] = dict(gateways)
        self.events: List[Dict[str, Any]] = []

    @property
    def engine_address(self) -> str:
        return self.state['engine_address']

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, event_type: str, **payload: Any) -> None:
        self.events.append({'type': event_type, 'payload': to_jsonable(payload)})

    def drain_events(self) -> List[Dict[str, Any]]:
        """Hand over the change notifications of committed calls and clear the buffer."""
        events, self.events = self.events, []
        return events

    def _external(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except MarketError:
            raise
        except Exception as e:
            logger.error(f"{what} failed: {e}")
            raise ExternalCallError(f"{what} failed: {e}") from e

    @staticmethod
    def _now(now: Optional[int]) -> int:
        if now is None:
            return get_current_s()
        if isinstance(now, bool) or not isinstance(now, int):
            raise InvalidInputError(f"Time must be integer seconds, got {now!r}")
        return now

    @staticmethod
    def _check_caller(caller: str) -> None:
        if is_null_address(caller):
            raise InvalidInputError(f"Invalid caller address: {caller!r}")

    @staticmethod
    def _require_status(market: Market, *allowed: MarketStatus) -> None:
        if market['status'] not in allowed:
            expected = ' or '.join(s.value for s in allowed)
            raise StateConflictError(
                f"Market {market['market_id']} is {MarketStatus(market['status']).value}, expected {expected}")

    @staticmethod
    def _require_before_deadline(market: Market, now: int) -> None:
        if now >= market['deadline']:
            raise StateConflictError(
                f"Market {market['market_id']} deadline {market['deadline']} has passed (now {now})")

    def _asset(self, market: Market) -> FungibleAsset:
        asset = self.assets.get(market['asset'])
        if asset is None:
            raise ExternalCallError(f"Deposit asset {market['asset']} of market {market['market_id']} is not available")
        return asset

    def _require_balance(self, asset: FungibleAsset, holder: str, amount: Decimal, what: str) -> None:
        balance = self._external('balance query', asset.balance_of, holder)
        if balance < amount:
            raise InsufficientBalanceError(f"Insufficient {what} for {holder}: have {balance}, need {amount}")

    def _pay_out(self, market: Market, recipient: str, amount: Decimal) -> None:
        asset = self._asset(market)
        self._require_balance(asset, self.engine_address, amount, 'engine custody')
        self._external('payout transfer', asset.transfer, self.engine_address, recipient, amount)

    # ------------------------------------------------------------------
    # Market lifecycle
    # ------------------------------------------------------------------

    @entry_point
    def create_market(self, caller: str, asset: str, min_deposit: Decimal, deadline: int, gateway: str,
                      now: Optional[int] = None) -> int:
        now = self._now(now)
        self._check_caller(caller)
        if is_null_address(asset):
            raise InvalidInputError(f"Invalid asset address: {asset!r}")
        if asset not in self.assets:
            raise InvalidInputError(f"Unknown deposit asset: {asset}")
        if is_null_address(gateway):
            raise InvalidInputError(f"Invalid gateway address: {gateway!r}")
        if gateway not in self.gateways:
            raise InvalidInputError(f"Unknown verification gateway: {gateway}")
        ledger.check_amount(min_deposit)
        if isinstance(deadline, bool) or not isinstance(deadline, int) or deadline <= now:
            raise InvalidInputError(f"Deadline must be in the future: {deadline!r} (now {now})")

        state = self.state
        market_id = state['next_market_id']
        state['next_market_id'] += 1
        state['markets'][market_id] = {
            'market_id': market_id,
            'creator': caller,
            'asset': asset,
            'min_deposit': min_deposit,
            'deadline': deadline,
            'gateway': gateway,
            'status': MarketStatus.OPEN,
            'total_deposits': ZERO,
            'proposal_count': 0,
            'created_at': now,
        }
        state['trackers'][market_id] = {'proposal_id': None, 'max_price': None, 'raw_tick': None}
        state['market_proposals'][market_id] = []

        self._emit('MARKET_CREATED', market_id=market_id, creator=caller, asset=asset,
                   min_deposit=min_deposit, deadline=deadline, gateway=gateway)
        logger.info(f"Created market {market_id} (min deposit {min_deposit}, deadline {deadline})")
        return market_id

    @entry_point
    def deposit_to_market(self, caller: str, market_id: int, amount: Decimal, now: Optional[int] = None) -> Decimal:
        now = self._now(now)
        self._check_caller(caller)
        market = get_market(self.state, market_id)
        self._require_status(market, MarketStatus.OPEN)
        self._require_before_deadline(market, now)
        ledger.check_amount(amount)
        asset = self._asset(market)
        self._require_balance(asset, caller, amount, 'deposit asset')

        key = (market_id, caller)
        balance = get_deposit(self.state, market_id, caller) + amount
        self.state['deposits'][key] = balance
        market['total_deposits'] += amount

        self._external('deposit transfer', asset.transfer_from, self.engine_address, caller, self.engine_address, amount)

        self._emit('DEPOSIT_RECORDED', market_id=market_id, participant=caller, amount=amount, balance=balance)
        logger.info(f"Market {market_id}: {caller} deposited {amount} (available {balance})")
        return balance

    @entry_point
    def create_proposal(self, caller: str, market_id: int, description: str, now: Optional[int] = None) -> int:
        now = self._now(now)
        self._check_caller(caller)
        if not isinstance(description, str):
            raise InvalidInputError(f"Description must be text, got {type(description).__name__}")
        state = self.state
        market = get_market(state, market_id)
        self._require_status(market, MarketStatus.OPEN)
        self._require_before_deadline(market, now)

        min_deposit = market['min_deposit']
        available = get_deposit(state, market_id, caller)
        if available < min_deposit:
            raise InsufficientBalanceError(
                f"Market {market_id}: {caller} has {available} deposited, proposals need {min_deposit}")

        proposal_id = state['next_proposal_id']
        state['next_proposal_id'] += 1
        market['proposal_count'] += 1

        remaining = available - min_deposit
        if remaining == ZERO:
            state['deposits'].pop((market_id, caller), None)
        else:
            state['deposits'][(market_id, caller)] = remaining

        creator_share, liquidity_share = split_min_deposit(min_deposit)
        if creator_share > ZERO:
            ledger.mint_claim_pair(state, self.engine_address, caller, proposal_id, creator_share)
        ledger.mint_claim_pair(state, self.engine_address, self.engine_address, proposal_id, liquidity_share)
        ledger.mint_synthetic(state, self.engine_address, self.engine_address, market['asset'], liquidity_share)

        instances = register_claim_instances(state, proposal_id, self.params)
        state['proposals'][proposal_id] = {
            'proposal_id': proposal_id,
            'market_id': market_id,
            'creator': caller,
            'description': description,
            'deposit': min_deposit,
            'accept_token': instances[Side.ACCEPT]['token'],
            'reject_token': instances[Side.REJECT]['token'],
            'created_at': now,
        }
        state['market_proposals'][market_id].append(proposal_id)

        initial_price = Decimal(self.params['initial_claim_price'])
        for side in SIDES:
            instance = instances[side]
            # A pool left behind by a rolled-back attempt is reused as is
            if self._external('pool lookup', self.venue.pool_exists, instance['pool_id']):
                logger.info(f"Proposal {proposal_id}: reusing existing {side.value} pool {instance['pool_id'][:10]}")
                continue
            tick = price_to_tick(initial_price, instance['claim_is_token0'])
            pool_id = self._external('pool initialization', self.venue.initialize_pool, instance['pool_key'], tick)
            if pool_id != instance['pool_id']:
                raise ExternalCallError(
                    f"Venue returned pool {pool_id} for proposal {proposal_id} {side.value}, expected {instance['pool_id']}")

        self._emit('PROPOSAL_CREATED', proposal_id=proposal_id, market_id=market_id, creator=caller,
                   description=description,
                   accept_token=instances[Side.ACCEPT]['token'], reject_token=instances[Side.REJECT]['token'],
                   accept_pool=instances[Side.ACCEPT]['pool_id'], reject_pool=instances[Side.REJECT]['pool_id'],
                   creator_share=creator_share, liquidity_share=liquidity_share)
        logger.info(f"Market {market_id}: proposal {proposal_id} created by {caller} "
                    f"(creator share {creator_share}, liquidity share {liquidity_share})")
        return proposal_id

    @entry_point
    def provision_liquidity(self, caller: str, proposal_id: int) -> Decimal:
        """
        Move the engine's seed claims and synthetic dollars for a proposal into the venue.
        """
        if caller != self.params['operator_address']:
            raise UnauthorizedError(f"Only the operator can provision liquidity, not {caller}")
        state = self.state
        proposal = get_proposal(state, proposal_id)
        market = get_market(state, proposal['market_id'])
        self._require_status(market, MarketStatus.OPEN)
        if proposal_id in state['seeded']:
            raise StateConflictError(f"Liquidity for proposal {proposal_id} was already provisioned")

        _, liquidity_share = split_min_deposit(proposal['deposit'])
        quote_accept = floor_amount(liquidity_share / 2)
        quotes = {Side.ACCEPT: quote_accept, Side.REJECT: liquidity_share - quote_accept}
        instances = get_claim_instances(state, proposal_id)
        venue_address = self.venue.address

        for side in SIDES:
            ledger.transfer_claim(state, self.engine_address, venue_address, proposal_id, side, liquidity_share)
            if quotes[side] > ZERO:
                ledger.transfer_synthetic(state, self.engine_address, venue_address, market['asset'], quotes[side])
        state['seeded'][proposal_id] = liquidity_share

        # One all-or-nothing venue call funds both pools
        positions = [(instances[side]['pool_id'], liquidity_share, quotes[side]) for side in SIDES]
        self._external('add liquidity', self.venue.add_liquidity, positions)

        self._emit('LIQUIDITY_PROVISIONED', proposal_id=proposal_id, claim_amount=liquidity_share,
                   accept_quote=quotes[Side.ACCEPT], reject_quote=quotes[Side.REJECT])
        logger.info(f"Proposal {proposal_id}: provisioned {liquidity_share} claims per side to the venue")
        return liquidity_share

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    @entry_point
    def mint_claims(self, caller: str, proposal_id: int, amount: Decimal) -> None:
        self._check_caller(caller)
        state = self.state
        proposal = get_proposal(state, proposal_id)
        market = get_market(state, proposal['market_id'])
        self._require_status(market, MarketStatus.OPEN)
        ledger.check_amount(amount)
        asset = self._asset(market)
        self._require_balance(asset, caller, amount, 'deposit asset')

        ledger.mint_claim_pair(state, self.engine_address, caller, proposal_id, amount)
        ledger.mint_synthetic(state, self.engine_address, caller, market['asset'], amount)

        self._external('mint payment', asset.transfer_from, self.engine_address, caller, self.engine_address, amount)

        self._emit('CLAIMS_MINTED', proposal_id=proposal_id, holder=caller, amount=amount)
        logger.info(f"Proposal {proposal_id}: {caller} minted {amount} claim pairs")

    @entry_point
    def redeem_claims(self, caller: str, proposal_id: int, amount: Decimal) -> None:
        self._check_caller(caller)
        state = self.state
        proposal = get_proposal(state, proposal_id)
        market = get_market(state, proposal['market_id'])
        ledger.check_amount(amount)
        synthetic = ledger.synthetic_balance(state, caller, market['asset'])
        if synthetic < amount:
            raise InsufficientBalanceError(
                f"Insufficient synthetic dollars ({market['asset']}) for {caller}: have {synthetic}, need {amount}")

        ledger.burn_claim_pair(state, self.engine_address, caller, proposal_id, amount)
        ledger.burn_synthetic(state, self.engine_address, caller, market['asset'], amount)

        self._pay_out(market, caller, amount)

        self._emit('CLAIMS_REDEEMED', proposal_id=proposal_id, holder=caller, amount=amount)
        logger.info(f"Proposal {proposal_id}: {caller} redeemed {amount} claim pairs")

    # ------------------------------------------------------------------
    # Venue callbacks
    # ------------------------------------------------------------------

    def validate_swap(self, caller: str, pool: Any) -> Tuple[int, Side]:
        """
        Pre-trade gate. Returns (proposal_id, side) when the trade may proceed and
        raises otherwise. Reads only.
        """
        if caller != self.venue.address:
            raise UnauthorizedError(f"Only the venue can validate swaps, not {caller}")
        entry = lookup_pool(self.state, pool)
        if entry is None:
            raise NotFoundError(f"Swap rejected: pool {pool!r} is not a claim pool")
        proposal_id, side = entry
        market = get_market(self.state, self.state['proposals'][proposal_id]['market_id'])
        if market['status'] != MarketStatus.OPEN:
            raise StateConflictError(
                f"Swap rejected: market {market['market_id']} is {MarketStatus(market['status']).value}")
        return proposal_id, side

    @entry_point
    def record_post_swap(self, caller: str, pool: Any, average_tick: int) -> bool:
        """
        Post-trade price report. Returns True when the market's graduation tracker moved.
        """
        if caller != self.venue.address:
            raise UnauthorizedError(f"Only the venue can report swaps, not {caller}")
        validate_tick(average_tick)
        instance, proposal_id, side = resolve_pool(self.state, pool)
        market_id = self.state['proposals'][proposal_id]['market_id']
        market = get_market(self.state, market_id)
        self._require_status(market, MarketStatus.OPEN)
        if side != Side.ACCEPT:
            return False

        price = tick_to_price(average_tick, instance['claim_is_token0'])
        tracker = self.state['trackers'][market_id]
        # Strictly greater: on ties the earlier-recorded proposal keeps the lead
        if tracker['max_price'] is not None and price <= tracker['max_price']:
            return False

        tracker['proposal_id'] = proposal_id
        tracker['max_price'] = price
        tracker['raw_tick'] = average_tick
        self._emit('PRICE_UPDATED', market_id=market_id, proposal_id=proposal_id, price=price, tick=average_tick)
        logger.info(f"Market {market_id}: proposal {proposal_id} leads at {price} (tick {average_tick})")
        return True

    # ------------------------------------------------------------------
    # Graduation, resolution, rewards
    # ------------------------------------------------------------------

    @entry_point
    def graduate_market(self, caller: str, market_id: int, now: Optional[int] = None) -> int:
        now = self._now(now)
        state = self.state
        market = get_market(state, market_id)
        self._require_status(market, MarketStatus.OPEN)
        if now < market['deadline']:
            raise StateConflictError(
                f"Market {market_id} deadline {market['deadline']} has not passed (now {now})")
        if market['proposal_count'] == 0:
            raise StateConflictError(f"Market {market_id} has no proposals to graduate")

        tracker = state['trackers'][market_id]
        fallback = tracker['proposal_id'] is None
        accepted = min(state['market_proposals'][market_id]) if fallback else tracker['proposal_id']

        market['status'] = MarketStatus.PROPOSAL_ACCEPTED
        state['accepted'][market_id] = accepted

        self._emit('MARKET_GRADUATED', market_id=market_id, proposal_id=accepted,
                   max_price=tracker['max_price'], tick=tracker['raw_tick'], fallback=fallback)
        logger.info(f"Market {market_id} graduated: proposal {accepted} accepted"
                    + (" (no trades, earliest proposal)" if fallback else f" at {tracker['max_price']}"))
        return accepted

    @entry_point
    def resolve_market(self, caller: str, market_id: int, outcome: Outcome, proof: bytes) -> MarketStatus:
        market = get_market(self.state, market_id)
        self._require_status(market, MarketStatus.PROPOSAL_ACCEPTED)
        try:
            outcome = Outcome(outcome)
        except ValueError:
            raise InvalidInputError(f"Unknown outcome: {outcome!r}")
        gateway = self.gateways.get(market['gateway'])
        if gateway is None:
            raise ExternalCallError(f"Verification gateway {market['gateway']} of market {market_id} is not available")

        proposal_id = self.state['accepted'][market_id]
        self._external('verification', gateway.verify, proposal_id, outcome, proof)

        status = MarketStatus.RESOLVED_ACCEPT if outcome == Outcome.ACCEPT else MarketStatus.RESOLVED_REJECT
        market['status'] = status

        self._emit('MARKET_RESOLVED', market_id=market_id, proposal_id=proposal_id, outcome=outcome.value)
        logger.info(f"Market {market_id} resolved {outcome.value} for proposal {proposal_id}")
        return status

    @entry_point
    def redeem_rewards(self, caller: str, market_id: int) -> Decimal:
        self._check_caller(caller)
        state = self.state
        market = get_market(state, market_id)
        self._require_status(market, *RESOLVED_STATUSES)

        side = Side.ACCEPT if market['status'] == MarketStatus.RESOLVED_ACCEPT else Side.REJECT
        proposal_id = state['accepted'][market_id]
        claims = ledger.claim_balance(state, caller, proposal_id, side)
        synthetic = ledger.synthetic_balance(state, caller, market['asset'])
        if claims == ZERO and synthetic == ZERO:
            raise NothingToRedeemError(
                f"Nothing to redeem for {caller} in market {market_id} ({side.value} side of proposal {proposal_id})")

        if claims > ZERO:
            ledger.burn_claim(state, self.engine_address, caller, proposal_id, side, claims)
        if synthetic > ZERO:
            ledger.burn_synthetic(state, self.engine_address, caller, market['asset'], synthetic)
        payout = claims + synthetic

        self._pay_out(market, caller, payout)

        self._emit('REWARDS_REDEEMED', market_id=market_id, proposal_id=proposal_id, holder=caller,
                   side=side.value, claims=claims, synthetic=synthetic, payout=payout)
        logger.info(f"Market {market_id}: {caller} redeemed {payout} ({claims} {side.value} + {synthetic} synthetic)")
        return payout

    @entry_point
    def set_synthetic_minter(self, caller: str, minter: str) -> None:
        ledger.set_minter(self.state, caller, minter)
        self._emit('MINTER_CHANGED', minter=minter)

    # ------------------------------------------------------------------
    # Holder transfers
    # ------------------------------------------------------------------

    @entry_point
    def transfer_claims(self, caller: str, recipient: str, proposal_id: int, side: Side, amount: Decimal) -> None:
        self._check_caller(caller)
        get_proposal(self.state, proposal_id)
        ledger.transfer_claim(self.state, caller, recipient, proposal_id, side, amount)
        self._emit('CLAIMS_TRANSFERRED', proposal_id=proposal_id, side=Side(side).value,
                   sender=caller, recipient=recipient, amount=amount)

    @entry_point
    def transfer_synthetic(self, caller: str, recipient: str, asset: str, amount: Decimal) -> None:
        self._check_caller(caller)
        ledger.transfer_synthetic(self.state, caller, recipient, asset, amount)
        self._emit('SYNTHETIC_TRANSFERRED', sender=caller, recipient=recipient, asset=asset, amount=amount)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def get_market(self, market_id: int) -> Market:
        return dict(get_market(self.state, market_id))

    def get_proposal(self, proposal_id: int) -> Proposal:
        return dict(get_proposal(self.state, proposal_id))

    def get_accepted_proposal(self, market_id: int) -> Optional[int]:
        get_market(self.state, market_id)
        return self.state['accepted'].get(market_id)

    def get_deposit(self, market_id: int, participant: str) -> Decimal:
        get_market(self.state, market_id)
        return get_deposit(self.state, market_id, participant)

    def get_tracker(self, market_id: int) -> PriceTracker:
        return dict(get_tracker(self.state, market_id))

    def get_claim_instances(self, proposal_id: int) -> Dict[Side, ClaimInstance]:
        return dict(get_claim_instances(self.state, proposal_id))

    def claim_balance(self, holder: str, proposal_id: int, side: Side) -> Decimal:
        return ledger.claim_balance(self.state, holder, proposal_id, side)

    def synthetic_balance(self, holder: str, asset: str) -> Decimal:
        return ledger.synthetic_balance(self.state, holder, asset)

    def spot_price(self, proposal_id: int, side: Side) -> Decimal:
        """Display-only price from the venue's current tick; never feeds graduation."""
        instance = get_claim_instances(self.state, proposal_id)[Side(side)]
        tick = self._external('tick query', self.venue.current_tick, instance['pool_id'])
        return tick_to_price(tick, instance['claim_is_token0'])
