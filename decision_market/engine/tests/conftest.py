import pytest

from decision_market.config import EngineParams, get_default_engine_params
from decision_market.engine.lifecycle import MarketEngine
from decision_market.engine.resolvers import SimpleResolver
from decision_market.engine.state import EngineState, init_state
from decision_market.engine.testing import (
    ALICE,
    BOB,
    CAROL,
    DEADLINE,
    MIN_DEPOSIT,
    NOW,
    RESOLVER_ADDRESS,
    STARTING_BALANCE,
    USDC_ADDRESS,
    FakeToken,
    FakeVenue,
)


@pytest.fixture
def params() -> EngineParams:
    return get_default_engine_params()


@pytest.fixture
def state(params: EngineParams) -> EngineState:
    return init_state(params)


@pytest.fixture
def usdc(params: EngineParams) -> FakeToken:
    token = FakeToken(USDC_ADDRESS)
    for holder in (ALICE, BOB, CAROL):
        token.mint(holder, STARTING_BALANCE)
        token.approve(holder, params['engine_address'], STARTING_BALANCE)
    return token


@pytest.fixture
def venue(params: EngineParams) -> FakeVenue:
    return FakeVenue(params['venue_address'])


@pytest.fixture
def resolver(params: EngineParams) -> SimpleResolver:
    return SimpleResolver(owner=params['operator_address'], address=RESOLVER_ADDRESS)


@pytest.fixture
def engine(state, venue, usdc, resolver, params) -> MarketEngine:
    return MarketEngine(state, venue, {usdc.address: usdc}, {resolver.address: resolver}, params)


@pytest.fixture
def market_id(engine: MarketEngine) -> int:
    return engine.create_market(ALICE, USDC_ADDRESS, MIN_DEPOSIT, DEADLINE, RESOLVER_ADDRESS, now=NOW)
