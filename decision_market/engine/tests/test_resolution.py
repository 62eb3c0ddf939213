import pytest
from decimal import Decimal

from decision_market.engine.errors import (
    InsufficientBalanceError,
    InvalidInputError,
    NothingToRedeemError,
    StateConflictError,
    UnauthorizedError,
    VerificationError,
)
from decision_market.engine.resolvers import SimpleResolver
from decision_market.engine.state import MarketStatus, Outcome, Side
from decision_market.engine.testing import (
    ALICE,
    BOB,
    CAROL,
    DEADLINE,
    NOW,
    RESOLVER_ADDRESS,
    STARTING_BALANCE,
    USDC_ADDRESS,
    FakeToken,
    accept_pool,
    accept_tick,
    open_proposal,
)


def graduate(engine, market_id):
    return engine.graduate_market(CAROL, market_id, now=DEADLINE)


def attest_and_resolve(engine, resolver, params, market_id, outcome):
    proposal_id = engine.get_accepted_proposal(market_id)
    proof = resolver.attest(params['operator_address'], proposal_id, outcome)
    return engine.resolve_market(CAROL, market_id, outcome, proof)


# Resolver

def test_resolver_attest_and_verify(resolver, params):
    proof = resolver.attest(params['operator_address'], 3, Outcome.REJECT)
    assert proof == SimpleResolver.attestation_digest(3, Outcome.REJECT)
    resolver.verify(3, Outcome.REJECT, proof)
    # Re-attesting the same outcome is allowed
    assert resolver.attest(params['operator_address'], 3, Outcome.REJECT) == proof


def test_resolver_rejects(resolver, params):
    with pytest.raises(UnauthorizedError):
        resolver.attest(ALICE, 3, Outcome.ACCEPT)
    with pytest.raises(VerificationError, match="No attestation"):
        resolver.verify(3, Outcome.ACCEPT, b'')

    proof = resolver.attest(params['operator_address'], 3, Outcome.ACCEPT)
    with pytest.raises(VerificationError, match="mismatch"):
        resolver.verify(3, Outcome.REJECT, SimpleResolver.attestation_digest(3, Outcome.REJECT))
    with pytest.raises(VerificationError, match="Invalid proof"):
        resolver.verify(3, Outcome.ACCEPT, proof[:-1])
    with pytest.raises(StateConflictError):
        resolver.attest(params['operator_address'], 3, Outcome.REJECT)


def test_resolver_needs_addresses():
    with pytest.raises(InvalidInputError):
        SimpleResolver(owner='0x' + '0' * 40, address=RESOLVER_ADDRESS)


# Resolution

def test_resolve_accept(engine, resolver, params, market_id):
    proposal_id = open_proposal(engine, market_id, ALICE)
    graduate(engine, market_id)

    status = attest_and_resolve(engine, resolver, params, market_id, Outcome.ACCEPT)
    assert status == MarketStatus.RESOLVED_ACCEPT
    assert engine.get_market(market_id)['status'] == MarketStatus.RESOLVED_ACCEPT
    assert engine.get_accepted_proposal(market_id) == proposal_id
    assert engine.events[-1]['payload']['outcome'] == 'ACCEPT'


def test_resolve_before_graduation(engine, market_id):
    open_proposal(engine, market_id, ALICE)
    with pytest.raises(StateConflictError):
        engine.resolve_market(CAROL, market_id, Outcome.ACCEPT, b'')


def test_resolve_with_bad_proof_rolls_back(engine, resolver, params, market_id):
    proposal_id = open_proposal(engine, market_id, ALICE)
    graduate(engine, market_id)
    resolver.attest(params['operator_address'], proposal_id, Outcome.ACCEPT)

    with pytest.raises(VerificationError):
        engine.resolve_market(CAROL, market_id, Outcome.ACCEPT, b'forged')
    with pytest.raises(VerificationError):
        engine.resolve_market(CAROL, market_id, Outcome.REJECT, SimpleResolver.attestation_digest(proposal_id, Outcome.REJECT))
    assert engine.get_market(market_id)['status'] == MarketStatus.PROPOSAL_ACCEPTED


def test_resolve_unknown_outcome(engine, market_id):
    open_proposal(engine, market_id, ALICE)
    graduate(engine, market_id)
    with pytest.raises(InvalidInputError):
        engine.resolve_market(CAROL, market_id, 'MAYBE', b'')


def test_resolved_market_is_final(engine, resolver, params, market_id):
    open_proposal(engine, market_id, ALICE)
    graduate(engine, market_id)
    attest_and_resolve(engine, resolver, params, market_id, Outcome.REJECT)

    with pytest.raises(StateConflictError):
        engine.graduate_market(CAROL, market_id, now=DEADLINE + 100)
    with pytest.raises(StateConflictError):
        attest_and_resolve(engine, resolver, params, market_id, Outcome.REJECT)
    assert engine.get_market(market_id)['status'] == MarketStatus.RESOLVED_REJECT


# Rewards

def test_redeem_before_resolution(engine, market_id):
    open_proposal(engine, market_id, ALICE)
    graduate(engine, market_id)
    with pytest.raises(StateConflictError):
        engine.redeem_rewards(ALICE, market_id)


def test_winning_side_payout(engine, venue, usdc, resolver, params, market_id):
    proposal_id = open_proposal(engine, market_id, ALICE)
    engine.mint_claims(BOB, proposal_id, Decimal('100'))
    engine.record_post_swap(venue.address, accept_pool(engine, proposal_id), accept_tick(engine, proposal_id, 0))
    graduate(engine, market_id)
    attest_and_resolve(engine, resolver, params, market_id, Outcome.ACCEPT)

    payout = engine.redeem_rewards(BOB, market_id)

    assert payout == Decimal('200')
    assert engine.claim_balance(BOB, proposal_id, Side.ACCEPT) == Decimal('0')
    assert engine.synthetic_balance(BOB, USDC_ADDRESS) == Decimal('0')
    # Losing-side claims are left untouched
    assert engine.claim_balance(BOB, proposal_id, Side.REJECT) == Decimal('100')
    assert usdc.balance_of(BOB) == STARTING_BALANCE - Decimal('100') + Decimal('200')

    with pytest.raises(NothingToRedeemError):
        engine.redeem_rewards(BOB, market_id)


def test_creator_redeems_creator_share(engine, usdc, resolver, params, market_id):
    proposal_id = open_proposal(engine, market_id, ALICE)
    graduate(engine, market_id)
    attest_and_resolve(engine, resolver, params, market_id, Outcome.REJECT)

    assert engine.redeem_rewards(ALICE, market_id) == Decimal('500')
    assert engine.claim_balance(ALICE, proposal_id, Side.REJECT) == Decimal('0')
    assert engine.claim_balance(ALICE, proposal_id, Side.ACCEPT) == Decimal('500')


def test_nothing_to_redeem_after_transferring_everything_away(engine, resolver, params, market_id):
    proposal_id = open_proposal(engine, market_id, ALICE)
    engine.mint_claims(BOB, proposal_id, Decimal('40'))
    engine.transfer_claims(BOB, CAROL, proposal_id, Side.ACCEPT, Decimal('40'))
    engine.transfer_synthetic(BOB, CAROL, USDC_ADDRESS, Decimal('40'))
    graduate(engine, market_id)
    attest_and_resolve(engine, resolver, params, market_id, Outcome.ACCEPT)

    with pytest.raises(NothingToRedeemError):
        engine.redeem_rewards(BOB, market_id)
    assert engine.redeem_rewards(CAROL, market_id) == Decimal('80')


def test_only_accepted_proposal_pays(engine, venue, resolver, params, market_id):
    first = open_proposal(engine, market_id, ALICE)
    second = open_proposal(engine, market_id, BOB)
    engine.record_post_swap(venue.address, accept_pool(engine, second), accept_tick(engine, second, 10))
    engine.mint_claims(CAROL, first, Decimal('5'))
    graduate(engine, market_id)
    attest_and_resolve(engine, resolver, params, market_id, Outcome.ACCEPT)

    # Accept claims of the non-accepted proposal do not count; the synthetic dollars do
    assert engine.redeem_rewards(CAROL, market_id) == Decimal('5')
    assert engine.claim_balance(CAROL, first, Side.ACCEPT) == Decimal('5')
    assert engine.redeem_rewards(BOB, market_id) == Decimal('500')


def test_synthetic_from_another_asset_does_not_pay_out(engine, usdc, params, resolver, market_id):
    junk = FakeToken('0x' + '7' * 40)
    for holder in (BOB, CAROL):
        junk.mint(holder, STARTING_BALANCE)
        junk.approve(holder, engine.engine_address, STARTING_BALANCE)
    engine.assets[junk.address] = junk

    open_proposal(engine, market_id, ALICE)
    junk_market = engine.create_market(BOB, junk.address, Decimal('10'), DEADLINE + 7200, RESOLVER_ADDRESS, now=NOW)
    junk_proposal = open_proposal(engine, junk_market, BOB)
    engine.mint_claims(CAROL, junk_proposal, Decimal('900'))
    assert engine.synthetic_balance(CAROL, junk.address) == Decimal('900')
    assert engine.synthetic_balance(CAROL, USDC_ADDRESS) == Decimal('0')

    graduate(engine, market_id)
    attest_and_resolve(engine, resolver, params, market_id, Outcome.ACCEPT)

    with pytest.raises(NothingToRedeemError):
        engine.redeem_rewards(CAROL, market_id)
    assert usdc.balance_of(CAROL) == STARTING_BALANCE
    with pytest.raises(InsufficientBalanceError):
        engine.transfer_synthetic(CAROL, BOB, USDC_ADDRESS, Decimal('1'))

    # The USDC custody still covers the creator share, and the junk units redeem in their own market
    assert engine.redeem_rewards(ALICE, market_id) == Decimal('500')
    engine.redeem_claims(CAROL, junk_proposal, Decimal('900'))
    assert junk.balance_of(CAROL) == STARTING_BALANCE
