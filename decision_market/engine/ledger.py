"""
Token ledgers owned by the engine.

Two ledgers live inside the store:

* the synthetic dollar, the quote unit paired against every claim in the
  venue, held per (holder, reference asset) so a unit minted against one
  market asset is never redeemed out of another. Only the configured minter
  may mint or burn; the owner may rotate the minter.
* outcome claims, keyed by (holder, proposal_id, side). Only the engine may
  mint or burn. Claim pairs are minted and burned in lockstep through
  mint_claim_pair / burn_claim_pair; single-side burns are reserved for
  reward redemption.

Holders may move their own balances with the transfer functions, which is how
the venue rebalances positions.
"""
from decimal import Decimal

from decision_market.utils import ZERO, is_base_unit_multiple, is_null_address
from .errors import InsufficientBalanceError, InvalidInputError, UnauthorizedError
from .state import EngineState, SIDES, Side


def check_amount(amount: Decimal) -> None:
    if not isinstance(amount, Decimal):
        raise InvalidInputError(f"Amount must be a Decimal, got {type(amount).__name__}")
    if amount <= ZERO:
        raise InvalidInputError(f"Invalid amount: {amount}. Must be positive.")
    if not is_base_unit_multiple(amount):
        raise InvalidInputError(f"Invalid amount: {amount}. Finer than the token base unit.")


def _check_address(address: str, role: str) -> None:
    if is_null_address(address):
        raise InvalidInputError(f"Invalid {role} address: {address!r}")


# Synthetic dollar

def synthetic_balance(state: EngineState, holder: str, asset: str) -> Decimal:
    return state['synthetic']['balances'].get((holder, asset), ZERO)


def synthetic_supply(state: EngineState, asset: str) -> Decimal:
    return state['synthetic']['total_supply'].get(asset, ZERO)


def set_minter(state: EngineState, caller: str, minter: str) -> None:
    ledger = state['synthetic']
    if caller != ledger['owner']:
        raise UnauthorizedError(f"Only the synthetic-dollar owner can set the minter, not {caller}")
    _check_address(minter, 'minter')
    ledger['minter'] = minter


def mint_synthetic(state: EngineState, caller: str, to: str, asset: str, amount: Decimal) -> None:
    ledger = state['synthetic']
    if caller != ledger['minter']:
        raise UnauthorizedError(f"{caller} is not the synthetic-dollar minter")
    _check_address(to, 'recipient')
    _check_address(asset, 'asset')
    check_amount(amount)
    ledger['balances'][(to, asset)] = synthetic_balance(state, to, asset) + amount
    ledger['total_supply'][asset] = synthetic_supply(state, asset) + amount


def burn_synthetic(state: EngineState, caller: str, holder: str, asset: str, amount: Decimal) -> None:
    ledger = state['synthetic']
    if caller != ledger['minter']:
        raise UnauthorizedError(f"{caller} is not the synthetic-dollar minter")
    check_amount(amount)
    balance = synthetic_balance(state, holder, asset)
    if balance < amount:
        raise InsufficientBalanceError(
            f"Insufficient synthetic dollars ({asset}) for {holder}: have {balance}, need {amount}")
    _set_synthetic(state, holder, asset, balance - amount)
    remaining = synthetic_supply(state, asset) - amount
    if remaining == ZERO:
        ledger['total_supply'].pop(asset, None)
    else:
        ledger['total_supply'][asset] = remaining


def transfer_synthetic(state: EngineState, sender: str, recipient: str, asset: str, amount: Decimal) -> None:
    _check_address(recipient, 'recipient')
    check_amount(amount)
    balance = synthetic_balance(state, sender, asset)
    if balance < amount:
        raise InsufficientBalanceError(
            f"Insufficient synthetic dollars ({asset}) for {sender}: have {balance}, need {amount}")
    _set_synthetic(state, sender, asset, balance - amount)
    state['synthetic']['balances'][(recipient, asset)] = synthetic_balance(state, recipient, asset) + amount


def _set_synthetic(state: EngineState, holder: str, asset: str, value: Decimal) -> None:
    balances = state['synthetic']['balances']
    if value == ZERO:
        balances.pop((holder, asset), None)
    else:
        balances[(holder, asset)] = value


# Outcome claims

def claim_balance(state: EngineState, holder: str, proposal_id: int, side: Side) -> Decimal:
    return state['claims'].get((holder, proposal_id, Side(side)), ZERO)


def claim_supply(state: EngineState, proposal_id: int, side: Side) -> Decimal:
    return state['claim_supply'].get((proposal_id, Side(side)), ZERO)


def _set_claim(state: EngineState, holder: str, proposal_id: int, side: Side, value: Decimal) -> None:
    key = (holder, proposal_id, side)
    if value == ZERO:
        state['claims'].pop(key, None)
    else:
        state['claims'][key] = value


def _require_engine(state: EngineState, caller: str) -> None:
    if caller != state['engine_address']:
        raise UnauthorizedError(f"Only the engine can mint or burn claims, not {caller}")


def mint_claim(state: EngineState, caller: str, holder: str, proposal_id: int, side: Side, amount: Decimal) -> None:
    _require_engine(state, caller)
    _check_address(holder, 'holder')
    check_amount(amount)
    side = Side(side)
    _set_claim(state, holder, proposal_id, side, claim_balance(state, holder, proposal_id, side) + amount)
    state['claim_supply'][(proposal_id, side)] = claim_supply(state, proposal_id, side) + amount


def burn_claim(state: EngineState, caller: str, holder: str, proposal_id: int, side: Side, amount: Decimal) -> None:
    _require_engine(state, caller)
    check_amount(amount)
    side = Side(side)
    balance = claim_balance(state, holder, proposal_id, side)
    if balance < amount:
        raise InsufficientBalanceError(
            f"Insufficient {side.value} claims on proposal {proposal_id} for {holder}: have {balance}, need {amount}")
    _set_claim(state, holder, proposal_id, side, balance - amount)
    state['claim_supply'][(proposal_id, side)] = claim_supply(state, proposal_id, side) - amount


def mint_claim_pair(state: EngineState, caller: str, holder: str, proposal_id: int, amount: Decimal) -> None:
    for side in SIDES:
        mint_claim(state, caller, holder, proposal_id, side, amount)


def burn_claim_pair(state: EngineState, caller: str, holder: str, proposal_id: int, amount: Decimal) -> None:
    # Check both sides first so a short reject balance never leaves the accept side burned
    for side in SIDES:
        balance = claim_balance(state, holder, proposal_id, side)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Insufficient {side.value} claims on proposal {proposal_id} for {holder}: have {balance}, need {amount}")
    for side in SIDES:
        burn_claim(state, caller, holder, proposal_id, side, amount)


def transfer_claim(state: EngineState, sender: str, recipient: str, proposal_id: int, side: Side, amount: Decimal) -> None:
    _check_address(recipient, 'recipient')
    check_amount(amount)
    side = Side(side)
    balance = claim_balance(state, sender, proposal_id, side)
    if balance < amount:
        raise InsufficientBalanceError(
            f"Insufficient {side.value} claims on proposal {proposal_id} for {sender}: have {balance}, need {amount}")
    _set_claim(state, sender, proposal_id, side, balance - amount)
    _set_claim(state, recipient, proposal_id, side, claim_balance(state, recipient, proposal_id, side) + amount)
