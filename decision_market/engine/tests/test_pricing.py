import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from decision_market.engine.errors import InvalidInputError
from decision_market.engine.pricing import (
    MAX_TICK,
    MIN_TICK,
    PriceObservationAdapter,
    average_tick,
    price_to_tick,
    tick_to_price,
    validate_tick,
)


def test_tick_zero_is_par():
    assert tick_to_price(0) == Decimal('1')


def test_known_ticks():
    assert tick_to_price(1) == Decimal('1.0001')
    assert tick_to_price(2) == Decimal('1.00020001')
    assert tick_to_price(-1) == Decimal('0.999900009999000099')


def test_tick_to_price_is_deterministic():
    assert tick_to_price(-6932) == tick_to_price(-6932)


@pytest.mark.parametrize("low,high", [(-887272, -100000), (-6932, -6931), (-1, 0), (0, 1), (1000, 1001), (200000, 887272)])
def test_tick_to_price_is_monotonic(low, high):
    assert tick_to_price(low) <= tick_to_price(high)


def test_adjacent_ticks_are_distinct_in_normal_range():
    prices = [tick_to_price(t) for t in range(-10000, 10000, 997)]
    assert prices == sorted(prices)
    assert len(set(prices)) == len(prices)


def test_claim_as_currency1_negates_tick():
    assert tick_to_price(500, claim_is_token0=False) == tick_to_price(-500)
    assert tick_to_price(-500, claim_is_token0=False) == tick_to_price(500)


def test_extreme_ticks():
    assert tick_to_price(MIN_TICK) == Decimal('0')
    assert tick_to_price(MAX_TICK) > Decimal('1e38')


@pytest.mark.parametrize("tick", [MIN_TICK - 1, MAX_TICK + 1, 1.5, '7', True])
def test_validate_tick_rejects(tick):
    with pytest.raises(InvalidInputError):
        validate_tick(tick)


def test_price_to_tick_half():
    tick = price_to_tick(Decimal('0.5'))
    assert tick_to_price(tick) <= Decimal('0.5') < tick_to_price(tick + 1)
    assert tick == -6932


def test_price_to_tick_exact_boundary():
    assert price_to_tick(Decimal('1')) == 0
    assert price_to_tick(tick_to_price(1234)) == 1234


def test_price_to_tick_currency1_orientation():
    assert price_to_tick(Decimal('0.5'), claim_is_token0=False) == 6932


def test_price_to_tick_rejects_non_positive():
    with pytest.raises(InvalidInputError):
        price_to_tick(Decimal('0'))


@pytest.mark.parametrize("tick_sum,count,expected", [(10, 3, 3), (-10, 3, -3), (9, 3, 3), (-9, 3, -3), (0, 5, 0)])
def test_average_tick_truncates_toward_zero(tick_sum, count, expected):
    assert average_tick(tick_sum, count) == expected


def test_average_tick_requires_count():
    with pytest.raises(InvalidInputError):
        average_tick(5, 0)


def test_adapter_averages_batch_and_resets():
    engine = MagicMock()
    adapter = PriceObservationAdapter(engine, '0x' + '4' * 40)

    adapter.observe_swap('0xpool', 100)
    adapter.observe_swap('0xpool', 200)
    adapter.observe_swap('0xpool', 301)
    assert adapter.pending('0xpool') == 3

    assert adapter.after_swap('0xpool') == 200
    engine.record_post_swap.assert_called_once_with('0x' + '4' * 40, '0xpool', 200)
    assert adapter.pending('0xpool') == 0

    # Nothing observed since the last callback
    assert adapter.after_swap('0xpool') is None
    assert engine.record_post_swap.call_count == 1


def test_adapter_keeps_pools_separate():
    engine = MagicMock()
    adapter = PriceObservationAdapter(engine, '0x' + '4' * 40)
    adapter.observe_swap('0xa', 10)
    adapter.observe_swap('0xb', -50)
    assert adapter.after_swap('0xb') == -50
    assert adapter.pending('0xa') == 1


def test_adapter_resets_even_when_engine_rejects():
    engine = MagicMock()
    engine.record_post_swap.side_effect = InvalidInputError("boom")
    adapter = PriceObservationAdapter(engine, '0x' + '4' * 40)
    adapter.observe_swap('0xpool', 10)
    with pytest.raises(InvalidInputError):
        adapter.after_swap('0xpool')
    assert adapter.pending('0xpool') == 0


def test_adapter_rejects_bad_tick():
    adapter = PriceObservationAdapter(MagicMock(), '0x' + '4' * 40)
    with pytest.raises(InvalidInputError):
        adapter.observe_swap('0xpool', MAX_TICK + 1)
