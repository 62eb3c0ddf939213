import pytest
from unittest.mock import patch

from decision_market.config import load_engine_params
from decision_market.scripts.seed_state import seed_state


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ('DECISION_MARKET_ENGINE_ADDRESS', 'DECISION_MARKET_POOL_FEE', 'DECISION_MARKET_CHANNEL'):
        monkeypatch.delenv(key, raising=False)


def test_load_engine_params_env_overrides(monkeypatch):
    monkeypatch.setenv('DECISION_MARKET_ENGINE_ADDRESS', '0x' + 'e' * 40)
    monkeypatch.setenv('DECISION_MARKET_POOL_FEE', '500')
    monkeypatch.setenv('DECISION_MARKET_CHANNEL', 'futarchy')

    params = load_engine_params()
    assert params['engine_address'] == '0x' + 'e' * 40
    assert params['pool_fee'] == 500
    assert params['channel'] == 'futarchy'
    assert params['tick_spacing'] == 60


@patch('decision_market.scripts.seed_state.save_engine_state')
@patch('decision_market.scripts.seed_state.fetch_engine_state', return_value=None)
def test_seed_state_saves_empty_store(mock_fetch, mock_save):
    params = seed_state({'channel': 'test-channel', 'bogus': 1})

    assert params['channel'] == 'test-channel'
    saved = mock_save.call_args.args[0]
    assert saved['engine_address'] == params['engine_address']
    assert saved['markets'] == {}


@patch('decision_market.scripts.seed_state.save_engine_state')
@patch('decision_market.scripts.seed_state.fetch_engine_state', return_value={'markets': {1: {}}})
def test_seed_state_keeps_existing_store(mock_fetch, mock_save):
    seed_state()
    mock_save.assert_not_called()

    seed_state(force=True)
    mock_save.assert_called_once()
