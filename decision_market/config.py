from typing_extensions import TypedDict
import os
from dotenv import load_dotenv
from supabase import create_client, Client

def load_env() -> dict[str, str]:
    # Try to load from .env file (for local development)
    load_dotenv()

    required_vars = ['SUPABASE_URL', 'SUPABASE_SERVICE_KEY']
    env_vars = {}

    for key in required_vars:
        value = os.getenv(key)
        if value is None:
            raise ValueError(f"Missing required environment variable: {key}. "
                             f"Please set it in the environment or in a .env file.")
        env_vars[key] = value

    return env_vars

def get_supabase_client() -> Client:
    env = load_env()
    return create_client(env['SUPABASE_URL'], env['SUPABASE_SERVICE_KEY'])

class EngineParams(TypedDict):
    engine_address: str
    operator_address: str
    synthetic_address: str
    venue_address: str
    hooks_address: str
    pool_fee: int
    tick_spacing: int
    initial_claim_price: str
    channel: str

def get_default_engine_params() -> EngineParams:
    return EngineParams(
        engine_address='0x' + '1' * 40,
        operator_address='0x' + '2' * 40,
        synthetic_address='0x' + '3' * 40,
        venue_address='0x' + '4' * 40,
        hooks_address='0x' + '1' * 40,  # the engine is its own swap hook
        pool_fee=3000,
        tick_spacing=60,
        initial_claim_price='0.5',
        channel='markets',
    )

# Env var name -> param key; numeric params are cast on load
_ENV_OVERRIDES = {
    'DECISION_MARKET_ENGINE_ADDRESS': 'engine_address',
    'DECISION_MARKET_OPERATOR_ADDRESS': 'operator_address',
    'DECISION_MARKET_SYNTHETIC_ADDRESS': 'synthetic_address',
    'DECISION_MARKET_VENUE_ADDRESS': 'venue_address',
    'DECISION_MARKET_HOOKS_ADDRESS': 'hooks_address',
    'DECISION_MARKET_POOL_FEE': 'pool_fee',
    'DECISION_MARKET_TICK_SPACING': 'tick_spacing',
    'DECISION_MARKET_INITIAL_CLAIM_PRICE': 'initial_claim_price',
    'DECISION_MARKET_CHANNEL': 'channel',
}

def load_engine_params() -> EngineParams:
    """
    Defaults overlaid with any DECISION_MARKET_* environment variables.
    """
    load_dotenv()
    params = get_default_engine_params()
    for env_key, param_key in _ENV_OVERRIDES.items():
        value = os.getenv(env_key)
        if value is None:
            continue
        if param_key in ('pool_fee', 'tick_spacing'):
            params[param_key] = int(value)
        else:
            params[param_key] = value
    return params
