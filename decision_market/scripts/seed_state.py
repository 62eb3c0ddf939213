import argparse
import logging
from typing import Dict, Any

from decision_market.config import EngineParams, load_engine_params
from decision_market.db.queries import fetch_engine_state, save_engine_state
from decision_market.engine.state import init_state

logger = logging.getLogger(__name__)


def seed_state(overrides: Dict[str, Any] = None, force: bool = False) -> EngineParams:
    """
    Seeds an empty engine store into the DB using env/default params, with optional overrides.
    An existing store is left untouched unless force is set.
    """
    params: EngineParams = load_engine_params()
    if overrides:
        for key, value in overrides.items():
            if key in params:
                params[key] = value
            else:
                logger.warning(f"Override key '{key}' not in EngineParams.")

    existing = fetch_engine_state(params['engine_address'])
    if existing is not None and not force:
        logger.warning(f"Engine {params['engine_address']} already has a stored state; use --force to reset it.")
        return params

    save_engine_state(init_state(params))
    logger.info(f"Seeded empty store for engine {params['engine_address']}.")
    return params


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Seed an empty decision-market engine store into the DB.")
    parser.add_argument("--engine_address", type=str, help="Engine address")
    parser.add_argument("--operator_address", type=str, help="Operator / synthetic-dollar owner address")
    parser.add_argument("--synthetic_address", type=str, help="Synthetic dollar address")
    parser.add_argument("--venue_address", type=str, help="Venue address")
    parser.add_argument("--hooks_address", type=str, help="Swap hook address used in pool keys")
    parser.add_argument("--pool_fee", type=int, help="Venue pool fee (hundredths of a bip)")
    parser.add_argument("--tick_spacing", type=int, help="Venue pool tick spacing")
    parser.add_argument("--initial_claim_price", type=str, help="Initial claim price, e.g. '0.5'")
    parser.add_argument("--channel", type=str, help="Realtime channel for change notifications")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing store")

    args = parser.parse_args()
    force = args.force
    overrides = {k: v for k, v in vars(args).items() if v is not None and k != 'force'}

    seed_state(overrides, force=force)
