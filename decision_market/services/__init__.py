# decision_market/services/__init__.py

# Exports the service entry points used by scripts and any hosting application.
from .markets import (
    MarketContext,
    run_entry_point,
    create_market_service,
    deposit_service,
    create_proposal_service,
    graduate_market_service,
    resolve_market_service,
    redeem_rewards_service,
)
from .realtime import publish_event, publish_events
