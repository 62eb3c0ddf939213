# decision_market/db/__init__.py

from .queries import (
    get_db,
    fetch_engine_state,
    save_engine_state,
    insert_events,
    fetch_events,
)
