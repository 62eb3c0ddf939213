from typing import List, Dict, Any, Optional
from supabase import Client

from decision_market.config import get_supabase_client
from decision_market.engine.state import EngineState, serialize_state, deserialize_state
from decision_market.utils import to_jsonable

ENGINE_TABLE = 'engine'
EVENTS_TABLE = 'events'

def get_db() -> Client:
    return get_supabase_client()

# State queries
def fetch_engine_state(engine_address: str) -> Optional[EngineState]:
    """Load the store for an engine, or None when nothing has been saved yet."""
    db = get_db()
    result = db.table(ENGINE_TABLE).select('state').eq('engine_address', engine_address).limit(1).execute()
    if result.data and result.data[0].get('state'):
        return deserialize_state(result.data[0]['state'])
    return None

def save_engine_state(state: EngineState) -> None:
    db = get_db()
    db.table(ENGINE_TABLE).upsert({
        'engine_address': state['engine_address'],
        'state': serialize_state(state),
    }).execute()

# Event queries
def insert_events(engine_address: str, events: List[Dict[str, Any]]) -> None:
    """Append change notifications; each row keeps the event type and its JSON payload."""
    if not events:
        return
    db = get_db()
    rows = [
        {
            'engine_address': engine_address,
            'type': event['type'],
            'payload': to_jsonable(event['payload']),
        }
        for event in events
    ]
    db.table(EVENTS_TABLE).insert(rows).execute()

def fetch_events(engine_address: str, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
    db = get_db()
    query = db.table(EVENTS_TABLE).select('*').eq('engine_address', engine_address)
    if event_type:
        query = query.eq('type', event_type)
    return query.execute().data
