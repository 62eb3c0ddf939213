import logging
from typing import Dict, Any, List
from supabase import Client

from decision_market.config import get_supabase_client
from decision_market.utils import get_current_ms, to_jsonable

logger = logging.getLogger(__name__)

def get_realtime_client() -> Client:
    """Get Supabase client for realtime operations."""
    return get_supabase_client()

def publish_event(channel: str, event_type: str, payload: Dict[str, Any]) -> None:
    """Publish an event to a Supabase Realtime channel. Failures are logged, never raised."""
    broadcast_payload = {
        "type": "broadcast",
        "event": event_type,
        "payload": {**to_jsonable(payload), "timestamp": get_current_ms()},
    }
    try:
        client = get_realtime_client()
        client.channel(channel).send(broadcast_payload)
    except Exception as e:
        logger.error(f"Error publishing {event_type} to {channel}: {e}")

def publish_events(channel: str, events: List[Dict[str, Any]]) -> None:
    for event in events:
        publish_event(channel, event['type'], event['payload'])
