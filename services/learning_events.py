"""
Learning Event Sinks

Concrete LearningEventSink implementations:
- LoggingEventSink: writes every event to the application log
- LangfuseEventSink: forwards events to Langfuse so tool reliability and
  answer confidence can be inspected next to the LLM traces

create_event_sink() picks Langfuse when it is configured.
"""

import logging
from typing import Any, Dict, Optional

from langfuse import Langfuse

from ai import get_langfuse_client

logger = logging.getLogger(__name__)


class LoggingEventSink:
    """Logs learning events (the default sink)."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.log(self.level, f"📡 {event_type}: {payload}")


class LangfuseEventSink:
    """Forwards learning events to Langfuse as events."""

    def __init__(self, client: Langfuse):
        self.client = client

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        try:
            self.client.event(name=event_type, metadata=payload)
        except Exception as e:
            logger.warning(f"⚠️  Failed to send {event_type} event to Langfuse: {e}")


def create_event_sink(client: Optional[Langfuse] = None):
    """
    Build the default event sink.

    Args:
        client: Langfuse client (defaults to the shared client, if enabled)

    Returns:
        LangfuseEventSink when a client is available, else LoggingEventSink
    """
    client = client or get_langfuse_client()
    if client is not None:
        return LangfuseEventSink(client)
    return LoggingEventSink()
