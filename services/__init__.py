"""
Services Module

This module contains the coordination layer on top of the agent core:
- Chat service: Main coordinator for user interactions
- Learning events: Sinks that receive tool-attempt and confidence events

Services wire the core components together and apply the feedback loop.
"""

from .chat_service import (
    ChatService,
    ChatResponse,
    process_user_message,
)

from .learning_events import (
    LoggingEventSink,
    LangfuseEventSink,
    create_event_sink,
)

__all__ = [
    # Chat Service
    "ChatService",
    "ChatResponse",
    "process_user_message",

    # Learning Events
    "LoggingEventSink",
    "LangfuseEventSink",
    "create_event_sink",
]
