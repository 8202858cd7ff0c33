"""
Event System - Pub/Sub Messaging.

Provides:
- Signal: Simple observer pattern for sync notifications (task changes, config changes)
- EventBus: Named-event pub/sub for application-wide messaging
- Events: Standard event type constants
"""
from .observer import Signal
from .bus import EventBus
from .constants import Events


__all__ = ["Signal", "EventBus", "Events"]
