"""
Broadcast module for real-time location updates.

This module provides the BroadcastHub fanning out stored readings to
live viewers, and the ConnectionManager attaching WebSocket connections
to it.
"""

from broadcast.hub import BroadcastHub, DeliveryFailure, ViewerHandle
from broadcast.connection_manager import ConnectionManager, new_location_message

__all__ = [
    "BroadcastHub",
    "DeliveryFailure",
    "ViewerHandle",
    "ConnectionManager",
    "new_location_message",
]
