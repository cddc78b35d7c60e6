# Client side of the signaling service
from .base_transport import ClientEvent, SignalingTransport
from .context import SignalingContext, create_signaling_connection
from .coordinator import CallCoordinator, CallState
from .polling import PollingSignaling
from .relay import SignalingRelay

__all__ = [
    "CallCoordinator",
    "CallState",
    "ClientEvent",
    "PollingSignaling",
    "SignalingContext",
    "SignalingRelay",
    "SignalingTransport",
    "create_signaling_connection",
]
