from .connection import Connection, Subscription, build_url, connect, receive, send
from .correlator import Correlator, PendingCall, correlator_for, request
from .transport import LoopbackTransport, Transport, WebSocketTransport

__all__ = [
    "Connection",
    "Subscription",
    "build_url",
    "connect",
    "receive",
    "send",
    "Correlator",
    "PendingCall",
    "correlator_for",
    "request",
    "Transport",
    "WebSocketTransport",
    "LoopbackTransport",
]
