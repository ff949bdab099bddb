"""Module __init__: the negotiation rewrite decision and its toggles."""
#
# KEY MODULES:
# - **rewriter.py**: should_inspect() / decide() on one negotiation response
# - **toggles.py**: ToggleStore holding the five transport switches
#
# KEY CONCEPTS:
# - **Negotiation**: the POST a SignalR client makes before connecting; the
#   server answers with the transports it supports
# - **Downgrade**: removing WebSockets from that answer so the client picks
#   Server-Sent Events or Long Polling
#

from .rewriter import (
    FeatureToggles,
    NegotiationResponse,
    RewriteError,
    Rewritten,
    TransportDescriptor,
    Unchanged,
    build_transports,
    decide,
    should_inspect,
)
from .toggles import TOGGLE_NAMES, ToggleStore

__all__ = [
    "FeatureToggles",
    "NegotiationResponse",
    "RewriteError",
    "Rewritten",
    "TransportDescriptor",
    "Unchanged",
    "build_transports",
    "decide",
    "should_inspect",
    "TOGGLE_NAMES",
    "ToggleStore",
]
