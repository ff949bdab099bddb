# ============================================================================
# downgrade/__init__.py
# Package Marker for the SignalR Transport Downgrade Proxy
# ============================================================================
#
# PURPOSE:
# Rewrites SignalR / Blazor Server "negotiate" responses seen by mitmproxy so
# the client never learns that WebSockets are available and falls back to
# Server-Sent Events or Long Polling instead.
#
# LAYOUT:
# - negotiate/: the rewrite decision and the transport toggles
# - intercept/: mitmproxy addon and proxy lifecycle
# - server/: control API for flipping toggles at runtime
# - base/: configuration and logging setup
#
# ============================================================================

__version__ = "0.1.0"
