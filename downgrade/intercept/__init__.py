"""Module __init__: mitmproxy integration for the downgrade rewriter."""
#
# THE INTERCEPT PATH:
# Browser ← → mitmproxy + DowngradeAddon ← → SignalR server
#
# KEY MODULES:
# - **proxy.py**: DowngradeAddon (response hook) and DowngradeInterceptor
#   (runs DumpMaster inside our event loop)
# - **script.py**: entry for `mitmdump -s`
#

from .proxy import DowngradeAddon, DowngradeInterceptor, negotiation_view

__all__ = ["DowngradeAddon", "DowngradeInterceptor", "negotiation_view"]
