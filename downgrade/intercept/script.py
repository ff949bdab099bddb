"""
downgrade/intercept/script.py
Standalone addon script.

    mitmdump -s downgrade/intercept/script.py

Toggles come from the persisted toggle file (see DOWNGRADE_DATA_DIR).
"""
from downgrade.base.config import get_config
from downgrade.intercept.proxy import DowngradeAddon
from downgrade.negotiate.toggles import ToggleStore

_config = get_config()

# Mitmproxy addon initialization
addons = [
    DowngradeAddon(
        ToggleStore.from_config(_config),
        marker=_config.proxy.negotiate_marker,
        highlight_unknown=_config.proxy.highlight_unknown,
    )
]
