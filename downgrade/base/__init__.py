"""Module __init__: configuration and logging setup shared by every layer."""
#
# WHAT'S IN THIS MODULE:
# - config.py: Proxy, API, storage and logging settings (DOWNGRADE_* env vars)
#
