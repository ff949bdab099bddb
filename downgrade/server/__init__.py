"""Module __init__: control API (FastAPI) for the downgrade proxy."""
