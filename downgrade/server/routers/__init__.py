"""
Router initialization module.

Exports the API routers for the control server.
"""
from downgrade.server.routers import transports

__all__ = ["transports"]
