"""
downgrade/server/api.py
Control API.

A small FastAPI app bound to localhost: read/flip transport toggles and
check whether the proxy is up.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from downgrade import __version__
from downgrade.errors import DowngradeError
from downgrade.intercept.proxy import DowngradeInterceptor
from downgrade.negotiate.toggles import ToggleStore
from downgrade.server.routers import transports

logger = logging.getLogger(__name__)


def create_app(store: ToggleStore, interceptor: Optional[DowngradeInterceptor] = None) -> FastAPI:
    """Build the control app around a toggle store and (optionally) the running proxy."""
    app = FastAPI(
        title="SignalR Downgrade Control API",
        description="Toggle the transports offered in rewritten negotiation responses",
        version=__version__,
    )
    app.state.store = store
    app.state.interceptor = interceptor

    @app.exception_handler(DowngradeError)
    async def downgrade_error_handler(request: Request, exc: DowngradeError):
        """Convert DowngradeError to a JSON error response."""
        logger.error(f"[API] {exc.code.value}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/status")
    async def status():
        """Report whether the proxy is running and where it listens."""
        proxy = app.state.interceptor
        if proxy is None:
            return {"status": "ok", "proxy": {"running": False, "host": None, "port": None}}
        return {
            "status": "ok",
            "proxy": {"running": proxy.running, "host": proxy.host, "port": proxy.port},
        }

    app.include_router(transports.router, prefix="/transports")
    return app
