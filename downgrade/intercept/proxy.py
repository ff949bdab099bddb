"""
downgrade/intercept/proxy.py
The Downgrade Interceptor.
Sits in mitmproxy's response path and strips WebSockets from SignalR
negotiation responses before they reach the client.
"""

import asyncio
import logging
from typing import Optional

from mitmproxy import options, http
from mitmproxy.tools.dump import DumpMaster

from downgrade.base.config import DowngradeConfig, DEFAULT_NEGOTIATE_MARKER, get_config
from downgrade.errors import DowngradeError, ErrorCode
from downgrade.negotiate.rewriter import (
    NegotiationResponse,
    RewriteError,
    Rewritten,
    decide,
    normalize_mime_type,
)
from downgrade.negotiate.toggles import ToggleStore

logger = logging.getLogger(__name__)

# Blazor Server hub frames travel as MessagePack with no useful content type
OPAQUE_MIME_TYPES = frozenset({"", "application/octet-stream"})
HIGHLIGHT_MARKER = ":large_blue_circle:"
DOWNGRADE_COMMENT = "WebSockets stripped from negotiation"


def negotiation_view(flow: http.HTTPFlow) -> NegotiationResponse:
    """Build the rewriter's view of a flow's response."""
    return NegotiationResponse(
        request_url=flow.request.pretty_url,
        declared_mime_type=normalize_mime_type(flow.response.headers.get("content-type", "")),
        body=flow.response.get_content(strict=False) or b"",
    )


class DowngradeAddon:
    """
    mitmproxy addon that rewrites negotiation responses.

    Toggles are read from the store once per response, so an operator can
    flip them while traffic is flowing.
    """
    def __init__(
        self,
        store: ToggleStore,
        marker: str = DEFAULT_NEGOTIATE_MARKER,
        highlight_unknown: bool = True,
    ):
        self.store = store
        self.marker = marker
        self.highlight_unknown = highlight_unknown

    def response(self, flow: http.HTTPFlow):
        """
        Downgrade the negotiation response if it offers WebSockets.
        Anything else, including bodies we cannot read, passes through as-is.
        """
        if flow.response is None:
            return

        view = negotiation_view(flow)

        if self.highlight_unknown and view.body and view.declared_mime_type in OPAQUE_MIME_TYPES:
            flow.marked = HIGHLIGHT_MARKER

        outcome = decide(view, self.store.snapshot(), self.marker)

        if isinstance(outcome, Rewritten):
            flow.response.content = outcome.body
            flow.comment = DOWNGRADE_COMMENT
            logger.info(f"[Downgrade] Rewrote negotiation: {view.request_url}")
        elif isinstance(outcome, RewriteError):
            if outcome.code == ErrorCode.NEGOTIATE_MALFORMED_BODY:
                logger.error(
                    f"[Downgrade] An error occurred while reading JSON body for downgrade: {outcome.message}"
                )
            else:
                logger.error(
                    f"[Downgrade] An unexpected exception occurred when performing the downgrade: {outcome.message}"
                )


class DowngradeInterceptor:
    """
    Manages the background mitmproxy instance.
    """
    def __init__(self, store: ToggleStore, config: Optional[DowngradeConfig] = None):
        self.store = store
        self.config = config or get_config()
        self.host = self.config.proxy.listen_host
        self.port = self.config.proxy.listen_port
        self.master: Optional[DumpMaster] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def build_addon(self) -> DowngradeAddon:
        return DowngradeAddon(
            self.store,
            marker=self.config.proxy.negotiate_marker,
            highlight_unknown=self.config.proxy.highlight_unknown,
        )

    async def start(self):
        """
        Starts the proxy as an asyncio task.
        Must be awaited from inside the running event loop.
        """
        if self.running:
            raise DowngradeError(
                ErrorCode.PROXY_ALREADY_RUNNING,
                f"Proxy already listening on {self.host}:{self.port}",
            )

        opts = options.Options(listen_host=self.host, listen_port=self.port)
        self.master = DumpMaster(opts, with_termlog=False, with_dumper=False)
        self.master.addons.add(self.build_addon())

        logger.info(f"[*] Downgrade proxy active on {self.host}:{self.port}")
        self._task = asyncio.create_task(self._run_master())

    async def _run_master(self):
        """Run the mitmproxy master with error handling."""
        try:
            await self.master.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Downgrade] Proxy error: {e}")

    async def wait(self):
        if self._task is None:
            raise DowngradeError(ErrorCode.PROXY_NOT_RUNNING, "Proxy has not been started")
        await self._task

    def stop(self):
        """Shutdown the proxy gracefully."""
        if not self.running:
            raise DowngradeError(ErrorCode.PROXY_NOT_RUNNING, "Proxy is not running")
        self.master.shutdown()
        logger.info("[*] Downgrade proxy stopped.")
