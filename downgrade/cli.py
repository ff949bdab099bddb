"""
SignalR Downgrade CLI: unified entrypoint.

Usage examples:
    downgrade proxy --port 8080
    downgrade rewrite negotiate.json --ws-text
    downgrade toggles --set "LongPolling: Binary=false"
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from downgrade.base.config import DowngradeConfig, get_config, setup_logging
from downgrade.errors import DowngradeError
from downgrade.negotiate.rewriter import NegotiationResponse, RewriteError, Rewritten, decide
from downgrade.negotiate.toggles import ToggleStore

logger = logging.getLogger(__name__)

EXIT_REWRITTEN = 0
EXIT_UNCHANGED = 1
EXIT_ERROR = 2

# FeatureToggles field -> command line flag
TOGGLE_FLAGS = {
    "ws_text": "--ws-text",
    "ws_binary": "--ws-binary",
    "sse_text": "--sse-text",
    "lp_text": "--lp-text",
    "lp_binary": "--lp-binary",
}


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"not a boolean: {raw!r}")


async def _serve(config: DowngradeConfig, store: ToggleStore):
    from downgrade.intercept.proxy import DowngradeInterceptor

    interceptor = DowngradeInterceptor(store, config)
    await interceptor.start()

    if not config.api.enabled:
        await interceptor.wait()
        return

    import uvicorn
    from downgrade.server.api import create_app

    app = create_app(store, interceptor)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.log.level.lower(),
    ))
    logger.info(f"[API] Control API on http://{config.api.host}:{config.api.port}")
    try:
        await server.serve()
    finally:
        if interceptor.running:
            interceptor.stop()


def run_proxy(args, config: DowngradeConfig) -> int:
    """Start mitmproxy with the downgrade addon (and the control API)."""
    proxy = replace(
        config.proxy,
        listen_host=args.host or config.proxy.listen_host,
        listen_port=args.port or config.proxy.listen_port,
        negotiate_marker=args.marker or config.proxy.negotiate_marker,
    )
    api = replace(
        config.api,
        enabled=config.api.enabled and not args.no_api,
        port=args.api_port or config.api.port,
    )
    config = replace(config, proxy=proxy, api=api)

    setup_logging(config)
    store = ToggleStore.from_config(config)
    try:
        asyncio.run(_serve(config, store))
    except KeyboardInterrupt:
        logger.info("[*] Interrupted, shutting down.")
    return 0


def run_rewrite(args, config: DowngradeConfig) -> int:
    """Apply the rewrite to a saved negotiation body, offline."""
    if args.file == "-":
        body = sys.stdin.buffer.read()
    else:
        with open(args.file, "rb") as fh:
            body = fh.read()

    toggles = ToggleStore.from_config(config).snapshot()
    overrides = {
        field_name: getattr(args, field_name)
        for field_name in TOGGLE_FLAGS
        if getattr(args, field_name) is not None
    }
    toggles = replace(toggles, **overrides)

    response = NegotiationResponse(request_url=args.url, declared_mime_type=args.mime, body=body)
    outcome = decide(response, toggles, args.marker or config.proxy.negotiate_marker)

    if isinstance(outcome, Rewritten):
        sys.stdout.buffer.write(outcome.body + b"\n")
        return EXIT_REWRITTEN
    if isinstance(outcome, RewriteError):
        print(f"[-] {outcome.code.value}: {outcome.message}", file=sys.stderr)
        sys.stdout.buffer.write(body)
        return EXIT_ERROR
    sys.stdout.buffer.write(body)
    return EXIT_UNCHANGED


def run_toggles(args, config: DowngradeConfig) -> int:
    """Show or edit the persisted toggles."""
    store = ToggleStore.from_config(config)
    if args.reset:
        store.reset()
    if args.set:
        updates = {}
        for item in args.set:
            name, sep, raw = item.rpartition("=")
            if not sep:
                print(f"[-] Expected NAME=BOOL, got {item!r}", file=sys.stderr)
                return EXIT_ERROR
            try:
                updates[name.strip()] = _parse_bool(raw)
            except argparse.ArgumentTypeError as e:
                print(f"[-] {e}", file=sys.stderr)
                return EXIT_ERROR
        store.update(updates)
    print(json.dumps(store.as_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="downgrade",
        description="Strip WebSockets from SignalR negotiation responses",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Proxy Command
    proxy_parser = subparsers.add_parser("proxy", help="Run mitmproxy with the downgrade addon")
    proxy_parser.add_argument("--host", help="Proxy listen host")
    proxy_parser.add_argument("--port", type=int, help="Proxy listen port")
    proxy_parser.add_argument("--marker", help="URL substring of the negotiation endpoint")
    proxy_parser.add_argument("--no-api", action="store_true", help="Do not start the control API")
    proxy_parser.add_argument("--api-port", type=int, help="Control API port")
    proxy_parser.set_defaults(func=run_proxy)

    # Rewrite Command
    rewrite_parser = subparsers.add_parser("rewrite", help="Rewrite a saved negotiation body")
    rewrite_parser.add_argument("file", help="File holding the response body, or - for stdin")
    rewrite_parser.add_argument("--url", default="https://localhost/_blazor/negotiate",
                                help="Request URL to match against")
    rewrite_parser.add_argument("--mime", default="application/json", help="Declared MIME type")
    rewrite_parser.add_argument("--marker", help="URL substring of the negotiation endpoint")
    for field_name, flag in TOGGLE_FLAGS.items():
        rewrite_parser.add_argument(flag, dest=field_name, action=argparse.BooleanOptionalAction,
                                    default=None)
    rewrite_parser.set_defaults(func=run_rewrite)

    # Toggles Command
    toggles_parser = subparsers.add_parser("toggles", help="Show or edit persisted toggles")
    toggles_parser.add_argument("--set", action="append", metavar="NAME=BOOL",
                                help='e.g. --set "WebSockets: Text=true" (repeatable)')
    toggles_parser.add_argument("--reset", action="store_true", help="Restore defaults first")
    toggles_parser.set_defaults(func=run_toggles)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = get_config()
        return args.func(args, config)
    except DowngradeError as e:
        print(f"[-] {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
