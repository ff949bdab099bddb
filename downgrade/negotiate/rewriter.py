"""
downgrade/negotiate/rewriter.py
The Negotiation Rewriter.

Decides whether an intercepted response is a SignalR negotiation response
that advertises WebSockets and, if so, produces a replacement body whose
``availableTransports`` list is rebuilt from the transport toggles.

Every call is a pure function of ``(response, toggles)``: nothing is cached
between calls, and a failure never escapes as an exception. Callers get one
of ``Unchanged``, ``Rewritten`` or ``RewriteError`` back and forward the
original response for anything but ``Rewritten``.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from downgrade.base.config import DEFAULT_NEGOTIATE_MARKER
from downgrade.errors import DowngradeError, ErrorCode

logger = logging.getLogger(__name__)

# Transport names as they appear on the wire (case-sensitive)
WEBSOCKETS = "WebSockets"
SERVER_SENT_EVENTS = "ServerSentEvents"
LONG_POLLING = "LongPolling"

TEXT = "Text"
BINARY = "Binary"

TRANSPORTS_KEY = "availableTransports"
TRANSPORT_KEY = "transport"
FORMATS_KEY = "transferFormats"

JSON_MIME_TYPES = frozenset({"application/json", "text/json"})


@dataclass(frozen=True)
class NegotiationResponse:
    """The parts of an intercepted response the rewriter looks at."""
    request_url: str
    declared_mime_type: str
    body: bytes


@dataclass(frozen=True)
class TransportDescriptor:
    """One entry of the ``availableTransports`` list."""
    name: str
    transfer_formats: Tuple[str, ...]

    def to_json(self) -> Dict[str, Any]:
        return {TRANSPORT_KEY: self.name, FORMATS_KEY: list(self.transfer_formats)}


@dataclass(frozen=True)
class FeatureToggles:
    """
    Snapshot of the five transport toggles.

    Defaults keep WebSockets off and offer every fallback format, which is
    the downgrade an operator wants in the common case.
    """
    ws_text: bool = False
    ws_binary: bool = False
    sse_text: bool = True
    lp_text: bool = True
    lp_binary: bool = True


# --- Outcomes ---

@dataclass(frozen=True)
class Unchanged:
    """Forward the original response untouched."""


@dataclass(frozen=True)
class Rewritten:
    """Forward the response with ``body`` in place of the original one."""
    body: bytes


@dataclass(frozen=True)
class RewriteError:
    """
    The body could not be processed.

    ``code`` is NEGOTIATE_MALFORMED_BODY or NEGOTIATE_UNEXPECTED. Callers
    treat this exactly like ``Unchanged`` apart from logging it.
    """
    code: ErrorCode
    message: str


RewriteOutcome = Union[Unchanged, Rewritten, RewriteError]

UNCHANGED = Unchanged()


def normalize_mime_type(content_type: Optional[str]) -> str:
    """Reduce a Content-Type header to its lowercase media type ("" if absent)."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def should_inspect(response: NegotiationResponse, marker: str = DEFAULT_NEGOTIATE_MARKER) -> bool:
    """
    Cheap pre-filter run before any JSON parsing.

    True only for a URL carrying the negotiation marker AND a JSON MIME type.
    """
    if marker not in response.request_url:
        return False
    return normalize_mime_type(response.declared_mime_type) in JSON_MIME_TYPES


def build_transports(toggles: FeatureToggles) -> List[TransportDescriptor]:
    """
    Build the replacement transport list from the toggles alone.

    Order is fixed (WebSockets, ServerSentEvents, LongPolling) and a
    transport with no enabled format is left out.
    """
    candidates = [
        (WEBSOCKETS, [(TEXT, toggles.ws_text), (BINARY, toggles.ws_binary)]),
        # SSE is text-only
        (SERVER_SENT_EVENTS, [(TEXT, toggles.sse_text)]),
        (LONG_POLLING, [(TEXT, toggles.lp_text), (BINARY, toggles.lp_binary)]),
    ]

    transports: List[TransportDescriptor] = []
    for name, formats in candidates:
        enabled = tuple(fmt for fmt, on in formats if on)
        if enabled:
            transports.append(TransportDescriptor(name=name, transfer_formats=enabled))
    return transports


def advertises_websockets(transports: Any) -> bool:
    """
    Scan an ``availableTransports`` value for a WebSockets entry.

    Raises:
        DowngradeError(NEGOTIATE_MALFORMED_BODY) when the value is not a list
        of objects or a ``transport`` field is not a string.
    """
    if not isinstance(transports, list):
        raise DowngradeError(
            ErrorCode.NEGOTIATE_MALFORMED_BODY,
            f"{TRANSPORTS_KEY} is not an array",
            details={"type": type(transports).__name__},
        )

    found = False
    for index, entry in enumerate(transports):
        if not isinstance(entry, dict):
            raise DowngradeError(
                ErrorCode.NEGOTIATE_MALFORMED_BODY,
                f"{TRANSPORTS_KEY}[{index}] is not an object",
            )
        if TRANSPORT_KEY not in entry:
            continue
        name = entry[TRANSPORT_KEY]
        if not isinstance(name, str):
            raise DowngradeError(
                ErrorCode.NEGOTIATE_MALFORMED_BODY,
                f"{TRANSPORTS_KEY}[{index}].{TRANSPORT_KEY} is not a string",
            )
        if name == WEBSOCKETS:
            found = True
    return found


def _reject_constant(name: str) -> Any:
    raise DowngradeError(
        ErrorCode.NEGOTIATE_MALFORMED_BODY,
        f"non-finite number {name} is not valid JSON",
    )


def _parse_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        # 1e400 and friends overflow to inf and could not be written back
        _reject_constant(literal)
    return value


def _unique_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    document: Dict[str, Any] = {}
    for key, value in pairs:
        if key in document:
            raise DowngradeError(
                ErrorCode.NEGOTIATE_MALFORMED_BODY,
                f"duplicate key {key!r}",
                details={"key": key},
            )
        document[key] = value
    return document


def _parse(body: bytes) -> Dict[str, Any]:
    try:
        document = json.loads(
            body,
            object_pairs_hook=_unique_keys,
            parse_float=_parse_float,
            parse_constant=_reject_constant,
        )
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError both land here
        raise DowngradeError(ErrorCode.NEGOTIATE_MALFORMED_BODY, str(e)) from e

    if not isinstance(document, dict):
        raise DowngradeError(
            ErrorCode.NEGOTIATE_MALFORMED_BODY,
            "negotiation body is not a JSON object",
            details={"type": type(document).__name__},
        )
    return document


def _serialize(document: Dict[str, Any]) -> bytes:
    return json.dumps(
        document, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    ).encode("utf-8")


def decide(
    response: NegotiationResponse,
    toggles: FeatureToggles,
    marker: str = DEFAULT_NEGOTIATE_MARKER,
) -> RewriteOutcome:
    """
    Decide what to do with one intercepted response.

    Args:
        response: URL, declared MIME type and body of the response
        toggles: Transport toggles read once for this call
        marker: URL substring identifying the negotiation endpoint

    Returns:
        UNCHANGED when the response is not a negotiation response, has no
        transport list, or does not offer WebSockets; Rewritten with the new
        body otherwise; RewriteError when the body cannot be processed.
    """
    if not should_inspect(response, marker):
        return UNCHANGED

    try:
        document = _parse(response.body)
        if TRANSPORTS_KEY not in document:
            return UNCHANGED

        if not advertises_websockets(document[TRANSPORTS_KEY]):
            # Nothing to strip
            return UNCHANGED

        replacement = [t.to_json() for t in build_transports(toggles)]
        # Assigning an existing key keeps its position in the dict
        document[TRANSPORTS_KEY] = replacement
        new_body = _serialize(document)

    except DowngradeError as e:
        return RewriteError(code=e.code, message=e.message)
    except Exception as e:
        return RewriteError(code=ErrorCode.NEGOTIATE_UNEXPECTED, message=str(e) or type(e).__name__)

    logger.debug(f"[Downgrade] Rebuilt {TRANSPORTS_KEY} with {len(replacement)} transport(s)")
    return Rewritten(body=new_body)
