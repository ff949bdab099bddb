"""
Transports Router

Lets the operator read and flip the transport toggles while the proxy runs.
Changes apply to the next negotiation response the proxy sees.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from downgrade.negotiate.rewriter import build_transports
from downgrade.negotiate.toggles import ToggleStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transports"])


# Request/Response Models
class TransportModel(BaseModel):
    """One transport the rewritten negotiation would offer."""
    transport: str
    transferFormats: List[str]


class TogglesResponse(BaseModel):
    """Current toggles plus the transport list they produce."""
    toggles: Dict[str, bool]
    preview: List[TransportModel]


class ToggleUpdateRequest(BaseModel):
    """Partial update keyed by display name, e.g. {"WebSockets: Text": true}."""
    toggles: Dict[str, bool] = Field(default_factory=dict)


def get_store(request: Request) -> ToggleStore:
    return request.app.state.store


def _describe(store: ToggleStore) -> TogglesResponse:
    preview = [TransportModel(**t.to_json()) for t in build_transports(store.snapshot())]
    return TogglesResponse(toggles=store.as_dict(), preview=preview)


@router.get("", response_model=TogglesResponse)
async def read_toggles(store: ToggleStore = Depends(get_store)):
    """Return the current toggles and the transports they would advertise."""
    return _describe(store)


@router.put("", response_model=TogglesResponse)
async def update_toggles(body: ToggleUpdateRequest, store: ToggleStore = Depends(get_store)):
    """
    Apply a partial toggle update.

    Unknown toggle names are rejected as a whole (400); nothing is applied.
    """
    store.update(body.toggles)
    return _describe(store)


@router.post("/reset", response_model=TogglesResponse)
async def reset_toggles(store: ToggleStore = Depends(get_store)):
    """Restore the default downgrade (SSE + Long Polling, no WebSockets)."""
    store.reset()
    return _describe(store)
