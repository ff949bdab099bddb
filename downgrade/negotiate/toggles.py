"""
downgrade/negotiate/toggles.py
Transport Toggle Store.

Holds the five operator-controlled switches that decide which transports
(and which transfer formats) the rewritten negotiation response offers.

Readers get an immutable FeatureToggles snapshot; writers swap in a new
snapshot under a lock, so a response never observes a half-applied update.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from downgrade.base.config import DowngradeConfig
from downgrade.errors import DowngradeError, ErrorCode
from downgrade.negotiate.rewriter import FeatureToggles

logger = logging.getLogger(__name__)

# Display name -> FeatureToggles field
TOGGLE_NAMES: Dict[str, str] = {
    "WebSockets: Text": "ws_text",
    "WebSockets: Binary": "ws_binary",
    "ServerSentEvents: Text": "sse_text",
    "LongPolling: Text": "lp_text",
    "LongPolling: Binary": "lp_binary",
}

DEFAULT_TOGGLES = FeatureToggles()


class ToggleStore:
    """
    Thread-safe holder of the current FeatureToggles.

    When ``path`` is given, values are loaded from it on construction and
    written back after every change.
    """

    def __init__(self, path: Optional[Path] = None, initial: Optional[FeatureToggles] = None):
        self.path = path
        self._lock = threading.Lock()
        self._current: FeatureToggles = initial or DEFAULT_TOGGLES

        if path is not None and initial is None:
            self._current = self._load(path)

    @classmethod
    def from_config(cls, config: DowngradeConfig) -> "ToggleStore":
        return cls(path=config.storage.toggles_path)

    def snapshot(self) -> FeatureToggles:
        """Current toggles; the instance is immutable and safe to keep for one response."""
        return self._current

    def get_boolean(self, name: str, default: bool) -> bool:
        """Named lookup ("WebSockets: Text" etc.); unknown names fall back to ``default``."""
        field_name = TOGGLE_NAMES.get(name)
        if field_name is None:
            return default
        return getattr(self._current, field_name)

    def as_dict(self) -> Dict[str, bool]:
        current = self._current
        return {name: getattr(current, field_name) for name, field_name in TOGGLE_NAMES.items()}

    def set(self, name: str, value: bool) -> FeatureToggles:
        return self.update({name: value})

    def update(self, values: Mapping[str, bool]) -> FeatureToggles:
        """
        Apply several toggles at once.

        Raises:
            DowngradeError(TOGGLE_UNKNOWN) if any name is unknown; nothing is
            applied in that case.
        """
        unknown = [name for name in values if name not in TOGGLE_NAMES]
        if unknown:
            raise DowngradeError(
                ErrorCode.TOGGLE_UNKNOWN,
                f"Unknown transport toggle(s): {', '.join(unknown)}",
                details={"unknown": unknown, "known": list(TOGGLE_NAMES)},
            )

        changes = {TOGGLE_NAMES[name]: bool(value) for name, value in values.items()}
        # Save under the lock so the file never lags behind memory
        with self._lock:
            self._current = replace(self._current, **changes)
            updated = self._current
            self._save(updated)
        logger.info(f"[Toggles] Updated: {', '.join(f'{k}={v}' for k, v in values.items())}")
        return updated

    def reset(self) -> FeatureToggles:
        with self._lock:
            self._current = DEFAULT_TOGGLES
            self._save(DEFAULT_TOGGLES)
        logger.info("[Toggles] Reset to defaults")
        return DEFAULT_TOGGLES

    # --- Persistence ---

    @staticmethod
    def _load(path: Path) -> FeatureToggles:
        if not path.exists():
            return DEFAULT_TOGGLES
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("toggle file must hold a JSON object")
        except (OSError, ValueError) as e:
            logger.warning(f"[Toggles] Ignoring unreadable toggle file {path}: {e}")
            return DEFAULT_TOGGLES

        values = {}
        for name, field_name in TOGGLE_NAMES.items():
            if name not in data:
                continue
            if not isinstance(data[name], bool):
                logger.warning(f"[Toggles] {name!r} in {path} is not true/false, using default")
                continue
            values[field_name] = data[name]
        return replace(DEFAULT_TOGGLES, **values)

    def _save(self, toggles: FeatureToggles) -> None:
        if self.path is None:
            return
        payload = {name: asdict(toggles)[field_name] for name, field_name in TOGGLE_NAMES.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            raise DowngradeError(
                ErrorCode.TOGGLE_PERSIST_FAILED,
                f"Could not save toggles to {self.path}: {e}",
                details={"path": str(self.path)},
            ) from e
