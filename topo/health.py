#!/usr/bin/env python3
"""
Healthy/Degraded presentation state of the graph.

The monitor never inserts or removes graph elements. On a failed fetch it
calms every stored edge, greys every stored node, swaps the renderer to the
disabled palette, clears the detail panes and shows a message. On a good
fetch it restores the normal palette; the following reconcile pass restores
element content.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from enum import Enum
from typing import Any, Dict, Optional

from .events import EventBus, build_cloudevent
from .view import (
    DEFAULT_EDGE_COLOR,
    DEFAULT_NODE_COLOR,
    DEFAULT_NODE_TEXT_COLOR,
    DISABLED_EDGE_COLOR,
    DISABLED_NODE_COLOR,
    DISABLED_NODE_TEXT_COLOR,
    GraphView,
)

log = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Unable to contact server!"
DEGRADED_MAX_EDGE_WIDTH = 2
EVENT_SOURCE = "meshview/health"


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


def calm_edge(edge: Dict[str, Any]) -> None:
    edge["label"] = ""
    edge["arrows"] = ""
    edge["color"] = None
    if (edge.get("width") or 0) > DEGRADED_MAX_EDGE_WIDTH:
        edge["width"] = DEGRADED_MAX_EDGE_WIDTH


def grey_node(node: Dict[str, Any]) -> None:
    node["color"] = None
    if node.get("shape") == "image" and node.get("image"):
        node["image"] = node["image"].replace("00DD00", "F5F5F5").replace("000000", "BBBBBB")


def apply_palette(options: Dict[str, Any], *, disabled: bool) -> Dict[str, Any]:
    opts = copy.deepcopy(options)
    nodes = opts.setdefault("nodes", {})
    font = nodes.setdefault("font", {})
    bold = font.setdefault("bold", {})
    text = DISABLED_NODE_TEXT_COLOR if disabled else DEFAULT_NODE_TEXT_COLOR
    nodes["color"] = copy.deepcopy(DISABLED_NODE_COLOR if disabled else DEFAULT_NODE_COLOR)
    opts.setdefault("edges", {})["color"] = copy.deepcopy(DISABLED_EDGE_COLOR if disabled else DEFAULT_EDGE_COLOR)
    font["color"] = text
    bold["color"] = text
    return opts


class HealthMonitor:
    def __init__(self, view: GraphView, bus: Optional[EventBus] = None):
        self.view = view
        self.bus = bus
        self._lock = threading.RLock()
        self._state = HealthState.HEALTHY
        self._consecutive_failures = 0
        self._last_success: Optional[float] = None
        self._last_failure: Optional[float] = None
        self._last_error: Optional[str] = None

    @property
    def state(self) -> HealthState:
        with self._lock:
            return self._state

    def degrade(self, reason: Any = None) -> bool:
        """Enter (or stay in) Degraded. Returns True on a state change."""
        with self._lock:
            changed = self._state is not HealthState.DEGRADED
            self._state = HealthState.DEGRADED
            self._consecutive_failures += 1
            self._last_failure = time.time()
            self._last_error = str(reason) if reason is not None else None

            self.view.set_message(OFFLINE_MESSAGE)
            self.view.store.edges.decorate(calm_edge)
            self.view.store.nodes.decorate(grey_node)
            self.view.set_options(apply_palette(self.view.options(), disabled=True))
            self.view.clear_panes()

        if changed:
            log.warning("mesh unreachable, switching to degraded view: %s", reason)
            self._emit("mesh.health.degraded", {"reason": self._last_error})
        return changed

    def recover(self) -> bool:
        """Enter (or stay in) Healthy. Returns True on a state change."""
        with self._lock:
            changed = self._state is not HealthState.HEALTHY
            failures = self._consecutive_failures
            self._state = HealthState.HEALTHY
            self._consecutive_failures = 0
            self._last_success = time.time()

            self.view.set_message("")
            self.view.set_options(apply_palette(self.view.options(), disabled=False))

        if changed:
            log.info("mesh reachable again after %d failed cycle(s)", failures)
            self._emit("mesh.health.recovered", {"failed_cycles": failures})
        return changed

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "consecutive_failures": self._consecutive_failures,
                "last_success": self._last_success,
                "last_failure": self._last_failure,
                "last_error": self._last_error,
            }

    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.bus is None:
            return
        self.bus.emit(build_cloudevent(event_type, EVENT_SOURCE, data))
