#!/usr/bin/env python3
"""
Presentation state handed to the external graph renderer.

``GraphView`` stands in for the renderer binding: it owns the renderer
options (palette included), the current selection, the status message and
the two JSON detail panes. The browser-side vis-network instance and JSON
viewers mirror whatever this object holds.
"""

from __future__ import annotations

import copy
import json
import threading
from typing import Any, Dict, Optional

from .store import GraphStore

DEFAULT_NODE_COLOR = {
    "background": "#7BBCFF",
    "border": "#00356D",
    "highlight": {"background": "#2397FF", "border": "#00356D"},
}
DEFAULT_NODE_TEXT_COLOR = "#000000"
DISABLED_NODE_COLOR = {
    "background": "#F5F5F5",
    "border": "#BBBBBB",
    "highlight": {"background": "#F5F5F5", "border": "#BBBBBB"},
}
DISABLED_NODE_TEXT_COLOR = "#BBBBBB"
DEFAULT_EDGE_COLOR = {"color": "grey", "highlight": "grey", "hover": "grey"}
DISABLED_EDGE_COLOR = {"color": "#EEEEEE", "highlight": "#EEEEEE", "hover": "#EEEEEE"}

BASE_OPTIONS: Dict[str, Any] = {
    "edges": {
        "font": {"face": "courier", "size": 10, "multi": "html", "bold": {"face": "courier bold", "size": 12}},
        "selectionWidth": 0,
    },
    "nodes": {
        "shape": "box",
        "margin": 4,
        "font": {
            "face": "courier",
            "size": 10,
            "multi": "html",
            "align": "left",
            "bold": {"face": "courier bold", "size": 12},
        },
        "color": DEFAULT_NODE_COLOR,
    },
    "physics": {"enabled": True},
}

EMPTY_TEXT = "{}"


class JsonPane:
    """One JSON detail pane: holds either a structured object or raw text."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._obj: Any = None
        self._text: str = EMPTY_TEXT

    def update(self, obj: Any) -> None:
        with self._lock:
            self._obj = copy.deepcopy(obj)
            self._text = None

    def update_text(self, text: str) -> None:
        with self._lock:
            self._obj = None
            self._text = text

    def content(self) -> Any:
        with self._lock:
            if self._text is not None:
                return json.loads(self._text)
            return copy.deepcopy(self._obj)


class GraphView:
    def __init__(self, store: Optional[GraphStore] = None):
        self.store = store or GraphStore()
        self.router_pane = JsonPane("router")
        self.plugins_pane = JsonPane("plugins")
        self._lock = threading.RLock()
        self._options: Dict[str, Any] = copy.deepcopy(BASE_OPTIONS)
        self._bound = False
        self._selected: Optional[str] = None
        self._message = ""

    # ---------- Renderer binding ----------

    def bind(self) -> None:
        """(Re)create the renderer binding over the store."""
        with self._lock:
            self._bound = True

    @property
    def bound(self) -> bool:
        with self._lock:
            return self._bound

    def options(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._options)

    def set_options(self, options: Dict[str, Any]) -> None:
        with self._lock:
            self._options = copy.deepcopy(options)

    # ---------- Selection ----------

    def select(self, node: Optional[str]) -> None:
        with self._lock:
            self._selected = None if node in (None, "") else str(node)

    def selected_node(self) -> Optional[str]:
        with self._lock:
            return self._selected

    # ---------- Status ----------

    def set_message(self, text: str) -> None:
        with self._lock:
            self._message = text

    @property
    def message(self) -> str:
        with self._lock:
            return self._message

    def clear_panes(self) -> None:
        self.router_pane.update_text(EMPTY_TEXT)
        self.plugins_pane.update_text(EMPTY_TEXT)

    def render_state(self) -> Dict[str, Any]:
        graph = self.store.snapshot()
        with self._lock:
            return {
                "nodes": graph["nodes"],
                "edges": graph["edges"],
                "options": copy.deepcopy(self._options),
                "message": self._message,
                "selected": self._selected,
                "bound": self._bound,
            }
