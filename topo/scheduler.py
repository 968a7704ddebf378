#!/usr/bin/env python3
"""
Refresh cycles: fetch -> derive -> reconcile, or degrade on failure.

Three entry points share one cycle:
- bootstrap(): first fetch, binds the renderer whatever the outcome
- refresh():   one manual cycle
- periodic:    background thread re-running the cycle every ``delay`` seconds
               while active; the flag is checked before every reschedule, so
               stopping lets the in-flight cycle finish and schedules nothing.

Cycles are serialized: the store has a single writer at any time.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from .derive import derive_graph
from .details import DetailBridge
from .events import EventBus, build_cloudevent
from .health import HealthMonitor
from .snapshot import FetchError, Snapshot, SnapshotClient
from .validators import SchemaRegistry, lint_services
from .view import GraphView

log = logging.getLogger(__name__)

EVENT_SOURCE = "meshview/scheduler"


class RefreshScheduler:
    def __init__(
        self,
        view: GraphView,
        client: SnapshotClient,
        health: HealthMonitor,
        bridge: DetailBridge,
        *,
        delay: float = 0.5,
        registry: Optional[SchemaRegistry] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.view = view
        self.client = client
        self.health = health
        self.bridge = bridge
        self.delay = delay
        self.registry = registry
        self.bus = bus

        self._cycle_lock = threading.Lock()
        self._lock = threading.Lock()
        self._active = False
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_snapshot: Optional[Snapshot] = None
        self.cycles = 0

    # ------------------------- entry points -------------------------

    def bootstrap(self) -> bool:
        return self.run_cycle(bind=True)

    def refresh(self) -> bool:
        return self.run_cycle()

    def start_periodic(self) -> None:
        with self._lock:
            self._active = True
            self._wake.clear()
            if self._thread is None:
                self._thread = threading.Thread(target=self._loop, name="PeriodicRefresh", daemon=True)
                self._thread.start()
        log.info("periodic refresh on (every %.2fs)", self.delay)

    def stop_periodic(self) -> None:
        with self._lock:
            self._active = False
            self._wake.set()
        log.info("periodic refresh off")

    def toggle_periodic(self, active: Optional[bool] = None) -> bool:
        target = (not self.periodic_active) if active is None else bool(active)
        if target:
            self.start_periodic()
        else:
            self.stop_periodic()
        return target

    @property
    def periodic_active(self) -> bool:
        with self._lock:
            return self._active

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the periodic thread to exit. True if it is gone."""
        with self._lock:
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return True

    @property
    def last_snapshot(self) -> Optional[Snapshot]:
        return self._last_snapshot

    # ------------------------- cycle -------------------------

    def run_cycle(self, bind: bool = False) -> bool:
        """One fetch and its consequences. Returns True if the snapshot merged.

        Any failure, expected or not, degrades the view and returns False.
        """
        with self._cycle_lock:
            self.cycles += 1
            try:
                snap = self.client.fetch()
            except Exception as exc:
                if not isinstance(exc, FetchError):
                    log.exception("snapshot fetch crashed")
                if bind:
                    self.view.bind()
                self.health.degrade(exc)
                return False
            if bind:
                self.view.bind()
            try:
                self._merge(snap)
            except Exception as exc:
                log.exception("merging snapshot crashed")
                self.health.degrade(exc)
                return False
            return True

    def _merge(self, snap: Snapshot) -> Dict[str, Any]:
        skip = []
        if self.registry is not None:
            report = lint_services(snap.services, registry=self.registry)
            for path, problems in report.items():
                log.warning("skipping malformed service %s: %s", path, problems[0][1])
            skip = list(report)
        nodes, edges = derive_graph(snap.services, snap.plugins, skip=skip)
        self.health.recover()
        summary = self.view.store.reconcile_graph(nodes, edges)
        self._last_snapshot = snap
        log.debug(
            "merged snapshot: %d nodes, %d edges", summary["node_count"], summary["edge_count"]
        )
        self._emit_merge(summary)
        self.bridge.show(snap)
        return summary

    def _emit_merge(self, summary: Dict[str, Any]) -> None:
        if self.bus is None:
            return
        n, e = summary["nodes"], summary["edges"]
        if not (n["added"] or n["removed"] or e["added"] or e["removed"]):
            return
        self.bus.emit(
            build_cloudevent(
                "mesh.graph.merged",
                EVENT_SOURCE,
                {
                    "node_count": summary["node_count"],
                    "edge_count": summary["edge_count"],
                    "nodes_added": n["added"],
                    "nodes_removed": n["removed"],
                    "edges_added": e["added"],
                    "edges_removed": e["removed"],
                },
            )
        )

    # ------------------------- periodic loop -------------------------

    def _still_active(self) -> bool:
        with self._lock:
            if self._active:
                return True
            self._thread = None
            return False

    def _loop(self) -> None:
        while True:
            self.run_cycle()
            if not self._still_active():
                return
            self._wake.wait(self.delay)
            self._wake.clear()
            if not self._still_active():
                return
