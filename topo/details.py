#!/usr/bin/env python3
"""Detail inspector for the selected node: its service record and plugins."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .health import HealthMonitor
from .ids import plugin_name, service_path
from .records import PluginIndex
from .snapshot import FetchError, Snapshot, SnapshotClient
from .view import GraphView

log = logging.getLogger(__name__)


def shorten_plugin_keys(plugins: Dict[str, Any]) -> Dict[str, Any]:
    return {plugin_name(path): blob for path, blob in (plugins or {}).items()}


def plugins_of(plugins: Dict[str, Any], pid: str) -> Dict[str, Any]:
    return PluginIndex(plugins).for_service(pid)


class DetailBridge:
    def __init__(self, view: GraphView, client: SnapshotClient, health: HealthMonitor):
        self.view = view
        self.client = client
        self.health = health

    def show(self, snapshot: Optional[Snapshot] = None) -> Optional[Dict[str, Any]]:
        """Fill both panes for the current selection.

        Served from ``snapshot`` when it holds the selected node, otherwise
        fetched. Returns what was shown, or None when the fetch failed.
        """
        node = self.view.selected_node()
        if node is None:
            self.view.clear_panes()
            return {"node": None, "record": {}, "plugins": {}, "source": None}

        services = snapshot.services if snapshot is not None else {}
        if service_path(node) in services:
            record = services[service_path(node)]
            plugins = plugins_of(snapshot.plugins, node)
            source = "snapshot"
        else:
            try:
                record = self.client.fetch_service(node) or {}
                plugins = plugins_of(self.client.fetch_service_plugins(node), node)
            except FetchError as exc:
                log.warning("details for %s unavailable: %s", node, exc)
                self.health.degrade(exc)
                return None
            source = "fetch"

        short = shorten_plugin_keys(plugins)
        self.view.router_pane.update(record)
        self.view.plugins_pane.update(short)
        return {"node": node, "record": record, "plugins": short, "source": source}
