#!/usr/bin/env python3
"""Typed views over the management API's service and plugin documents.

Records are transient: built per derivation pass from the raw JSON maps and
dropped once folded into graph elements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .ids import plugin_path, split_plugin_path

log = logging.getLogger(__name__)


def safe_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except Exception:
        return default


def _mapping(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} is {type(value).__name__}, expected an object")
    return value


def _sequence(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what} is {type(value).__name__}, expected an array")
    return value


@dataclass
class Peer:
    pid: str
    sid: Any = None


@dataclass
class TreeEntry:
    parent: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Session:
    sid: Any
    out_msgs_tp: float = 0.0


@dataclass
class ServiceRecord:
    pid: str
    hostname: str = ""
    locators: List[str] = field(default_factory=list)
    peers: List[Peer] = field(default_factory=list)
    trees: List[TreeEntry] = field(default_factory=list)
    sessions: List[Session] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ServiceRecord":
        """Raises ValueError when the record has no pid or a mistyped nested block."""
        if not isinstance(data, dict) or data.get("pid") in (None, ""):
            raise ValueError("service record without pid")
        trees_block = _mapping(data.get("trees"), "trees")
        peers = [
            Peer(pid=str(p.get("pid")), sid=p.get("sid"))
            for p in _sequence(trees_block.get("peers"), "trees.peers")
            if isinstance(p, dict) and p.get("pid") is not None
        ]
        trees = []
        for i, t in enumerate(_sequence(trees_block.get("tree_set"), "trees.tree_set")):
            if not isinstance(t, dict):
                continue
            parent = _mapping(t.get("local"), f"trees.tree_set[{i}].local").get("parent")
            trees.append(TreeEntry(parent=None if parent is None else str(parent), raw=t))
        sessions = []
        for i, s in enumerate(_sequence(data.get("sessions"), "sessions")):
            if not isinstance(s, dict):
                continue
            stats = _mapping(s.get("stats"), f"sessions[{i}].stats")
            sessions.append(Session(sid=s.get("sid"), out_msgs_tp=safe_float(stats.get("out_msgs_tp"), 0.0)))
        return cls(
            pid=str(data["pid"]),
            hostname=str(data.get("hostname") or ""),
            locators=[str(x) for x in _sequence(data.get("locators"), "locators")],
            peers=peers,
            trees=trees,
            sessions=sessions,
            raw=data,
        )

    def parents(self) -> List[str]:
        return [t.parent for t in self.trees if t.parent is not None]

    def peer(self, pid: str) -> Optional[Peer]:
        return next((p for p in self.peers if p.pid == pid), None)

    def session(self, sid: Any) -> Optional[Session]:
        return next((s for s in self.sessions if s.sid == sid), None)


class PluginIndex:
    """Plugin blobs keyed by ``(pid, plugin name)`` instead of raw paths."""

    def __init__(self, plugins: Optional[Dict[str, Any]] = None):
        self._by_key: Dict[Tuple[str, str], Any] = {}
        for path, blob in (plugins or {}).items():
            parts = split_plugin_path(path)
            if parts is None:
                log.debug("ignoring non-plugin key %s", path)
                continue
            self._by_key[parts] = blob

    def get(self, pid: str, name: str) -> Any:
        return self._by_key.get((pid, name))

    def has(self, pid: str, name: str) -> bool:
        return (pid, name) in self._by_key

    def for_service(self, pid: str) -> Dict[str, Any]:
        return {plugin_path(p, n): blob for (p, n), blob in self._by_key.items() if p == pid}


def parse_services(services: Dict[str, Any], skip: Iterable[str] = ()) -> Dict[str, ServiceRecord]:
    """Parse the ``/@/*`` document into records keyed by pid.

    Records that cannot be parsed are logged and left out; so are the
    service paths listed in ``skip``.
    """
    skipped = set(skip)
    out: Dict[str, ServiceRecord] = {}
    for path, data in (services or {}).items():
        if path in skipped:
            continue
        try:
            rec = ServiceRecord.from_json(data)
        except ValueError as exc:
            log.warning("skipping service %s: %s", path, exc)
            continue
        out[rec.pid] = rec
    return out
