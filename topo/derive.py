#!/usr/bin/env python3
"""
topo/derive.py: snapshot -> graph elements.

Pure functions mapping one ``(services, plugins)`` snapshot into node and
edge element dicts ready for the reconciler.

Edges come in two kinds
-----------------------
- flow links: ``child -> parent`` tree relations, labelled with the summed
  message rate of both directions; "active" when that sum is positive.
- broken links: peer relations with no flow link between the pair in either
  direction; dashed and unlabelled.

A flow link whose session lookup fails is skipped (and logged); the pair
then shows up as a broken link if the services still list each other as peers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .ids import broken_link_id, flow_link_id, node_id
from .records import PluginIndex, ServiceRecord, parse_services

log = logging.getLogger(__name__)

HTTP_PLUGIN = "zenoh-http"
YAKS_PLUGIN = "yaks"
HOSTNAME_WIDTH = 12
SEPARATOR = "_______________"

FLOW_EDGE_COLOR = {"color": "#1387FF", "highlight": "#1387FF", "hover": "#1387FF"}
ACTIVE_WIDTH = 4
IDLE_WIDTH = 2
BROKEN_WIDTH = 1

Element = Dict[str, Any]


class DerivationError(LookupError):
    """A service references a peer, session or parent absent from the snapshot."""


# ----------------- Nodes -----------------

def parse_locator(locator: Optional[str]) -> Tuple[str, str]:
    """``"tcp/10.0.0.1:7447"`` -> ``("10.0.0.1", "7447")``."""
    if not locator:
        return "", ""
    tail = locator.split("/")[-1]
    addr, _, rest = tail.partition(":")
    port = rest.split(":")[0] if rest else ""
    return addr, port


def http_port(blob: Any) -> Optional[str]:
    locators = (blob or {}).get("locators") if isinstance(blob, dict) else None
    if not locators:
        return None
    return str(locators[0]).split(":")[-1]


def node_label(rec: ServiceRecord, plugins: PluginIndex) -> str:
    addr, port = parse_locator(rec.locators[0] if rec.locators else None)
    label = f"<b>{rec.hostname[:HOSTNAME_WIDTH]}</b>\n{addr}\ntcp:{port}"
    if plugins.has(rec.pid, HTTP_PLUGIN):
        hport = http_port(plugins.get(rec.pid, HTTP_PLUGIN))
        if hport is None:
            log.debug("http plugin of %s exposes no locator", rec.pid)
        else:
            label += f"\n{SEPARATOR}\nhttp:{hport}"
    if plugins.has(rec.pid, YAKS_PLUGIN):
        label += f"\n{SEPARATOR}\nYAKS"
    return label + f"\n{SEPARATOR}"


def derive_nodes(records: Dict[str, ServiceRecord], plugins: PluginIndex) -> List[Element]:
    return [
        {"id": node_id(rec.pid), "label": node_label(rec, plugins), "color": None}
        for rec in records.values()
    ]


# ----------------- Edges -----------------

def session_rate(service: ServiceRecord, peer_pid: str) -> Optional[float]:
    """Outbound message rate of ``service`` toward ``peer_pid``, or None if unknown."""
    peer = service.peer(peer_pid)
    if peer is None:
        return None
    session = service.session(peer.sid)
    if session is None:
        return None
    return session.out_msgs_tp


def require_session_rate(service: Optional[ServiceRecord], peer_pid: str, owner: str) -> float:
    if service is None:
        raise DerivationError(f"service {owner} not in snapshot")
    rate = session_rate(service, peer_pid)
    if rate is None:
        raise DerivationError(f"service {owner} has no session toward {peer_pid}")
    return rate


def format_rate(rate: float) -> str:
    if float(rate).is_integer():
        return str(int(rate))
    return f"{rate:g}"


def flow_link(child: str, parent: str, tpup: float, tpdwn: float) -> Element:
    total = tpup + tpdwn
    edge: Element = {
        "id": flow_link_id(child, parent),
        "from": child,
        "to": parent,
        "kind": "flow",
        "label": f"{format_rate(total)} m/s",
        "dashes": False,
    }
    if total > 0:
        arrows = ""
        if tpup > 0:
            arrows += "to, "
        if tpdwn > 0:
            arrows += "from, "
        edge.update(arrows=arrows, color=dict(FLOW_EDGE_COLOR), width=ACTIVE_WIDTH)
    else:
        edge.update(arrows="", color=None, width=IDLE_WIDTH)
    return edge


def broken_link(a: str, b: str) -> Element:
    return {
        "id": broken_link_id(a, b),
        "from": a,
        "to": b,
        "kind": "broken",
        "label": "",
        "arrows": "",
        "color": None,
        "dashes": True,
        "width": BROKEN_WIDTH,
    }


def contains_link_between(edges: Iterable[Element], a: str, b: str) -> bool:
    return any(
        (e["from"] == a and e["to"] == b) or (e["from"] == b and e["to"] == a)
        for e in edges
    )


def derive_flow_links(records: Dict[str, ServiceRecord]) -> List[Element]:
    links: List[Element] = []
    for rec in records.values():
        for parent in rec.parents():
            try:
                tpup = require_session_rate(rec, parent, rec.pid)
                tpdwn = require_session_rate(records.get(parent), rec.pid, parent)
            except DerivationError as exc:
                log.warning("skipping tree link %s -> %s: %s", rec.pid, parent, exc)
                continue
            links.append(flow_link(rec.pid, parent, tpup, tpdwn))
    return links


def derive_broken_links(records: Dict[str, ServiceRecord], flow_links: List[Element]) -> List[Element]:
    return [
        broken_link(rec.pid, peer.pid)
        for rec in records.values()
        for peer in rec.peers
        if not contains_link_between(flow_links, rec.pid, peer.pid)
    ]


def derive_edges(records: Dict[str, ServiceRecord]) -> List[Element]:
    flows = derive_flow_links(records)
    return dedupe(flows + derive_broken_links(records, flows))


def dedupe(elements: Iterable[Element]) -> List[Element]:
    """Drop repeated ids, keeping the first occurrence."""
    seen = set()
    out: List[Element] = []
    for el in elements:
        if el["id"] in seen:
            continue
        seen.add(el["id"])
        out.append(el)
    return out


# ----------------- Snapshot -----------------

def derive_graph(
    services: Dict[str, Any],
    plugins: Dict[str, Any],
    skip: Iterable[str] = (),
) -> Tuple[List[Element], List[Element]]:
    """Return ``(nodes, edges)`` for one snapshot.

    ``skip`` names service paths to leave out (records that failed schema lint).
    """
    records = parse_services(services, skip=skip)
    index = PluginIndex(plugins)
    nodes = derive_nodes(records, index)
    edges = derive_edges(records)
    log.debug("derived %d nodes, %d edges", len(nodes), len(edges))
    return nodes, edges
