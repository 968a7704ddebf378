#!/usr/bin/env python3
"""Live graph store: keyed node and edge sets the renderer reads."""

from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

Element = Dict[str, Any]


class ElementSet:
    """Keyed collection of element dicts with upsert semantics."""

    def __init__(self):
        self._items: Dict[str, Element] = {}
        self._lock = threading.RLock()

    # ---------- Queries ----------

    def get(self, element_id: str) -> Optional[Element]:
        with self._lock:
            el = self._items.get(element_id)
            return copy.deepcopy(el) if el is not None else None

    def get_ids(self) -> List[str]:
        with self._lock:
            return list(self._items)

    def all(self) -> List[Element]:
        with self._lock:
            return copy.deepcopy(list(self._items.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    # ---------- Mutation ----------

    def update(self, elements: Iterable[Element]) -> List[str]:
        """Insert new ids, merge fields into existing ones. Returns inserted ids."""
        inserted = []
        with self._lock:
            for el in elements:
                eid = el["id"]
                cur = self._items.get(eid)
                if cur is None:
                    self._items[eid] = copy.deepcopy(el)
                    inserted.append(eid)
                else:
                    cur.update(copy.deepcopy(el))
        return inserted

    def remove(self, element_id: str) -> bool:
        """Best-effort removal; an unknown id is not an error."""
        with self._lock:
            return self._items.pop(element_id, None) is not None

    def decorate(self, fn: Callable[[Element], None]) -> int:
        """Apply ``fn`` to every stored element in place. Never adds or drops ids."""
        with self._lock:
            for el in self._items.values():
                fn(el)
            return len(self._items)

    def reconcile(self, elements: List[Element]) -> Dict[str, List[str]]:
        """Upsert ``elements`` then prune every id absent from them."""
        keep = {el["id"] for el in elements}
        with self._lock:
            existing = set(self._items)
            inserted = self.update(elements)
            removed = [eid for eid in self.get_ids() if eid not in keep]
            for eid in removed:
                self.remove(eid)
        return {
            "added": inserted,
            "updated": sorted(existing & keep),
            "removed": removed,
        }


class GraphStore:
    """Nodes and edges of the live graph. The renderer only reads it."""

    def __init__(self):
        self.nodes = ElementSet()
        self.edges = ElementSet()
        self._lock = threading.RLock()

    def reconcile_graph(self, nodes: List[Element], edges: List[Element]) -> Dict[str, Any]:
        with self._lock:
            n = self.nodes.reconcile(nodes)
            e = self.edges.reconcile(edges)
        return {"nodes": n, "edges": e, "node_count": len(self.nodes), "edge_count": len(self.edges)}

    def snapshot(self) -> Dict[str, List[Element]]:
        with self._lock:
            return {"nodes": self.nodes.all(), "edges": self.edges.all()}
