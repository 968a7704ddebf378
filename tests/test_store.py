"""Unit tests for the reconciler."""

from conftest import service, services_doc, two_node_tree

from topo.derive import derive_graph
from topo.store import ElementSet, GraphStore


def reconcile(store, services, plugins=None):
    nodes, edges = derive_graph(services, plugins or {})
    return store.reconcile_graph(nodes, edges)


class TestElementSet:
    def test_update_inserts_then_merges(self):
        s = ElementSet()
        assert s.update([{"id": "a", "label": "x"}]) == ["a"]
        assert s.update([{"id": "a", "label": "y", "width": 2}]) == []
        assert s.get("a") == {"id": "a", "label": "y", "width": 2}
        assert len(s) == 1

    def test_remove_unknown_id_is_tolerated(self):
        s = ElementSet()
        assert s.remove("ghost") is False

    def test_reconcile_prunes_absent_ids(self):
        s = ElementSet()
        s.update([{"id": "a"}, {"id": "b"}])
        result = s.reconcile([{"id": "b"}, {"id": "c"}])
        assert sorted(s.get_ids()) == ["b", "c"]
        assert result == {"added": ["c"], "updated": ["b"], "removed": ["a"]}

    def test_returned_elements_are_copies(self):
        s = ElementSet()
        s.update([{"id": "a", "color": {"color": "red"}}])
        got = s.get("a")
        got["color"]["color"] = "blue"
        assert s.get("a")["color"] == {"color": "red"}

    def test_decorate_never_changes_membership(self):
        s = ElementSet()
        s.update([{"id": "a", "width": 4}])
        s.decorate(lambda el: el.update(width=1))
        assert s.get_ids() == ["a"]
        assert s.get("a")["width"] == 1


class TestGraphStore:
    def test_reconcile_same_snapshot_twice_is_idempotent(self):
        store = GraphStore()
        reconcile(store, two_node_tree())
        first = store.snapshot()
        summary = reconcile(store, two_node_tree())
        assert store.snapshot() == first
        assert summary["nodes"]["added"] == [] and summary["edges"]["removed"] == []

    def test_second_snapshot_replaces_first(self):
        store = GraphStore()
        reconcile(store, services_doc(service("p1", peers={"p3": 0}), service("p3")))
        reconcile(store, two_node_tree())
        assert sorted(store.nodes.get_ids()) == ["p1", "p2"]
        assert store.edges.get_ids() == ["p1_p2"]

    def test_merge_overwrites_mutable_fields(self):
        store = GraphStore()
        reconcile(store, two_node_tree(up=3))
        reconcile(store, two_node_tree(up=0))
        e = store.edges.get("p1_p2")
        assert (e["label"], e["arrows"], e["color"], e["width"]) == ("0 m/s", "", None, 2)

    def test_empty_snapshot_clears_store(self):
        store = GraphStore()
        reconcile(store, two_node_tree())
        reconcile(store, {})
        assert len(store.nodes) == 0 and len(store.edges) == 0
