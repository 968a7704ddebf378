"""Unit tests for snapshot -> graph derivation."""

import logging

from conftest import service, services_doc, two_node_tree

from topo.derive import (
    FLOW_EDGE_COLOR,
    contains_link_between,
    derive_graph,
    format_rate,
    parse_locator,
)


def edges_by_id(edges):
    return {e["id"]: e for e in edges}


class TestNodes:
    def test_isolated_service(self):
        nodes, edges = derive_graph(services_doc(service("p1")), {})
        assert [n["id"] for n in nodes] == ["p1"]
        assert edges == []

    def test_label_fields_in_order(self):
        doc = services_doc(service("p1", hostname="broker-east-01.example", locator="tcp/192.168.1.7:7447"))
        plugins = {
            "/@/p1/plugins/zenoh-http": {"locators": ["http/0.0.0.0:8000"]},
            "/@/p1/plugins/yaks": {},
        }
        nodes, _ = derive_graph(doc, plugins)
        assert nodes[0]["label"] == (
            "<b>broker-east-</b>\n192.168.1.7\ntcp:7447"
            "\n_______________\nhttp:8000"
            "\n_______________\nYAKS"
            "\n_______________"
        )

    def test_label_without_plugins(self):
        nodes, _ = derive_graph(services_doc(service("p1", hostname="h", locator="tcp/10.1.1.1:7447")), {})
        assert nodes[0]["label"] == "<b>h</b>\n10.1.1.1\ntcp:7447\n_______________"

    def test_plugins_of_other_services_ignored(self):
        doc = services_doc(service("p1"), service("p2"))
        nodes, _ = derive_graph(doc, {"/@/p2/plugins/yaks": {}})
        labels = {n["id"]: n["label"] for n in nodes}
        assert "YAKS" not in labels["p1"]
        assert "YAKS" in labels["p2"]

    def test_parse_locator(self):
        assert parse_locator("tcp/10.0.0.1:7447") == ("10.0.0.1", "7447")
        assert parse_locator(None) == ("", "")


class TestFlowLinks:
    def test_active_link_one_direction(self):
        _, edges = derive_graph(two_node_tree(up=3, down=0), {})
        assert list(edges_by_id(edges)) == ["p1_p2"]
        e = edges[0]
        assert e["from"] == "p1" and e["to"] == "p2"
        assert e["label"] == "3 m/s"
        assert e["arrows"] == "to, "
        assert e["width"] == 4
        assert e["color"] == FLOW_EDGE_COLOR
        assert e["dashes"] is False

    def test_active_link_both_directions(self):
        _, edges = derive_graph(two_node_tree(up=2, down=5), {})
        assert edges[0]["label"] == "7 m/s"
        assert edges[0]["arrows"] == "to, from, "

    def test_idle_link(self):
        _, edges = derive_graph(two_node_tree(up=0, down=0), {})
        e = edges_by_id(edges)["p1_p2"]
        assert e["label"] == "0 m/s"
        assert e["arrows"] == ""
        assert e["color"] is None
        assert e["width"] == 2

    def test_fractional_rate(self):
        assert format_rate(2.5) == "2.5"
        assert format_rate(3.0) == "3"

    def test_missing_session_skips_edge_and_logs(self, caplog):
        doc = services_doc(
            service("p1", parents=["p2"], peers={"p2": None}),
            service("p2", peers={"p1": 1}),
        )
        with caplog.at_level(logging.WARNING, logger="topo.derive"):
            _, edges = derive_graph(doc, {})
        assert "p1_p2" not in edges_by_id(edges)
        assert "skipping tree link p1 -> p2" in caplog.text
        # the pair is still mesh-adjacent, so it renders as unconfirmed
        assert "bk_p2_p1" in edges_by_id(edges)

    def test_missing_parent_service_skips_edge(self):
        doc = services_doc(service("p1", parents=["p9"], peers={"p9": 4}))
        _, edges = derive_graph(doc, {})
        ids = edges_by_id(edges)
        assert "p1_p9" not in ids
        assert "bk_p9_p1" in ids

    def test_one_bad_link_does_not_drop_others(self):
        doc = services_doc(
            service("p1", parents=["p2"], peers={"p2": 1}),
            service("p2", peers={"p1": 1, "p3": 0}),
            service("p3", parents=["p2"], peers={"p2": None}),
        )
        _, edges = derive_graph(doc, {})
        assert "p1_p2" in edges_by_id(edges)


class TestBrokenLinks:
    def test_peer_without_tree_relation(self):
        _, edges = derive_graph(services_doc(service("p1", peers={"p3": 0})), {})
        e = edges_by_id(edges)["bk_p3_p1"]
        assert e["dashes"] is True
        assert e["width"] == 1
        assert e["label"] == ""
        assert e["arrows"] == ""
        assert e["color"] is None

    def test_no_broken_link_where_flow_link_exists_either_direction(self):
        # p2 lists p1 as a peer; the flow link is stored p1 -> p2
        _, edges = derive_graph(two_node_tree(), {})
        assert all(e["kind"] == "flow" for e in edges)

    def test_mutual_peers_give_one_broken_link(self):
        doc = services_doc(service("p1", peers={"p2": 0}), service("p2", peers={"p1": 0}))
        _, edges = derive_graph(doc, {})
        assert [e["id"] for e in edges] == ["bk_p2_p1"]

    def test_contains_link_between(self):
        edges = [{"from": "a", "to": "b"}]
        assert contains_link_between(edges, "a", "b")
        assert contains_link_between(edges, "b", "a")
        assert not contains_link_between(edges, "a", "c")


class TestSkip:
    def test_skipped_paths_contribute_nothing(self):
        doc = services_doc(service("p1", peers={"p2": 0}), service("p2"))
        nodes, edges = derive_graph(doc, {}, skip=["/@/p1"])
        assert [n["id"] for n in nodes] == ["p2"]
        assert edges == []

    def test_record_without_pid_is_dropped(self, caplog):
        doc = {"/@/x": {"hostname": "h", "locators": ["tcp/1.2.3.4:1"]}, **services_doc(service("p1"))}
        with caplog.at_level(logging.WARNING):
            nodes, _ = derive_graph(doc, {})
        assert [n["id"] for n in nodes] == ["p1"]
        assert "/@/x" in caplog.text

    def test_mistyped_tree_entry_skips_only_that_record(self, caplog):
        bad = service("p9")
        bad["trees"]["tree_set"] = [{"local": "oops"}]
        doc = {**two_node_tree(), **services_doc(bad)}
        with caplog.at_level(logging.WARNING):
            nodes, edges = derive_graph(doc, {})
        assert sorted(n["id"] for n in nodes) == ["p1", "p2"]
        assert [e["id"] for e in edges] == ["p1_p2"]
        assert "trees.tree_set[0].local" in caplog.text

    def test_mistyped_session_stats_skips_only_that_record(self):
        bad = service("p9")
        bad["sessions"] = [{"sid": "x", "stats": 5}]
        nodes, _ = derive_graph({**two_node_tree(), **services_doc(bad)}, {})
        assert sorted(n["id"] for n in nodes) == ["p1", "p2"]

    def test_mistyped_peer_list_skips_only_that_record(self):
        bad = service("p9")
        bad["trees"]["peers"] = "p1"
        nodes, _ = derive_graph({**two_node_tree(), **services_doc(bad)}, {})
        assert sorted(n["id"] for n in nodes) == ["p1", "p2"]
