"""Shared snapshot builders and fakes."""

from typing import Any, Dict, Optional

import pytest
import requests

from topo.details import DetailBridge
from topo.events import EventBus
from topo.health import HealthMonitor
from topo.scheduler import RefreshScheduler
from topo.snapshot import FetchError, Snapshot
from topo.store import GraphStore
from topo.view import GraphView


def service(
    pid: str,
    *,
    hostname: Optional[str] = None,
    locator: str = "tcp/10.0.0.1:7447",
    parents=(),
    peers: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Service record; ``peers`` maps peer pid -> outbound msg/s toward it (None: no session)."""
    peer_list = []
    sessions = []
    for i, (peer_pid, rate) in enumerate((peers or {}).items()):
        sid = f"{pid}-s{i}"
        peer_list.append({"pid": peer_pid, "sid": sid})
        if rate is not None:
            sessions.append({"sid": sid, "stats": {"out_msgs_tp": rate}})
    return {
        "pid": pid,
        "hostname": hostname or f"host-{pid}",
        "locators": [locator],
        "trees": {
            "peers": peer_list,
            "tree_set": [{"tree_nb": i, "local": {"parent": p}} for i, p in enumerate(parents)]
            or [{"tree_nb": 0, "local": {"parent": None}}],
        },
        "sessions": sessions,
    }


def services_doc(*records: Dict[str, Any]) -> Dict[str, Any]:
    return {f"/@/{r['pid']}": r for r in records}


def two_node_tree(up: float = 3, down: float = 0) -> Dict[str, Any]:
    return services_doc(
        service("p1", parents=["p2"], peers={"p2": up}),
        service("p2", peers={"p1": down}),
    )


class FakeClient:
    """Stands in for SnapshotClient; queue outcomes with push()."""

    def __init__(self):
        self.outcomes = []
        self.default: Any = FetchError("/@/*", "no outcome queued")
        self.services: Dict[str, Any] = {}
        self.plugins: Dict[str, Any] = {}
        self.fail_targeted = False
        self.fetches = 0
        self.targeted = []

    def push(self, outcome: Any) -> None:
        self.outcomes.append(outcome)

    def fetch(self) -> Snapshot:
        self.fetches += 1
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        services, plugins = outcome
        return Snapshot(services=services, plugins=plugins)

    def fetch_service(self, pid: str):
        self.targeted.append(pid)
        if self.fail_targeted:
            raise FetchError(f"/@/{pid}", "connection refused")
        return self.services.get(f"/@/{pid}")

    def fetch_service_plugins(self, pid: str):
        if self.fail_targeted:
            raise FetchError(f"/@/{pid}/plugins/*", "connection refused")
        return {k: v for k, v in self.plugins.items() if k.startswith(f"/@/{pid}/plugins/")}


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status
        self._payload = payload
        self._text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._text is not None:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    def __init__(self, routes: Dict[str, Any]):
        self.routes = routes
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        for suffix, outcome in self.routes.items():
            if url.endswith(suffix):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise requests.ConnectionError(f"no route for {url}")


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def view():
    return GraphView(GraphStore())


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def health(view, bus):
    return HealthMonitor(view, bus=bus)


@pytest.fixture
def bridge(view, client, health):
    return DetailBridge(view, client, health)


@pytest.fixture
def scheduler(view, client, health, bridge, bus):
    sched = RefreshScheduler(view, client, health, bridge, delay=0.01, bus=bus)
    yield sched
    sched.stop_periodic()
    sched.join(timeout=2.0)
