#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ui/dashboard.py: live mesh topology dashboard (single file).

Features
--------
- Graph of broker processes (nodes) and their tree/peer links (edges)
- Flow links labelled with message rates; unconfirmed peer links dashed
- Offline view when the management API cannot be reached, self-healing
- Inspector panes for the selected node's record and plugins
- Manual refresh (also via window.postMessage("refresh")), periodic refresh toggle

Run
---
python3 -m ui.dashboard --base-url http://127.0.0.1:8000 --port 8091
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, make_response, request

from topo.config import ViewerConfig, load_config
from topo.details import DetailBridge
from topo.events import EventBus
from topo.health import HealthMonitor
from topo.scheduler import RefreshScheduler
from topo.snapshot import SnapshotClient
from topo.store import GraphStore
from topo.validators import SchemaRegistry
from topo.view import GraphView

log = logging.getLogger(__name__)

# ----------------- App singletons -----------------

app = Flask(__name__)

CONFIG: ViewerConfig = ViewerConfig()
BUS = EventBus(maxlen=500)
VIEW: Optional[GraphView] = None
HEALTH: Optional[HealthMonitor] = None
BRIDGE: Optional[DetailBridge] = None
SCHEDULER: Optional[RefreshScheduler] = None


def _configure_runtime(config: ViewerConfig, client: Optional[SnapshotClient] = None) -> RefreshScheduler:
    global CONFIG, VIEW, HEALTH, BRIDGE, SCHEDULER

    if SCHEDULER is not None:
        SCHEDULER.stop_periodic()

    CONFIG = config
    client = client or SnapshotClient(config.base_url, timeout=config.timeout_s)
    VIEW = GraphView(GraphStore())
    HEALTH = HealthMonitor(VIEW, bus=BUS)
    BRIDGE = DetailBridge(VIEW, client, HEALTH)
    SCHEDULER = RefreshScheduler(
        VIEW,
        client,
        HEALTH,
        BRIDGE,
        delay=config.refresh_delay_s,
        registry=SchemaRegistry(config.schemas_dir) if config.validate else None,
        bus=BUS,
    )
    return SCHEDULER


_configure_runtime(CONFIG)


# ----------------- Helpers -----------------


def _ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


def _safe_int(x: Any, default: int) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def _health_payload() -> Dict[str, Any]:
    assert HEALTH is not None and SCHEDULER is not None
    status = HEALTH.status()
    status["periodic"] = SCHEDULER.periodic_active
    status["base_url"] = CONFIG.base_url
    return status


# ----------------- JSON APIs -----------------


@app.get("/api/view")
def api_view():
    assert VIEW is not None and HEALTH is not None
    data = VIEW.render_state()
    data["health"] = HEALTH.state.value
    return _ok(data)


@app.get("/api/health")
def api_health():
    return _ok(_health_payload())


@app.post("/api/refresh")
def api_refresh():
    assert SCHEDULER is not None
    merged = SCHEDULER.refresh()
    return _ok({"merged": merged, **_health_payload()})


@app.get("/api/autorefresh")
def api_autorefresh_status():
    assert SCHEDULER is not None
    return _ok({"active": SCHEDULER.periodic_active, "delay_s": SCHEDULER.delay})


@app.post("/api/autorefresh")
def api_autorefresh():
    """
    Body (optional): {"active": true|false}. Without it the flag is toggled.
    """
    assert SCHEDULER is not None
    payload = request.get_json(silent=True) or {}
    active = payload.get("active") if isinstance(payload, dict) else None
    if active is not None and not isinstance(active, bool):
        return _err("'active' must be a boolean")
    state = SCHEDULER.toggle_periodic(active)
    return _ok({"active": state, "delay_s": SCHEDULER.delay})


@app.post("/api/select")
def api_select():
    """
    Body: {"node": "<pid>"} or {"node": null} to clear the selection.
    """
    assert VIEW is not None and BRIDGE is not None and SCHEDULER is not None
    if not request.is_json:
        return _err("expected JSON body")
    payload = request.get_json() or {}
    node = payload.get("node")
    if node is not None and not isinstance(node, (str, int)):
        return _err("'node' must be a string or null")
    VIEW.select(None if node is None else str(node))
    shown = BRIDGE.show(SCHEDULER.last_snapshot)
    if shown is None:
        return _err("unable to contact server", status=502, **_details_payload())
    return _ok(_details_payload())


def _details_payload() -> Dict[str, Any]:
    assert VIEW is not None
    return {
        "node": VIEW.selected_node(),
        "router": VIEW.router_pane.content(),
        "plugins": VIEW.plugins_pane.content(),
    }


@app.get("/api/details")
def api_details():
    return _ok(_details_payload())


@app.get("/api/events")
def api_events():
    since = request.args.get("since")
    limit = max(1, min(_safe_int(request.args.get("limit", 100), 100), 500))
    kind = request.args.get("type")
    recent = BUS.recent(limit=limit, since_id=since, type_prefix=kind)
    return _ok({"events": recent, "limit": limit, "since": since})


# ----------------- HTML UI -----------------

_INDEX_HTML = r"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<title>Mesh Topology</title>
<meta name="viewport" content="width=device-width, initial-scale=1" />
<link rel="icon" href="data:,">
<script src="https://unpkg.com/vis-network@9.1.9/standalone/umd/vis-network.min.js"></script>
<link href="https://cdn.jsdelivr.net/npm/jsoneditor@9.10.5/dist/jsoneditor.min.css" rel="stylesheet" />
<script src="https://cdn.jsdelivr.net/npm/jsoneditor@9.10.5/dist/jsoneditor.min.js"></script>
<style>
body { margin: 0; font-family: ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, Arial; background: #fafbfc; }
header { padding: 10px 16px; display: flex; gap: 12px; align-items: center; border-bottom: 1px solid #dde3ea; }
h1 { margin: 0; font-size: 18px; }
#message { color: #b03030; font-weight: 600; }
.btn { border: 1px solid #9fb3c8; background: #fff; padding: 6px 10px; border-radius: 6px; cursor: pointer; }
.btn.loading { background: #d8ecff; border-color: #1387FF; }
main { display: grid; grid-template-columns: 2fr 1fr; height: calc(100vh - 52px); }
#graph { border-right: 1px solid #dde3ea; }
.tabs button { border: 0; background: none; padding: 8px 12px; cursor: pointer; }
.tabs button.active { border-bottom: 2px solid #1387FF; }
.pane { height: calc(100% - 40px); }
.pane.hidden { display: none; }
</style>
</head>
<body>
<header>
  <h1>Mesh Topology</h1>
  <button class="btn" onclick="refresh()">Refresh</button>
  <button class="btn" id="autorefresh" onclick="autorefresh()">Auto refresh</button>
  <span id="message"></span>
</header>
<main>
  <div id="graph"></div>
  <div>
    <div class="tabs">
      <button class="active" data-pane="router">Router</button>
      <button data-pane="plugins">Plugins</button>
    </div>
    <div id="router" class="pane"></div>
    <div id="plugins" class="pane hidden"></div>
  </div>
</main>
<script>
const nodes = new vis.DataSet();
const edges = new vis.DataSet();
let network = null;
let routereditor = null;
let pluginseditor = null;
let polling = null;

async function fetchJSON(url, opts) {
  const r = await fetch(url, opts);
  const body = await r.json();
  if (!body.ok) throw new Error(body.error || ('HTTP ' + r.status));
  return body.data;
}

function mirror(set, elements) {
  set.update(elements);
  const keep = new Set(elements.map(e => e.id));
  set.getIds().forEach(id => { if (!keep.has(id)) { try { set.remove(id); } catch (err) {} } });
}

async function pull() {
  const view = await fetchJSON('/api/view');
  mirror(nodes, view.nodes);
  mirror(edges, view.edges);
  network.setOptions(view.options);
  document.getElementById('message').textContent = view.message;
  const details = await fetchJSON('/api/details');
  showPanes(details);
}

function showPanes(details) {
  routereditor.set(details.router || {});
  pluginseditor.set(details.plugins || {});
}

async function select() {
  const sel = network.getSelectedNodes()[0];
  try {
    showPanes(await fetchJSON('/api/select', {method: 'POST', headers: {'content-type': 'application/json'},
                                               body: JSON.stringify({node: sel === undefined ? null : String(sel)})}));
  } catch (e) { pull(); }
}

async function refresh() {
  try { await fetchJSON('/api/refresh', {method: 'POST'}); } catch (e) {}
  await pull();
}

async function autorefresh() {
  const btn = document.getElementById('autorefresh');
  const data = await fetchJSON('/api/autorefresh', {method: 'POST', headers: {'content-type': 'application/json'},
                                                     body: JSON.stringify({active: !btn.classList.contains('loading')})});
  btn.classList.toggle('loading', data.active);
  if (polling) { clearInterval(polling); polling = null; }
  if (data.active) { polling = setInterval(pull, Math.max(250, data.delay_s * 1000)); }
}

window.addEventListener('message', event => { if (event.data === 'refresh') { refresh(); } }, false);

window.addEventListener('load', async () => {
  network = new vis.Network(document.getElementById('graph'), {nodes, edges}, {});
  network.on('click', select);
  network.on('dragStart', select);
  routereditor = new JSONEditor(document.getElementById('router'), {mode: 'view'});
  pluginseditor = new JSONEditor(document.getElementById('plugins'), {mode: 'view'});
  document.querySelectorAll('.tabs button').forEach(b => b.addEventListener('click', () => {
    document.querySelectorAll('.tabs button').forEach(x => x.classList.toggle('active', x === b));
    document.querySelectorAll('.pane').forEach(p => p.classList.toggle('hidden', p.id !== b.dataset.pane));
  }));
  const status = await fetchJSON('/api/autorefresh');
  if (status.active) {
    document.getElementById('autorefresh').classList.add('loading');
    polling = setInterval(pull, Math.max(250, status.delay_s * 1000));
  }
  await pull();
});
</script>
</body>
</html>
"""


@app.get("/")
def index():
    resp = make_response(_INDEX_HTML)
    resp.headers["Content-Type"] = "text/html; charset=utf-8"
    return resp


# ----------------- CLI entry -----------------


def main():
    ap = argparse.ArgumentParser(description="Mesh topology dashboard")
    ap.add_argument("--config", help="YAML config file")
    ap.add_argument("--base-url", help="Management API base URL (e.g. http://127.0.0.1:8000)")
    ap.add_argument("--timeout", type=float, help="Fetch timeout in seconds")
    ap.add_argument("--refresh-delay", type=float, help="Delay between periodic refresh cycles (s)")
    ap.add_argument("--host")
    ap.add_argument("--port", type=int)
    ap.add_argument("--no-validate", action="store_true", help="Skip schema lint of service records")
    ap.add_argument("--periodic", action="store_true", help="Start with periodic refresh on")
    ap.add_argument("--log-level")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    config = load_config(
        args.config,
        overrides={
            "base_url": args.base_url,
            "timeout_s": args.timeout,
            "refresh_delay_s": args.refresh_delay,
            "host": args.host,
            "port": args.port,
            "log_level": args.log_level,
            "validate": False if args.no_validate else None,
        },
    )
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    scheduler = _configure_runtime(config)
    if scheduler.bootstrap():
        log.info("bootstrapped from %s", config.base_url)
    if args.periodic:
        scheduler.start_periodic()
    app.run(host=config.host, port=config.port, debug=args.debug, use_reloader=False)


if __name__ == "__main__":
    main()
