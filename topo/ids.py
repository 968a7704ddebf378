#!/usr/bin/env python3
"""Stable keys for graph elements and management-API paths.

Node ids are the broker pids themselves. Flow links are directional
(child -> parent); broken links are keyed on the unordered pid pair and
live in their own ``bk_`` namespace.
"""

from __future__ import annotations

SERVICE_PREFIX = "/@/"
PLUGINS_SEGMENT = "/plugins/"
BROKEN_PREFIX = "bk_"


def node_id(pid: str) -> str:
    return str(pid)


def flow_link_id(child: str, parent: str) -> str:
    return f"{child}_{parent}"


def broken_link_id(a: str, b: str) -> str:
    hi, lo = (a, b) if a > b else (b, a)
    return f"{BROKEN_PREFIX}{hi}_{lo}"


def service_path(pid: str) -> str:
    return f"{SERVICE_PREFIX}{pid}"


def plugin_path(pid: str, name: str) -> str:
    return f"{SERVICE_PREFIX}{pid}{PLUGINS_SEGMENT}{name}"


def plugins_prefix(pid: str) -> str:
    return f"{SERVICE_PREFIX}{pid}{PLUGINS_SEGMENT}"


def plugin_name(path: str) -> str:
    """Trailing plugin name of ``/@/<pid>/plugins/<name>``."""
    return path.split("/")[-1]


def split_plugin_path(path: str):
    """Return ``(pid, name)`` for a plugin path, or ``None`` if it is not one."""
    if not path.startswith(SERVICE_PREFIX) or PLUGINS_SEGMENT not in path:
        return None
    pid, _, name = path[len(SERVICE_PREFIX):].partition(PLUGINS_SEGMENT)
    if not pid or not name:
        return None
    return pid, name
