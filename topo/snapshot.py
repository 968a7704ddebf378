#!/usr/bin/env python3
"""
Management API client.

Endpoints
---------
GET /@/*                  -> {"/@/<pid>": service, ...}
GET /@/*/plugins/*        -> {"/@/<pid>/plugins/<name>": blob, ...}
GET /@/<pid>              -> {"/@/<pid>": service}
GET /@/<pid>/plugins/*    -> plugins of one service

Any transport error, timeout, non-2xx status or non-object JSON body is
raised as ``FetchError``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .ids import plugins_prefix, service_path

log = logging.getLogger(__name__)

ALL_SERVICES = "/@/*"
ALL_PLUGINS = "/@/*/plugins/*"


class FetchError(RuntimeError):
    def __init__(self, path: str, message: str):
        super().__init__(f"GET {path} failed: {message}")
        self.path = path


@dataclass
class Snapshot:
    services: Dict[str, Any]
    plugins: Dict[str, Any]
    fetched_at: float = field(default_factory=time.time)


class SnapshotClient:
    def __init__(self, base_url: str, timeout: float = 1.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def get_json(self, path: str) -> Dict[str, Any]:
        try:
            resp = self.session.get(self._url(path), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(path, str(exc)) from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise FetchError(path, f"non-JSON response (status {resp.status_code})") from exc
        if not isinstance(data, dict):
            raise FetchError(path, f"expected a JSON object, got {type(data).__name__}")
        return data

    def fetch(self) -> Snapshot:
        """Both registry documents, or ``FetchError`` for the first that fails."""
        services = self.get_json(ALL_SERVICES)
        plugins = self.get_json(ALL_PLUGINS)
        log.debug("fetched %d services, %d plugins", len(services), len(plugins))
        return Snapshot(services=services, plugins=plugins)

    def fetch_service(self, pid: str) -> Optional[Dict[str, Any]]:
        return self.get_json(service_path(pid)).get(service_path(pid))

    def fetch_service_plugins(self, pid: str) -> Dict[str, Any]:
        return self.get_json(plugins_prefix(pid) + "*")
