#!/usr/bin/env python3
"""
Lint a mesh snapshot (the GET /@/* document) against service.schema.yaml.

Usage:
  python3 -m tools.validate_snapshot --url http://127.0.0.1:8000
  python3 -m tools.validate_snapshot --file services.json --strict
  python3 -m tools.validate_snapshot --file services.json --fail-fast

Features:
- Draft 2020-12 JSON Schema validation of every service record.
- --strict: warns on topology inconsistencies the dashboard will skip
  (tree parents absent from the snapshot, peers without a session).
- --fail-fast: stop at first invalid record.
- Returns non-zero on any validation error or an empty snapshot.
"""

from __future__ import annotations
import argparse
import json
import sys
from typing import Any, Dict, List, Tuple

from topo.derive import session_rate
from topo.records import parse_services
from topo.snapshot import ALL_SERVICES, FetchError, SnapshotClient
from topo.validators import SchemaRegistry, ValidationError, assert_service, lint_service


def load_services(url: str = None, file: str = None, timeout: float = 1.0) -> Dict[str, Any]:
    if file:
        with open(file, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{file}: expected a JSON object keyed by service path")
        return data
    return SnapshotClient(url, timeout=timeout).get_json(ALL_SERVICES)


def strict_warnings(services: Dict[str, Any]) -> List[str]:
    """Links the dashboard cannot draw as flow links."""
    w: List[str] = []
    records = parse_services(services)
    for rec in records.values():
        for parent in rec.parents():
            if parent not in records:
                w.append(f"{rec.pid}: tree parent {parent} not in snapshot.")
                continue
            if session_rate(rec, parent) is None:
                w.append(f"{rec.pid}: no session toward tree parent {parent}.")
            if session_rate(records[parent], rec.pid) is None:
                w.append(f"{parent}: no session toward tree child {rec.pid}.")
        for peer in rec.peers:
            if rec.session(peer.sid) is None:
                w.append(f"{rec.pid}: peer {peer.pid} references unknown session {peer.sid!r}.")
    return w


def validate_snapshot(
    services: Dict[str, Any],
    registry: SchemaRegistry,
    strict: bool = False,
    fail_fast: bool = False,
) -> Tuple[int, int, int]:
    """
    Returns: (num_records, num_invalid, num_warn)
    """
    if not services:
        print("[error] Snapshot holds no services")
        return (0, 0, 0)

    invalid = 0
    for path in sorted(services):
        if fail_fast:
            try:
                assert_service(services[path], where=path, registry=registry)
            except ValidationError as ve:
                print(str(ve))
                invalid += 1
                break
            continue
        probs = lint_service(services[path], registry=registry)
        if probs:
            invalid += 1
            print("=" * 80)
            print(f"Service: {path}")
            for ptr, msg in probs[:5]:
                print(f"  At:   $.{ptr}\n  Msg:  {msg}")

    warns = strict_warnings(services) if strict else []
    for w in warns:
        print(f"  warn: {w}")

    print("\nSummary")
    print("-------")
    print(f"Checked   : {len(services)} service(s)")
    print(f"Invalid   : {invalid}")
    print(f"Warnings  : {len(warns)} (strict={'on' if strict else 'off'})")
    return (len(services), invalid, len(warns))


def main(argv=None):
    ap = argparse.ArgumentParser(description="Validate a mesh services snapshot")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--url", help="Management API base URL")
    src.add_argument("--file", help="Saved GET /@/* JSON document")
    ap.add_argument("--schemas", default=None, help="Schemas directory (default: packaged)")
    ap.add_argument("--timeout", type=float, default=1.0)
    ap.add_argument("--strict", action="store_true", help="Emit topology consistency warnings")
    ap.add_argument("--fail-fast", action="store_true", help="Stop at first invalid record")
    args = ap.parse_args(argv)

    try:
        services = load_services(url=args.url, file=args.file, timeout=args.timeout)
    except (FetchError, OSError, ValueError) as e:
        print(f"fatal: {e}")
        return 1

    total, invalid, _ = validate_snapshot(
        services,
        SchemaRegistry(args.schemas),
        strict=args.strict,
        fail_fast=args.fail_fast,
    )
    return 1 if total == 0 or invalid > 0 else 0


if __name__ == "__main__":
    sys.exit(main())
