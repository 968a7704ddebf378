#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/validators.py: JSON Schema checks for management API records.

Features
--------
- Load & cache Draft 2020-12 JSON Schemas (YAML files) from topo/schemas
- Two modes:
    • lint_*()    → return list of (path, message) problems (non-throwing)
    • assert_*()  → raise ValidationError on first problem

Dependencies
------------
pip install jsonschema pyyaml
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import Draft202012Validator, exceptions as js_ex

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"
DEFAULT_SERVICE_SCHEMA = "service.schema.yaml"


class ValidationError(RuntimeError):
    def __init__(self, where: str, message: str, schema_path: str = "", instance_path: str = ""):
        super().__init__(f"{where}: {message} (at $.{instance_path}; rule {schema_path})")
        self.where = where
        self.message = message
        self.schema_path = schema_path
        self.instance_path = instance_path


def _format_error(err: js_ex.ValidationError) -> Tuple[str, str]:
    """Return (instance_pointer, schema_pointer) strings."""
    inst = "/".join([str(x) for x in err.path]) if err.path else "(root)"
    sch = "/".join([str(x) for x in err.schema_path])
    return inst, sch


def _load_yaml(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


@dataclass
class _CompiledSchema:
    path: Path
    validator: Draft202012Validator


class SchemaRegistry:
    """Load and cache schemas from a directory."""

    def __init__(self, schemas_dir: Optional[str] = None):
        self.schemas_dir = Path(schemas_dir) if schemas_dir else SCHEMAS_DIR
        self._cache: Dict[str, _CompiledSchema] = {}

    def get(self, name: str) -> _CompiledSchema:
        c = self._cache.get(name)
        if c is None:
            path = (self.schemas_dir / name).resolve()
            if not path.exists():
                raise FileNotFoundError(f"Schema not found: {path}")
            raw = _load_yaml(path)
            Draft202012Validator.check_schema(raw)
            c = _CompiledSchema(path=path, validator=Draft202012Validator(raw))
            self._cache[name] = c
        return c


def lint_instance(instance: Any, schema_file: str, registry: Optional[SchemaRegistry] = None) -> List[Tuple[str, str]]:
    reg = registry or SchemaRegistry()
    compiled = reg.get(schema_file)
    errs = sorted(compiled.validator.iter_errors(instance), key=lambda e: list(map(str, e.path)))
    return [(_format_error(e)[0], e.message) for e in errs]


def lint_service(record: Any, registry: Optional[SchemaRegistry] = None) -> List[Tuple[str, str]]:
    return lint_instance(record, DEFAULT_SERVICE_SCHEMA, registry=registry)


def assert_service(record: Any, where: str = "service", registry: Optional[SchemaRegistry] = None) -> None:
    reg = registry or SchemaRegistry()
    compiled = reg.get(DEFAULT_SERVICE_SCHEMA)
    for e in compiled.validator.iter_errors(record):
        inst_ptr, sch_ptr = _format_error(e)
        raise ValidationError(where=where, message=e.message, schema_path=sch_ptr, instance_path=inst_ptr)


def lint_services(services: Dict[str, Any], registry: Optional[SchemaRegistry] = None) -> Dict[str, List[Tuple[str, str]]]:
    """Problems per service path; valid records are left out."""
    reg = registry or SchemaRegistry()
    report: Dict[str, List[Tuple[str, str]]] = {}
    for path, record in (services or {}).items():
        probs = lint_service(record, registry=reg)
        if probs:
            report[path] = probs
    return report
