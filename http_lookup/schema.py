"""Row schema YAML loader and strict JSON value coercion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


FIELD_TYPES = {"string", "int", "float", "decimal", "bool", "date", "datetime", "list", "row"}


class SchemaError(Exception):
    pass


@dataclass(frozen=True)
class CoercionError(Exception):
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str
    item_type: Optional[str] = None
    fields: Tuple["FieldSpec", ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RowSchema:
    fields: Tuple[FieldSpec, ...]

    def field_names(self) -> List[str]:
        return [spec.name for spec in self.fields]


def load_schema(path: str | Path) -> RowSchema:
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return parse_schema(raw)


def parse_schema(raw: Any) -> RowSchema:
    if not isinstance(raw, dict):
        raise SchemaError("Schema root must be a dictionary")
    return RowSchema(fields=_parse_fields(raw.get("fields"), "fields"))


def _parse_fields(items: Any, where: str) -> Tuple[FieldSpec, ...]:
    if not isinstance(items, list) or not items:
        raise SchemaError(f"{where} must be a non-empty list")
    specs = []
    seen = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise SchemaError(f"{where}[{index}] must be a mapping object")
        name = item.get("name")
        if not isinstance(name, str) or not name:
            raise SchemaError(f"{where}[{index}].name is required")
        if name in seen:
            raise SchemaError(f"Duplicate field name in {where}: {name}")
        seen.add(name)

        field_type = item.get("type", "string")
        if field_type not in FIELD_TYPES:
            raise SchemaError(f"{where}.{name}: unknown type {field_type!r}")

        item_type = item.get("item_type")
        if item_type is not None and (item_type not in FIELD_TYPES or item_type in {"list", "row"}):
            raise SchemaError(f"{where}.{name}: unsupported item_type {item_type!r}")

        nested: Tuple[FieldSpec, ...] = ()
        if field_type == "row":
            nested = _parse_fields(item.get("fields"), f"{where}.{name}.fields")

        specs.append(FieldSpec(name=name, type=field_type, item_type=item_type, fields=nested))
    return tuple(specs)


def project_row(value: Dict[str, Any], schema: RowSchema) -> Dict[str, Any]:
    return _project(value, schema.fields, "")


def _project(value: Dict[str, Any], specs: Tuple[FieldSpec, ...], prefix: str) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for spec in specs:
        path = f"{prefix}{spec.name}"
        row[spec.name] = coerce_value(value.get(spec.name), spec, path)
    return row


def coerce_value(value: Any, spec: FieldSpec, path: str) -> Any:
    if value is None:
        return None

    if spec.type == "row":
        if not isinstance(value, dict):
            raise CoercionError(path, f"expected object, got {type(value).__name__}")
        return _project(value, spec.fields, f"{path}.")

    if spec.type == "list":
        if not isinstance(value, list):
            raise CoercionError(path, f"expected list, got {type(value).__name__}")
        if not spec.item_type:
            return value
        item_spec = FieldSpec(name=spec.name, type=spec.item_type)
        return [coerce_value(item, item_spec, f"{path}[{index}]") for index, item in enumerate(value)]

    return _coerce_scalar(value, spec.type, path)


def _coerce_scalar(value: Any, expected_type: str, path: str) -> Any:
    if expected_type == "string":
        if isinstance(value, str):
            return value
        raise CoercionError(path, f"expected string, got {type(value).__name__}")

    if expected_type == "bool":
        if isinstance(value, bool):
            return value
        raise CoercionError(path, f"expected bool, got {type(value).__name__}")

    if isinstance(value, bool):
        raise CoercionError(path, f"expected {expected_type}, got bool")

    if expected_type == "int":
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise CoercionError(path, f"expected int, got {type(value).__name__}")

    if expected_type == "float":
        if isinstance(value, (int, float)):
            return float(value)
        raise CoercionError(path, f"expected float, got {type(value).__name__}")

    if expected_type == "decimal":
        if isinstance(value, (int, float, str)):
            try:
                return Decimal(str(value))
            except InvalidOperation as exc:
                raise CoercionError(path, f"invalid decimal {value!r}") from exc
        raise CoercionError(path, f"expected decimal, got {type(value).__name__}")

    if expected_type == "date":
        if not isinstance(value, str):
            raise CoercionError(path, f"expected date string, got {type(value).__name__}")
        try:
            return date.fromisoformat(value.split("T")[0])
        except ValueError as exc:
            raise CoercionError(path, str(exc)) from exc

    if expected_type == "datetime":
        if not isinstance(value, str):
            raise CoercionError(path, f"expected datetime string, got {type(value).__name__}")
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise CoercionError(path, str(exc)) from exc

    raise CoercionError(path, f"unknown expected type: {expected_type}")
