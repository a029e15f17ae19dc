"""Device documents as stored in the search index."""

from __future__ import annotations

import json
from dataclasses import dataclass
from dataclasses import field as _field
from datetime import datetime
from typing import Any, Optional

from .attributes import (
    FIELD_NAME_ID,
    FIELD_NAME_TENANT_ID,
    SCOPE_IDENTITY,
    SCOPE_INVENTORY,
    SCOPE_MONITOR,
    SCOPE_SYSTEM,
    SCOPE_TAGS,
    TYPE_NUM,
    TYPE_STR,
    AttrType,
    to_attr,
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class InventoryAttribute:
    """A scoped attribute holding string, numeric or boolean values."""

    scope: str
    name: str = ""
    strings: Optional[list[str]] = None
    numerics: Optional[list[float]] = None
    booleans: Optional[list[bool]] = None

    def is_str(self) -> bool:
        return self.strings is not None

    def is_num(self) -> bool:
        return self.numerics is not None

    def is_bool(self) -> bool:
        return self.booleans is not None

    def _store(
        self,
        strings: Optional[list[str]] = None,
        numerics: Optional[list[float]] = None,
        booleans: Optional[list[bool]] = None,
    ) -> None:
        self.strings = strings
        self.numerics = numerics
        self.booleans = booleans

    def set_value(self, val: Any) -> "InventoryAttribute":
        """Store ``val`` in the slot matching its type; other types are ignored."""
        if isinstance(val, bool):
            self._store(booleans=[val])
        elif _is_number(val):
            self._store(numerics=[float(val)])
        elif isinstance(val, str):
            self._store(strings=[val])
        elif isinstance(val, (list, tuple)):
            if not val:
                raise ValueError("cannot infer the type of an empty value list")
            first = val[0]
            if isinstance(first, bool):
                if not all(isinstance(v, bool) for v in val):
                    raise TypeError("mixed attribute value types")
                self._store(booleans=list(val))
            elif _is_number(first):
                if not all(_is_number(v) for v in val):
                    raise TypeError("mixed attribute value types")
                self._store(numerics=[float(v) for v in val])
            elif isinstance(first, str):
                if not all(isinstance(v, str) for v in val):
                    raise TypeError("mixed attribute value types")
                self._store(strings=list(val))
        return self

    def map(self) -> tuple[str, Any]:
        """Return the flat field name and the value list to index."""
        if self.is_str():
            typ, val = AttrType.STR, self.strings
        elif self.is_num():
            typ, val = AttrType.NUM, self.numerics
        elif self.is_bool():
            typ, val = AttrType.BOOL, self.booleans
        else:
            typ, val = AttrType.ANY, None
        return to_attr(self.scope, self.name, typ), val


@dataclass
class Device:
    """A device document with attributes grouped by scope."""

    id: Optional[str] = None
    tenant_id: Optional[str] = None
    identity_attributes: list[InventoryAttribute] = _field(default_factory=list)
    inventory_attributes: list[InventoryAttribute] = _field(default_factory=list)
    monitor_attributes: list[InventoryAttribute] = _field(default_factory=list)
    system_attributes: list[InventoryAttribute] = _field(default_factory=list)
    tags_attributes: list[InventoryAttribute] = _field(default_factory=list)
    updated_at: Optional[datetime] = None

    def _scope_list(self, scope: str) -> list[InventoryAttribute]:
        lists = {
            SCOPE_IDENTITY: self.identity_attributes,
            SCOPE_INVENTORY: self.inventory_attributes,
            SCOPE_MONITOR: self.monitor_attributes,
            SCOPE_SYSTEM: self.system_attributes,
            SCOPE_TAGS: self.tags_attributes,
        }
        try:
            return lists[scope]
        except KeyError:
            raise ValueError(f"unknown attribute scope {scope}") from None

    def append_attr(self, attr: InventoryAttribute) -> None:
        """Add an attribute to the list of its scope."""
        self._scope_list(attr.scope).append(attr)

    def to_dict(self) -> dict[str, Any]:
        """Flatten the device into an index document."""
        doc: dict[str, Any] = {
            FIELD_NAME_ID: self.id,
            FIELD_NAME_TENANT_ID: self.tenant_id,
        }
        for attrs in (
            self.identity_attributes,
            self.inventory_attributes,
            self.monitor_attributes,
            self.system_attributes,
            self.tags_attributes,
        ):
            for attr in attrs:
                name, val = attr.map()
                doc[name] = val
        return doc

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


_PARSE_SCOPES = (SCOPE_IDENTITY, SCOPE_INVENTORY, SCOPE_MONITOR, SCOPE_SYSTEM, SCOPE_TAGS)


def maybe_parse_attr(field: str) -> tuple[str, str]:
    """Split a flat field name into (scope, name); empty strings if not an attribute."""
    scope = next((s for s in _PARSE_SCOPES if field.startswith(s + "_")), "")
    name = ""
    if scope:
        for suffix in (TYPE_STR, TYPE_NUM):
            if field.endswith("_" + suffix):
                start = field.index("_")
                end = field.rindex("_")
                name = field[start + 1 : end]
    return scope, name