"""Attribute scopes, flat field naming and small shared records."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class AttrType(enum.IntEnum):
    """Value type of an attribute, used to pick the field suffix."""

    ANY = 0
    STR = 1
    NUM = 2
    BOOL = 3


# scope prefixes
SCOPE_INVENTORY = "inventory"
SCOPE_IDENTITY = "identity"
SCOPE_SYSTEM = "system"
SCOPE_TAGS = "tags"
SCOPE_MONITOR = "monitor"

# attribute names
ATTR_NAME_ID = "id"
ATTR_NAME_GROUP = "group"
ATTR_NAME_STATUS = "status"
ATTR_NAME_CREATED_AT = "created_ts"
ATTR_NAME_UPDATED_AT = "updated_ts"
ATTR_NAME_LATEST_DEPLOYMENT_STATUS = "latest_deployment_status"

# plain document fields
FIELD_NAME_ID = "id"
FIELD_NAME_DEPLOYMENT_ID = "deployment_id"
FIELD_NAME_DEVICE_ID = "device_id"
FIELD_NAME_TENANT_ID = "tenant_id"

# type suffixes
TYPE_STR = "str"
TYPE_NUM = "num"
TYPE_BOOL = "bool"

_SUFFIXES = {
    AttrType.STR: TYPE_STR,
    AttrType.NUM: TYPE_NUM,
    AttrType.BOOL: TYPE_BOOL,
}

# services and job actions
SERVICE_DEVICEAUTH = "deviceauth"
SERVICE_MONITOR = "devicemonitor"
SERVICE_INVENTORY = "inventory"
SERVICE_DEPLOYMENTS = "deployments"

ACTION_REINDEX = "reindex"
ACTION_REINDEX_DEPLOYMENT = "reindex_deployment"

MAX_MAPPING_INVENTORY_ATTRIBUTES = 100

_FULLWIDTH_DOT = "\uff0e"


def dedot(name: str) -> str:
    """Replace '.' in a name so the search engine does not treat it as a path."""
    return name.replace(".", _FULLWIDTH_DOT)


def redot(name: str) -> str:
    """Undo :func:`dedot`."""
    return name.replace(_FULLWIDTH_DOT, ".")


def to_attr(scope: str, name: str, typ: AttrType) -> str:
    """Compose the flat field name from scope, name and value type."""
    if not scope:
        return dedot(name)
    return f"{scope}_{dedot(name)}_{_SUFFIXES.get(AttrType(typ), '')}"


@dataclass
class FilterAttribute:
    """An attribute available for filtering, with its occurrence count."""

    scope: str = ""
    name: str = ""
    count: int = 0


@dataclass
class Job:
    """A reindexing job received from the message queue."""

    action: str = ""
    request_id: str = ""
    tenant_id: str = ""
    id: str = ""
    device_id: str = ""
    deployment_id: str = ""
    service: str = ""


@dataclass
class Mapping:
    """Per-tenant ordered list of mapped inventory attributes."""

    tenant_id: str = ""
    inventory: list[str] = field(default_factory=list)