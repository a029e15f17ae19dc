"""Inventory service client and its device model."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

import requests

from .attributes import SCOPE_IDENTITY, SCOPE_INVENTORY, SCOPE_SYSTEM

logger = logging.getLogger(__name__)

URL_SEARCH = "/api/internal/v2/inventory/tenants/:tid/filters/search"
DEFAULT_PAGE = 1
DEFAULT_TIMEOUT = 10.0

ATTR_SCOPE_INVENTORY = SCOPE_INVENTORY
ATTR_SCOPE_IDENTITY = SCOPE_IDENTITY
ATTR_SCOPE_SYSTEM = SCOPE_SYSTEM

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_FRACTION = re.compile(r"\.(\d+)")


class ClientError(Exception):
    """A request to the inventory service failed."""


def _join_url(base: str, path: str) -> str:
    return base.rstrip("/") + "/" + path.lstrip("/")


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")
    text = value
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _format_time(value: datetime) -> str:
    text = value.isoformat()
    if value.tzinfo is not None and value.utcoffset() == timezone.utc.utcoffset(None):
        text = text[: -len("+00:00")] + "Z"
    return text


@dataclass
class DeviceAttribute:
    """A named, scoped attribute value of an inventory device."""

    name: str = ""
    value: Any = None
    scope: str = ""
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeviceAttribute":
        if not isinstance(data, dict):
            raise ValueError(f"invalid device attribute: {data!r}")
        return cls(
            name=data.get("name") or "",
            value=data.get("value"),
            scope=data.get("scope") or "",
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            doc["description"] = self.description
        doc["value"] = self.value
        doc["scope"] = self.scope
        return doc


def parse_device_attributes(items: Optional[Iterable[Any]]) -> list[DeviceAttribute]:
    """Decode attributes, defaulting a missing scope to the inventory scope."""
    if items is None:
        return []
    attrs = []
    for item in items:
        attr = item if isinstance(item, DeviceAttribute) else DeviceAttribute.from_dict(item)
        if not attr.scope:
            attr.scope = ATTR_SCOPE_INVENTORY
        attrs.append(attr)
    return attrs


@dataclass
class Device:
    """An inventory device with its attributes."""

    id: str = ""
    attributes: list[DeviceAttribute] = field(default_factory=list)
    group: str = ""
    created_ts: Optional[datetime] = None
    updated_ts: Optional[datetime] = None
    revision: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Device":
        if not isinstance(data, dict):
            raise ValueError(f"invalid device: {data!r}")
        return cls(
            id=data.get("id") or "",
            attributes=parse_device_attributes(data.get("attributes")),
            created_ts=_parse_time(data.get("created_ts")),
            updated_ts=_parse_time(data.get("updated_ts")),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"id": self.id}
        if self.attributes:
            doc["attributes"] = [a.to_dict() for a in self.attributes]
        if self.created_ts is not None:
            doc["created_ts"] = _format_time(self.created_ts)
        if self.updated_ts is not None:
            doc["updated_ts"] = _format_time(self.updated_ts)
        return doc


class InventoryClient:
    """Client of the inventory service's internal search API."""

    def __init__(
        self,
        url_base: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url_base = url_base
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_devices(self, tenant_id: str, device_ids: Sequence[str]) -> list[Device]:
        """Fetch the devices with the given ids from the search endpoint."""
        body = {
            "device_ids": list(device_ids),
            "page": DEFAULT_PAGE,
            "per_page": len(device_ids),
        }
        url = _join_url(self.url_base, URL_SEARCH).replace(":tid", tenant_id, 1)
        if _BAD_ESCAPE.search(url):
            raise ClientError(f"failed to create request: invalid URL escape in {url!r}")

        method = "POST"
        try:
            rsp = self.session.post(
                url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ClientError(f"failed to submit {method} {url}: {exc}") from exc

        with rsp:
            if rsp.status_code != 200:
                status = f"{rsp.status_code} {rsp.reason or ''}".rstrip()
                logger.error(
                    "request %s %s failed with status %s, response: %s",
                    method, url, status, body,
                )
                raise ClientError(f"{method} {url} request failed with status {status}")
            try:
                data = rsp.json()
                if data is None:
                    return []
                if not isinstance(data, list):
                    raise ValueError("expected a list of devices")
                return [Device.from_dict(item) for item in data]
            except (ValueError, TypeError) as exc:
                raise ClientError(f"failed to parse request body: {exc}") from exc