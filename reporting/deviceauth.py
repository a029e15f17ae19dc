"""Device authentication service client and its device model."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from urllib.parse import urlencode

import requests

from .attributes import ATTR_NAME_ID
from .deployments import _BAD_ESCAPE, _format_time, _join_url, _parse_time, _require_dict

logger = logging.getLogger(__name__)

URL_SEARCH = "/api/internal/v1/devauth/tenants/:tid/devices"
DEFAULT_PAGE = 1
DEFAULT_TIMEOUT = 10.0

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class ClientError(Exception):
    """A request to the device authentication service failed."""


def _get(data: dict[str, Any], key: str, default: Any = None) -> Any:
    """Look a key up exactly, then without regard to case."""
    if key in data:
        return data[key]
    folded = key.casefold()
    for name, value in data.items():
        if isinstance(name, str) and name.casefold() == folded:
            return value
    return default


def _parse_required_time(value: Any) -> datetime:
    parsed = _parse_time(value)
    return parsed if parsed is not None else ZERO_TIME


@dataclass
class DeviceAuthExternalDevice:
    """The external identity of a device."""

    id: str = ""
    provider: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "DeviceAuthExternalDevice":
        data = _require_dict(data, "external device")
        return cls(
            id=_get(data, "id") or "",
            provider=_get(data, "provider") or "",
            name=_get(data, "name") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"id": self.id, "provider": self.provider}
        if self.name:
            doc["name"] = self.name
        return doc


@dataclass
class DeviceAuthAuthSet:
    """An authentication set of a device."""

    id: str = ""
    id_data: str = ""
    id_data_struct: Optional[dict[str, Any]] = None
    id_data_sha256: Optional[bytes] = None
    pubkey: str = ""
    timestamp: Optional[datetime] = None
    status: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "DeviceAuthAuthSet":
        data = _require_dict(data, "auth set")
        struct = _get(data, "IdDataStruct")
        digest = _get(data, "IdDataSha256")
        if digest is not None and not isinstance(digest, str):
            raise ValueError(f"invalid id data digest: {digest!r}")
        return cls(
            id=_get(data, "id") or "",
            id_data=_get(data, "id_data") or "",
            id_data_struct=dict(struct) if struct is not None else None,
            id_data_sha256=base64.b64decode(digest, validate=True) if digest is not None else None,
            pubkey=_get(data, "pubkey") or "",
            timestamp=_parse_time(_get(data, "ts")),
            status=_get(data, "status") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "id_data": self.id_data,
            "IdDataStruct": self.id_data_struct,
            "IdDataSha256": (
                base64.b64encode(self.id_data_sha256).decode("ascii")
                if self.id_data_sha256 is not None
                else None
            ),
            "pubkey": self.pubkey,
            "ts": _format_time(self.timestamp),
            "status": self.status,
        }


@dataclass
class DeviceAuthDevice:
    """A device as known to the device authentication service."""

    id: str = ""
    id_data_struct: Optional[dict[str, str]] = None
    status: str = ""
    created_ts: datetime = ZERO_TIME
    updated_ts: datetime = ZERO_TIME
    auth_sets: Optional[list[DeviceAuthAuthSet]] = None
    external: Optional[DeviceAuthExternalDevice] = None
    revision: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "DeviceAuthDevice":
        data = _require_dict(data, "device")
        struct = _get(data, "IdDataStruct")
        auth_sets = _get(data, "auth_sets")
        external = _get(data, "external")
        return cls(
            id=_get(data, "id") or "",
            id_data_struct=dict(struct) if struct is not None else None,
            status=_get(data, "status") or "",
            created_ts=_parse_required_time(_get(data, "created_ts")),
            updated_ts=_parse_required_time(_get(data, "updated_ts")),
            auth_sets=(
                [DeviceAuthAuthSet.from_dict(item) for item in auth_sets]
                if auth_sets is not None
                else None
            ),
            external=(
                DeviceAuthExternalDevice.from_dict(external) if external is not None else None
            ),
            revision=int(_get(data, "revision") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.id,
            "IdDataStruct": self.id_data_struct,
            "status": self.status,
            "created_ts": _format_time(self.created_ts),
            "updated_ts": _format_time(self.updated_ts),
            "auth_sets": (
                [s.to_dict() for s in self.auth_sets] if self.auth_sets is not None else None
            ),
        }
        if self.external is not None:
            doc["external"] = self.external.to_dict()
        doc["revision"] = self.revision
        return doc


class DeviceAuthClient:
    """Client of the device authentication service's internal API."""

    def __init__(
        self,
        url_base: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url_base = url_base
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_devices(
        self, tenant_id: str, device_ids: Sequence[str]
    ) -> list[DeviceAuthDevice]:
        """Fetch the devices with the given ids."""
        url = _join_url(self.url_base, URL_SEARCH).replace(":tid", tenant_id, 1)
        if _BAD_ESCAPE.search(url):
            raise ClientError(f"failed to create request: invalid URL escape in {url!r}")

        params = [(ATTR_NAME_ID, device_id) for device_id in device_ids]
        params.append(("page", str(DEFAULT_PAGE)))
        params.append(("per_page", str(len(device_ids))))
        full_url = f"{url}?{urlencode(sorted(params, key=lambda kv: kv[0]))}"

        method = "GET"
        try:
            rsp = self.session.get(full_url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ClientError(f"failed to submit {method} {full_url}: {exc}") from exc

        with rsp:
            if rsp.status_code != 200:
                status = f"{rsp.status_code} {rsp.reason or ''}".rstrip()
                message = f"{method} {full_url} request failed with status {status}"
                logger.error(message)
                raise ClientError(message)
            try:
                data = rsp.json()
                if data is None:
                    return []
                if not isinstance(data, list):
                    raise ValueError("expected a list of devices")
                return [DeviceAuthDevice.from_dict(item) for item in data]
            except (ValueError, TypeError) as exc:
                raise ClientError(f"failed to parse request body: {exc}") from exc