"""Deployments service client and its device-deployment model."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)

URL_DEVICE_DEPLOYMENTS = "/api/internal/v1/deployments/tenants/:tid/deployments/devices"
URL_DEVICE_DEPLOYMENTS_ID = URL_DEVICE_DEPLOYMENTS + "/:id"
DEFAULT_TIMEOUT = 10.0
MAX_PER_PAGE = 100

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_FRACTION = re.compile(r"\.(\d+)")


class ClientError(Exception):
    """A request to the deployments service failed."""


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


def _format_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    text = value.isoformat()
    if value.tzinfo is not None and value.utcoffset() == timezone.utc.utcoffset(None):
        text = text[: -len("+00:00")] + "Z"
    return text


def _require_dict(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"invalid {what}: {data!r}")
    return data


def _put(doc: dict[str, Any], key: str, value: Any, omit_empty: bool = False) -> None:
    """Set a key, leaving out empty values when ``omit_empty`` is set."""
    if omit_empty and (value is None or value == "" or value is False or value == 0
                       or (isinstance(value, (list, dict)) and not value)):
        return
    doc[key] = value


@dataclass
class ArtifactInfo:
    """Format and version of an artifact."""

    format: str = ""
    version: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "ArtifactInfo":
        data = _require_dict(data, "artifact info")
        return cls(format=data.get("format") or "", version=int(data.get("version") or 0))

    def to_dict(self) -> dict[str, Any]:
        return {"format": self.format, "version": self.version}


@dataclass
class Image:
    """The artifact image installed by a deployment."""

    id: str = ""
    description: str = ""
    name: str = ""
    device_types_compatible: Optional[list[str]] = None
    info: Optional[ArtifactInfo] = None
    signed: bool = False
    provides: dict[str, str] = field(default_factory=dict)
    depends: dict[str, Any] = field(default_factory=dict)
    clears_provides: list[str] = field(default_factory=list)
    size: int = 0
    modified: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Image":
        data = _require_dict(data, "image")
        info = data.get("info")
        types = data.get("device_types_compatible")
        return cls(
            id=data.get("id") or "",
            description=data.get("description") or "",
            name=data.get("name") or "",
            device_types_compatible=list(types) if types is not None else None,
            info=ArtifactInfo.from_dict(info) if info is not None else None,
            signed=bool(data.get("signed", False)),
            provides=dict(data.get("artifact_provides") or {}),
            depends=dict(data.get("artifact_depends") or {}),
            clears_provides=list(data.get("clears_artifact_provides") or []),
            size=int(data.get("size") or 0),
            modified=_parse_time(data.get("modified")),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "name": self.name,
            "device_types_compatible": self.device_types_compatible,
            "info": self.info.to_dict() if self.info is not None else None,
            "signed": self.signed,
        }
        _put(doc, "artifact_provides", self.provides, True)
        _put(doc, "artifact_depends", self.depends, True)
        _put(doc, "clears_artifact_provides", self.clears_provides, True)
        doc["size"] = self.size
        doc["modified"] = _format_time(self.modified)
        return doc


@dataclass
class Device:
    """The device-specific part of a device deployment."""

    created: Optional[datetime] = None
    finished: Optional[datetime] = None
    deleted: Optional[datetime] = None
    status: str = ""
    device_id: str = ""
    deployment_id: str = ""
    id: str = ""
    image: Optional[Image] = None
    is_log_available: bool = False
    sub_state: str = ""
    retries: int = 0
    attempts: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "Device":
        data = _require_dict(data, "device")
        image = data.get("image")
        return cls(
            created=_parse_time(data.get("created")),
            finished=_parse_time(data.get("finished")),
            deleted=_parse_time(data.get("deleted")),
            status=data.get("status") or "",
            device_id=data.get("device_id") or "",
            deployment_id=data.get("deployment_id") or "",
            id=data.get("id") or "",
            image=Image.from_dict(image) if image is not None else None,
            is_log_available=bool(data.get("log", False)),
            sub_state=data.get("substate") or "",
            retries=int(data.get("retries") or 0),
            attempts=int(data.get("attempts") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"created": _format_time(self.created)}
        _put(doc, "finished", _format_time(self.finished), True)
        _put(doc, "deleted", _format_time(self.deleted), True)
        doc["status"] = self.status
        doc["device_id"] = self.device_id
        doc["deployment_id"] = self.deployment_id
        doc["id"] = self.id
        doc["image"] = self.image.to_dict() if self.image is not None else None
        doc["log"] = self.is_log_available
        _put(doc, "substate", self.sub_state, True)
        _put(doc, "retries", self.retries, True)
        _put(doc, "attempts", self.attempts, True)
        return doc


@dataclass
class Deployment:
    """The definition of a deployment."""

    id: str = ""
    name: str = ""
    artifact_name: str = ""
    devices: list[str] = field(default_factory=list)
    filter_id: str = ""
    phase_id: str = ""
    all_devices: bool = False
    force_installation: bool = False
    group: str = ""
    created: Optional[datetime] = None
    finished: Optional[datetime] = None
    artifacts: list[str] = field(default_factory=list)
    depends: Optional[list[dict[str, Any]]] = None
    status: str = ""
    initial_device_count: int = 0
    device_count: Optional[int] = None
    retries: int = 0
    dynamic: bool = False
    max_devices: int = 0
    groups: list[str] = field(default_factory=list)
    device_list: Optional[list[str]] = None
    type: str = ""
    autogenerate_delta: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "Deployment":
        data = _require_dict(data, "deployment")
        depends = data.get("depends")
        device_list = data.get("device_list")
        device_count = data.get("device_count")
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            artifact_name=data.get("artifact_name") or "",
            devices=list(data.get("devices") or []),
            filter_id=data.get("filter_id") or "",
            phase_id=data.get("phase_id") or "",
            all_devices=bool(data.get("all_devices", False)),
            force_installation=bool(data.get("force_installation", False)),
            group=data.get("group") or "",
            created=_parse_time(data.get("created")),
            finished=_parse_time(data.get("finished")),
            artifacts=list(data.get("artifacts") or []),
            depends=[dict(d) for d in depends] if depends is not None else None,
            status=data.get("status") or "",
            initial_device_count=int(data.get("initial_device_count") or 0),
            device_count=int(device_count) if device_count is not None else None,
            retries=int(data.get("retries") or 0),
            dynamic=bool(data.get("dynamic", False)),
            max_devices=int(data.get("max_devices") or 0),
            groups=list(data.get("groups") or []),
            device_list=list(device_list) if device_list is not None else None,
            type=data.get("type") or "",
            autogenerate_delta=bool(data.get("autogenerate_delta", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"id": self.id}
        _put(doc, "name", self.name, True)
        _put(doc, "artifact_name", self.artifact_name, True)
        _put(doc, "devices", self.devices, True)
        _put(doc, "filter_id", self.filter_id, True)
        _put(doc, "phase_id", self.phase_id, True)
        _put(doc, "all_devices", self.all_devices, True)
        _put(doc, "force_installation", self.force_installation, True)
        doc["group"] = self.group
        doc["created"] = _format_time(self.created)
        _put(doc, "finished", _format_time(self.finished), True)
        _put(doc, "artifacts", self.artifacts, True)
        doc["depends"] = self.depends
        doc["status"] = self.status
        _put(doc, "initial_device_count", self.initial_device_count, True)
        doc["device_count"] = self.device_count
        _put(doc, "retries", self.retries, True)
        _put(doc, "dynamic", self.dynamic, True)
        _put(doc, "max_devices", self.max_devices, True)
        _put(doc, "groups", self.groups, True)
        doc["device_list"] = self.device_list
        _put(doc, "type", self.type, True)
        _put(doc, "autogenerate_delta", self.autogenerate_delta, True)
        return doc


@dataclass
class DeviceDeployment:
    """A deployment as seen by one device."""

    id: str = ""
    deployment: Optional[Deployment] = None
    device: Optional[Device] = None

    @classmethod
    def from_dict(cls, data: Any) -> "DeviceDeployment":
        data = _require_dict(data, "device deployment")
        deployment = data.get("deployment")
        device = data.get("device")
        return cls(
            id=data.get("id") or "",
            deployment=Deployment.from_dict(deployment) if deployment is not None else None,
            device=Device.from_dict(device) if device is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deployment": self.deployment.to_dict() if self.deployment is not None else None,
            "device": self.device.to_dict() if self.device is not None else None,
        }


@dataclass
class InstalledDeviceDeployment:
    """The artifact currently installed on a device."""

    artifact_name: str = ""
    device_type: str = ""
    provides: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "InstalledDeviceDeployment":
        data = _require_dict(data, "installed device deployment")
        return cls(
            artifact_name=data.get("artifact_name") or "",
            device_type=data.get("device_type") or "",
            provides=dict(data.get("artifact_provides") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "artifact_name": self.artifact_name,
            "device_type": self.device_type,
        }
        _put(doc, "artifact_provides", self.provides, True)
        return doc


class DeploymentsClient:
    """Client of the deployments service's internal API."""

    def __init__(
        self,
        url_base: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url_base = url_base
        self.session = session or requests.Session()
        self.timeout = timeout

    def _fetch(self, url: str, params: list[tuple[str, str]]) -> Optional[list[DeviceDeployment]]:
        full_url = f"{url}?{urlencode(sorted(params, key=lambda kv: kv[0]))}"
        method = "GET"
        try:
            rsp = self.session.get(full_url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ClientError(f"failed to submit {method} {full_url}: {exc}") from exc

        with rsp:
            if rsp.status_code == 404:
                return None
            if rsp.status_code != 200:
                status = f"{rsp.status_code} {rsp.reason or ''}".rstrip()
                message = f"{method} {full_url} request failed with status {status}"
                logger.error(message)
                raise ClientError(message)
            try:
                data = rsp.json()
                if data is None:
                    return None
                if not isinstance(data, list):
                    raise ValueError("expected a list of device deployments")
                items = [DeviceDeployment.from_dict(item) for item in data]
            except (ValueError, TypeError) as exc:
                raise ClientError(f"failed to parse request body: {exc}") from exc
        return items or None

    @staticmethod
    def _check_url(url: str) -> None:
        if _BAD_ESCAPE.search(url):
            raise ClientError(f"failed to create request: invalid URL escape in {url!r}")

    def get_deployments(
        self, tenant_id: str, ids: Sequence[str]
    ) -> Optional[list[DeviceDeployment]]:
        """Fetch device deployments by id; None when none are found."""
        url = _join_url(self.url_base, URL_DEVICE_DEPLOYMENTS).replace(":tid", tenant_id, 1)
        self._check_url(url)
        if len(ids) > MAX_PER_PAGE:
            raise ClientError("too many IDs")
        params = [("page", "1"), ("per_page", str(len(ids)))]
        params.extend(("id", device_id) for device_id in ids)
        return self._fetch(url, params)

    def get_latest_finished_deployment(
        self, tenant_id: str, device_id: str
    ) -> Optional[DeviceDeployment]:
        """Fetch the latest finished deployment of a device, or None."""
        url = _join_url(self.url_base, URL_DEVICE_DEPLOYMENTS_ID)
        url = url.replace(":tid", tenant_id, 1).replace(":id", device_id, 1)
        self._check_url(url)
        items = self._fetch(url, [("page", "1"), ("per_page", "1")])
        return items[0] if items else None