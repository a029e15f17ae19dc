"""Flattened device-deployment documents as stored in the search index."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .deployments import _format_time, _parse_time, _put, _require_dict


def _int(value: Any) -> int:
    return int(value or 0)


@dataclass
class Deployment:
    """One device's view of a deployment, flattened for indexing."""

    id: str = ""
    tenant_id: str = ""
    device_id: str = ""
    deployment_id: str = ""
    deployment_name: str = ""
    deployment_artifact_name: str = ""
    deployment_type: str = ""
    deployment_created: Optional[datetime] = None
    deployment_filter_id: str = ""
    deployment_all_devices: bool = False
    deployment_force_installation: bool = False
    deployment_group: str = ""
    deployment_phased: bool = False
    deployment_phase_id: str = ""
    deployment_retries: int = 0
    deployment_max_devices: int = 0
    deployment_autogenerate_delta: bool = False
    device_created: Optional[datetime] = None
    device_finished: Optional[datetime] = None
    device_elapsed_seconds: int = 0
    device_deleted: Optional[datetime] = None
    device_status: str = ""
    device_is_log_available: bool = False
    device_retries: int = 0
    device_attempts: int = 0
    image_id: str = ""
    image_description: str = ""
    image_artifact_name: str = ""
    image_device_types: Optional[list[str]] = None
    image_signed: bool = False
    image_artifact_info_format: str = ""
    image_artifact_info_version: int = 0
    image_provides: dict[str, str] = field(default_factory=dict)
    image_depends: dict[str, Any] = field(default_factory=dict)
    image_clears_provides: list[str] = field(default_factory=list)
    image_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Render the document with the index's field names."""
        doc: dict[str, Any] = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "device_id": self.device_id,
            "deployment_id": self.deployment_id,
            "deployment_name": self.deployment_name,
            "deployment_artifact_name": self.deployment_artifact_name,
            "deployment_type": self.deployment_type,
            "deployment_created": _format_time(self.deployment_created),
        }
        _put(doc, "deployment_filter_id", self.deployment_filter_id, True)
        doc["deployment_all_devices"] = self.deployment_all_devices
        doc["deployment_force_installation"] = self.deployment_force_installation
        _put(doc, "deployment_group", self.deployment_group, True)
        doc["deployment_phased"] = self.deployment_phased
        _put(doc, "deployment_phase_id", self.deployment_phase_id, True)
        doc["deployment_retries"] = self.deployment_retries
        doc["deployment_max_devices"] = self.deployment_max_devices
        doc["deployment_autogenerate_deta"] = self.deployment_autogenerate_delta
        doc["device_created"] = _format_time(self.device_created)
        doc["device_finished"] = _format_time(self.device_finished)
        doc["device_elapsed_seconds"] = self.device_elapsed_seconds
        _put(doc, "device_deleted", _format_time(self.device_deleted), True)
        doc["device_status"] = self.device_status
        doc["device_is_log_available"] = self.device_is_log_available
        doc["device_retries"] = self.device_retries
        doc["device_attempts"] = self.device_attempts
        _put(doc, "image_id", self.image_id, True)
        _put(doc, "image_description", self.image_description, True)
        doc["image_artifact_name"] = self.image_artifact_name
        doc["image_device_types"] = (
            list(self.image_device_types) if self.image_device_types is not None else None
        )
        doc["image_signed"] = self.image_signed
        _put(doc, "image_artifact_info_format", self.image_artifact_info_format, True)
        _put(doc, "image_artifact_info_version", self.image_artifact_info_version, True)
        _put(doc, "image_provides", dict(self.image_provides), True)
        _put(doc, "image_depends", dict(self.image_depends), True)
        _put(doc, "image_clears_provides", list(self.image_clears_provides), True)
        _put(doc, "image_size", self.image_size, True)
        return doc

    @classmethod
    def from_dict(cls, data: Any) -> "Deployment":
        """Decode a document produced by :meth:`to_dict`."""
        data = _require_dict(data, "deployment")
        types = data.get("image_device_types")
        return cls(
            id=data.get("id") or "",
            tenant_id=data.get("tenant_id") or "",
            device_id=data.get("device_id") or "",
            deployment_id=data.get("deployment_id") or "",
            deployment_name=data.get("deployment_name") or "",
            deployment_artifact_name=data.get("deployment_artifact_name") or "",
            deployment_type=data.get("deployment_type") or "",
            deployment_created=_parse_time(data.get("deployment_created")),
            deployment_filter_id=data.get("deployment_filter_id") or "",
            deployment_all_devices=bool(data.get("deployment_all_devices", False)),
            deployment_force_installation=bool(
                data.get("deployment_force_installation", False)
            ),
            deployment_group=data.get("deployment_group") or "",
            deployment_phased=bool(data.get("deployment_phased", False)),
            deployment_phase_id=data.get("deployment_phase_id") or "",
            deployment_retries=_int(data.get("deployment_retries")),
            deployment_max_devices=_int(data.get("deployment_max_devices")),
            deployment_autogenerate_delta=bool(
                data.get("deployment_autogenerate_deta", False)
            ),
            device_created=_parse_time(data.get("device_created")),
            device_finished=_parse_time(data.get("device_finished")),
            device_elapsed_seconds=_int(data.get("device_elapsed_seconds")),
            device_deleted=_parse_time(data.get("device_deleted")),
            device_status=data.get("device_status") or "",
            device_is_log_available=bool(data.get("device_is_log_available", False)),
            device_retries=_int(data.get("device_retries")),
            device_attempts=_int(data.get("device_attempts")),
            image_id=data.get("image_id") or "",
            image_description=data.get("image_description") or "",
            image_artifact_name=data.get("image_artifact_name") or "",
            image_device_types=list(types) if types is not None else None,
            image_signed=bool(data.get("image_signed", False)),
            image_artifact_info_format=data.get("image_artifact_info_format") or "",
            image_artifact_info_version=_int(data.get("image_artifact_info_version")),
            image_provides=dict(data.get("image_provides") or {}),
            image_depends=dict(data.get("image_depends") or {}),
            image_clears_provides=list(data.get("image_clears_provides") or []),
            image_size=_int(data.get("image_size")),
        )