"""Search parameters for devices and deployments, and their validation."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .attributes import AttrType

VALID_SELECTORS = (
    "$eq",
    "$gt",
    "$gte",
    "$in",
    "$lt",
    "$lte",
    "$ne",
    "$nin",
    "$exists",
    "$regex",
)

SORT_ORDER_ASC = "asc"
SORT_ORDER_DESC = "desc"
VALID_SORT_ORDERS = (SORT_ORDER_ASC, SORT_ORDER_DESC)

_MSG_BLANK = "cannot be blank"
_MSG_INVALID = "must be a valid value"
_MSG_NIL = "is required"


class ValidationError(ValueError):
    """Field validation failure; nested errors render in parentheses."""

    def __init__(self, errors: Mapping[str, Union[str, "ValidationError"]]):
        self.errors = dict(errors)
        super().__init__(self._render())

    def _render(self) -> str:
        parts = []
        for key in sorted(self.errors):
            err = self.errors[key]
            if isinstance(err, ValidationError):
                parts.append(f"{key}: ({err})")
            else:
                parts.append(f"{key}: {err}")
        return "; ".join(parts) + "."

    def __str__(self) -> str:
        return self._render()


Rule = Callable[[Any], Optional[str]]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) == 0
    if isinstance(value, (int, float)):
        return value == 0
    return False


def _required(value: Any) -> Optional[str]:
    return _MSG_BLANK if _is_empty(value) else None


def _not_nil(value: Any) -> Optional[str]:
    return _MSG_NIL if value is None else None


def _one_of(choices: tuple) -> Rule:
    def rule(value: Any) -> Optional[str]:
        if _is_empty(value):
            return None
        return None if value in choices else _MSG_INVALID

    return rule


def _validate_fields(fields: Mapping[str, tuple[Any, tuple[Rule, ...]]]) -> None:
    errors: dict[str, str] = {}
    for name, (value, rules) in fields.items():
        for rule in rules:
            message = rule(value)
            if message:
                errors[name] = message
                break
    if errors:
        raise ValidationError(errors)


def _describe(value: Any) -> str:
    if value is None:
        return "<nil> <nil>"
    return f"{value!r} {type(value).__name__}"


def _scalar_type(value: Any) -> Optional[AttrType]:
    if isinstance(value, bool):
        return AttrType.BOOL
    if isinstance(value, (int, float)):
        return AttrType.NUM
    if isinstance(value, str):
        return AttrType.STR
    return None


def _value_type(value: Any) -> tuple[AttrType, bool]:
    scalar = _scalar_type(value)
    if scalar is not None:
        return scalar, False
    if isinstance(value, (list, tuple)):
        if not value:
            return AttrType.STR, True
        first = value[0]
        element = _scalar_type(first)
        if element is None:
            raise ValueError(f"unknown attribute value type: {_describe(first)}")
        return element, True
    raise ValueError(f"unknown attribute value type: {_describe(value)}")


@dataclass
class FilterPredicate:
    """A single filter condition on a scoped attribute."""

    scope: str = ""
    attribute: str = ""
    type: str = ""
    value: Any = None

    def validate(self) -> None:
        _validate_fields(
            {
                "scope": (self.scope, (_required,)),
                "attribute": (self.attribute, (_required,)),
                "type": (self.type, (_required, _one_of(VALID_SELECTORS))),
                "value": (self.value, (_not_nil,)),
            }
        )

    def value_type(self) -> tuple[AttrType, bool]:
        """Return the value's type and whether it is an array."""
        return _value_type(self.value)


@dataclass
class SortCriteria:
    scope: str = ""
    attribute: str = ""
    order: str = ""


@dataclass
class SelectAttribute:
    scope: str = ""
    attribute: str = ""


@dataclass
class SearchParams:
    """Parameters of a device search."""

    page: int = 0
    per_page: int = 0
    filters: list[FilterPredicate] = field(default_factory=list)
    sort: list[SortCriteria] = field(default_factory=list)
    attributes: list[SelectAttribute] = field(default_factory=list)
    device_ids: list[str] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    tenant_id: str = ""

    def validate(self) -> None:
        for predicate in self.filters:
            predicate.validate()
        for criteria in self.sort:
            _validate_fields(
                {
                    "scope": (criteria.scope, (_required,)),
                    "attribute": (criteria.attribute, (_required,)),
                    "order": (criteria.order, (_required, _one_of(VALID_SORT_ORDERS))),
                }
            )
        for selected in self.attributes:
            _validate_fields(
                {
                    "scope": (selected.scope, (_required,)),
                    "attribute": (selected.attribute, (_required,)),
                }
            )


@dataclass
class DeploymentsFilterPredicate:
    """A single filter condition on a deployment field."""

    attribute: str = ""
    type: str = ""
    value: Any = None

    def validate(self) -> None:
        _validate_fields(
            {
                "attribute": (self.attribute, (_required,)),
                "type": (self.type, (_required, _one_of(VALID_SELECTORS))),
                "value": (self.value, (_not_nil,)),
            }
        )

    def value_type(self) -> tuple[AttrType, bool]:
        """Return the value's type and whether it is an array."""
        return _value_type(self.value)


@dataclass
class DeploymentsSortCriteria:
    attribute: str = ""
    order: str = ""


@dataclass
class DeploymentsSelectAttribute:
    attribute: str = ""


@dataclass
class DeploymentsSearchParams:
    """Parameters of a deployments search."""

    page: int = 0
    per_page: int = 0
    filters: list[DeploymentsFilterPredicate] = field(default_factory=list)
    sort: list[DeploymentsSortCriteria] = field(default_factory=list)
    attributes: list[DeploymentsSelectAttribute] = field(default_factory=list)
    device_ids: list[str] = field(default_factory=list)
    deployment_ids: list[str] = field(default_factory=list)
    tenant_id: str = ""

    def validate(self) -> None:
        for predicate in self.filters:
            predicate.validate()
        for criteria in self.sort:
            _validate_fields(
                {
                    "attribute": (criteria.attribute, (_required,)),
                    "order": (criteria.order, (_required, _one_of(VALID_SORT_ORDERS))),
                }
            )
        for selected in self.attributes:
            _validate_fields({"attribute": (selected.attribute, (_required,))})