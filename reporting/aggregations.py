"""Aggregation requests for devices and deployments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from .attributes import AttrType, to_attr
from .filters import DeploymentsFilterPredicate, FilterPredicate, ValidationError

DEFAULT_AGGREGATION_LIMIT = 10
MAX_AGGREGATION_TERMS = 100
MAX_NESTED_AGGREGATIONS = 5

_MSG_BLANK = "cannot be blank"
_MSG_MIN_LIMIT = "must be no less than 0"
_MSG_TOP_LENGTH = f"the length must be between 1 and {MAX_AGGREGATION_TERMS}"
_MSG_NESTED_LENGTH = f"the length must be no more than {MAX_AGGREGATION_TERMS}"
_MSG_TOO_DEEP = f"too many nested aggregations, limit is {MAX_NESTED_AGGREGATIONS}"

Term = Union["AggregationTerm", "DeploymentsAggregationTerm"]


def _check_nesting(terms: Sequence[Term], limit: int) -> Optional[str]:
    if limit <= 0:
        return _MSG_TOO_DEEP
    for term in terms:
        if term.aggregations:
            return _check_nesting(term.aggregations, limit - 1)
    return None


def _element_errors(terms: Sequence[Term]) -> Optional[ValidationError]:
    errors: dict[str, ValidationError] = {}
    for index, term in enumerate(terms):
        try:
            term.validate()
        except ValidationError as err:
            errors[str(index)] = err
    return ValidationError(errors) if errors else None


def _validate_term(term: Term, required: dict[str, str]) -> None:
    errors: dict[str, Union[str, ValidationError]] = {
        key: _MSG_BLANK for key, value in required.items() if not value
    }
    if term.limit < 0:
        errors["limit"] = _MSG_MIN_LIMIT
    if term.aggregations:
        if len(term.aggregations) > MAX_AGGREGATION_TERMS:
            errors["aggregations"] = _MSG_NESTED_LENGTH
        else:
            nested = _check_nesting(term.aggregations, MAX_NESTED_AGGREGATIONS)
            if nested:
                errors["aggregations"] = nested
            else:
                element_err = _element_errors(term.aggregations)
                if element_err:
                    errors["aggregations"] = element_err
    if errors:
        raise ValidationError(errors)


def _validate_params(aggregations: Sequence[Term], filters: Sequence[Any]) -> None:
    if not aggregations:
        raise ValidationError({"aggregations": _MSG_BLANK})
    if len(aggregations) > MAX_AGGREGATION_TERMS:
        raise ValidationError({"aggregations": _MSG_TOP_LENGTH})
    element_err = _element_errors(aggregations)
    if element_err:
        raise ValidationError({"aggregations": element_err})
    for predicate in filters:
        predicate.validate()


@dataclass
class AggregationTerm:
    """A terms aggregation over a scoped device attribute."""

    name: str = ""
    attribute: str = ""
    scope: str = ""
    limit: int = 0
    aggregations: list["AggregationTerm"] = field(default_factory=list)

    def validate(self) -> None:
        _validate_term(
            self, {"name": self.name, "attribute": self.attribute, "scope": self.scope}
        )


@dataclass
class AggregateParams:
    """Parameters of a device aggregation request."""

    aggregations: list[AggregationTerm] = field(default_factory=list)
    filters: list[FilterPredicate] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    tenant_id: str = ""

    def validate(self) -> None:
        _validate_params(self.aggregations, self.filters)


@dataclass
class DeploymentsAggregationTerm:
    """A terms aggregation over a deployment field."""

    name: str = ""
    attribute: str = ""
    limit: int = 0
    aggregations: list["DeploymentsAggregationTerm"] = field(default_factory=list)

    def validate(self) -> None:
        _validate_term(self, {"name": self.name, "attribute": self.attribute})


@dataclass
class AggregateDeploymentsParams:
    """Parameters of a deployments aggregation request."""

    aggregations: list[DeploymentsAggregationTerm] = field(default_factory=list)
    filters: list[DeploymentsFilterPredicate] = field(default_factory=list)
    tenant_id: str = ""

    def validate(self) -> None:
        _validate_params(self.aggregations, self.filters)


def _terms_agg(field_name: str, limit: int) -> dict[str, Any]:
    return {
        "terms": {
            "field": field_name,
            "size": limit if limit > 0 else DEFAULT_AGGREGATION_LIMIT,
        }
    }


def build_aggregations(terms: Sequence[AggregationTerm]) -> dict[str, Any]:
    """Build the search-engine aggregation clause for device terms."""
    aggs: dict[str, Any] = {}
    for term in terms:
        agg = _terms_agg(to_attr(term.scope, term.attribute, AttrType.STR), term.limit)
        if term.aggregations:
            agg["aggs"] = build_aggregations(term.aggregations)
        aggs[term.name] = agg
    return aggs


def build_deployments_aggregations(
    terms: Sequence[DeploymentsAggregationTerm],
) -> dict[str, Any]:
    """Build the search-engine aggregation clause for deployment terms."""
    aggs: dict[str, Any] = {}
    for term in terms:
        agg = _terms_agg(term.attribute, term.limit)
        if term.aggregations:
            agg["aggs"] = build_deployments_aggregations(term.aggregations)
        aggs[term.name] = agg
    return aggs


@dataclass
class DeviceAggregationItem:
    """One bucket of an aggregation result."""

    key: str = ""
    count: int = 0
    aggregations: list["DeviceAggregation"] = field(default_factory=list)


@dataclass
class DeviceAggregation:
    """A named aggregation result with its buckets."""

    name: str = ""
    items: list[DeviceAggregationItem] = field(default_factory=list)
    other_count: int = 0