"""Search-engine query building for device and deployment searches."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .attributes import ATTR_NAME_GROUP, SCOPE_SYSTEM, AttrType, to_attr
from .filters import (
    SORT_ORDER_ASC,
    DeploymentsSearchParams,
    DeploymentsSelectAttribute,
    DeploymentsSortCriteria,
    FilterPredicate,
    SearchParams,
    SelectAttribute,
    SortCriteria,
)

DEFAULT_PAGE = 0
DEFAULT_PER_PAGE = 20

_ATTR_DEVICE_ID = "id"

# Attributes that translate to plain, unscoped document fields.
_SPECIAL_ATTRS = {_ATTR_DEVICE_ID: "id"}

MSG_ARRAY_NOT_SUPPORTED = "filter doesn't support array values"
MSG_ARRAY_REQUIRED = "filter supports only array values"
MSG_STR_REQUIRED = "filter supports only string values"
MSG_NUM_REQUIRED = "filter supports only numeric values"
MSG_BOOL_REQUIRED = "filter supports only boolean values"
MSG_TYPE_NOT_SUPPORTED = "filter type not supported"

_TYPE_MESSAGES = {
    AttrType.STR: MSG_STR_REQUIRED,
    AttrType.NUM: MSG_NUM_REQUIRED,
    AttrType.BOOL: MSG_BOOL_REQUIRED,
}


class FilterError(ValueError):
    """A filter predicate cannot be turned into a query condition."""


class ArrayOpts(enum.IntEnum):
    """Whether a filter accepts, rejects or requires array values."""

    NOT_ALLOWED = 0
    ALLOWED = 1
    REQUIRED = 2


@dataclass
class Query:
    """A boolean search query with sorting, paging and extra top-level parts."""

    must_conditions: list[Any] = field(default_factory=list)
    must_not_conditions: list[Any] = field(default_factory=list)
    sort: list[Any] = field(default_factory=list)
    offset: int = (DEFAULT_PAGE - 1) * DEFAULT_PER_PAGE
    size: int = DEFAULT_PER_PAGE
    extra: dict[str, Any] = field(default_factory=dict)

    def must(self, condition: Any) -> "Query":
        self.must_conditions.append(condition)
        return self

    def must_not(self, condition: Any) -> "Query":
        self.must_not_conditions.append(condition)
        return self

    def with_size(self, size: int) -> "Query":
        self.size = size
        return self

    def with_sort(self, condition: Any) -> "Query":
        self.sort.append(condition)
        return self

    def with_page(self, page: int, per_page: int) -> "Query":
        self.offset = (page - 1) * per_page
        self.size = per_page
        return self

    def with_parts(self, parts: Optional[dict[str, Any]]) -> "Query":
        """Merge extra top-level keys into the query."""
        if parts:
            self.extra.update(parts)
        return self

    def to_dict(self) -> dict[str, Any]:
        qbool: dict[str, Any] = {}
        if self.must_conditions:
            qbool["must"] = list(self.must_conditions)
        if self.must_not_conditions:
            qbool["must_not"] = list(self.must_not_conditions)
        doc: dict[str, Any] = {"query": {"bool": qbool}}
        if self.sort:
            doc["sort"] = list(self.sort)
        doc["from"] = self.offset
        doc["size"] = self.size
        doc.update(self.extra)
        return doc

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class Filter:
    """A filter condition on a computed field name; matches by equality."""

    def __init__(
        self,
        pred: FilterPredicate,
        arr_opts: ArrayOpts,
        type_opts: AttrType,
    ) -> None:
        typ, is_array = pred.value_type()
        if is_array and arr_opts == ArrayOpts.NOT_ALLOWED:
            raise FilterError(MSG_ARRAY_NOT_SUPPORTED)
        if not is_array and arr_opts == ArrayOpts.REQUIRED:
            raise FilterError(MSG_ARRAY_REQUIRED)
        if type_opts != AttrType.ANY and type_opts != typ:
            raise FilterError(_TYPE_MESSAGES[typ])
        self.pred = pred
        self.attr = _SPECIAL_ATTRS.get(pred.attribute) or to_attr(
            pred.scope, pred.attribute, typ
        )
        self.val = pred.value

    def add_to(self, q: Query) -> Query:
        return q.must({"match": {self.attr: self.val}})


class FilterEq(Filter):
    def __init__(self, pred: FilterPredicate) -> None:
        super().__init__(pred, ArrayOpts.NOT_ALLOWED, AttrType.ANY)

    def add_to(self, q: Query) -> Query:
        return q.must({"match": {self.attr: self.val}})


class FilterNe(Filter):
    def __init__(self, pred: FilterPredicate) -> None:
        super().__init__(pred, ArrayOpts.NOT_ALLOWED, AttrType.ANY)

    def add_to(self, q: Query) -> Query:
        return q.must_not({"match": {self.attr: self.val}})


class FilterRegex(Filter):
    def __init__(self, pred: FilterPredicate) -> None:
        super().__init__(pred, ArrayOpts.NOT_ALLOWED, AttrType.STR)

    def add_to(self, q: Query) -> Query:
        return q.must({"regexp": {self.attr: self.val}})


class FilterIn(Filter):
    def __init__(self, pred: FilterPredicate) -> None:
        super().__init__(pred, ArrayOpts.REQUIRED, AttrType.ANY)

    def add_to(self, q: Query) -> Query:
        return q.must({"terms": {self.attr: self.val}})


class FilterNin(Filter):
    def __init__(self, pred: FilterPredicate) -> None:
        super().__init__(pred, ArrayOpts.REQUIRED, AttrType.ANY)

    def add_to(self, q: Query) -> Query:
        return q.must_not({"terms": {self.attr: self.val}})


class FilterExists(Filter):
    def __init__(self, pred: FilterPredicate) -> None:
        super().__init__(pred, ArrayOpts.NOT_ALLOWED, AttrType.BOOL)

    def add_to(self, q: Query) -> Query:
        fields = [
            to_attr(self.pred.scope, self.pred.attribute, typ)
            for typ in (AttrType.STR, AttrType.NUM, AttrType.BOOL)
        ]
        if self.pred.value:
            return q.must(
                {
                    "bool": {
                        "minimum_should_match": 1,
                        "should": [{"exists": {"field": f}} for f in fields],
                    }
                }
            )
        for f in fields:
            q = q.must_not({"exists": {"field": f}})
        return q


class FilterRange(Filter):
    """Range condition; ``op`` is one of gt, gte, lt, lte."""

    def __init__(self, pred: FilterPredicate, op: str) -> None:
        super().__init__(pred, ArrayOpts.NOT_ALLOWED, AttrType.ANY)
        self.op = op

    def add_to(self, q: Query) -> Query:
        return q.must({"range": {self.attr: {self.op: self.val}}})


def get_filter_part(pred: FilterPredicate) -> Filter:
    """Create the filter matching the predicate's selector."""
    kind = pred.type
    if kind == "$eq":
        return FilterEq(pred)
    if kind == "$ne":
        return FilterNe(pred)
    if kind in ("$gt", "$gte", "$lt", "$lte"):
        return FilterRange(pred, kind[1:])
    if kind == "$in":
        return FilterIn(pred)
    if kind == "$nin":
        return FilterNin(pred)
    if kind == "$exists":
        return FilterExists(pred)
    if kind == "$regex":
        return FilterRegex(pred)
    raise FilterError(MSG_TYPE_NOT_SUPPORTED)


def _add_sorts(q: Query, attr_str: str, attr_num: str, order: str) -> Query:
    return q.with_sort(
        {attr_str: {"order": order, "unmapped_type": "keyword"}}
    ).with_sort({attr_num: {"order": order, "unmapped_type": "double"}})


def _add_select(q: Query, fields: list[str]) -> Query:
    return q.with_parts({"fields": fields + ["id"], "_source": False})


class Sort:
    """Sort on a scoped attribute, string values then numeric values."""

    def __init__(self, criteria: SortCriteria) -> None:
        self.order = criteria.order or SORT_ORDER_ASC
        self.attr_str = to_attr(criteria.scope, criteria.attribute, AttrType.STR)
        self.attr_num = to_attr(criteria.scope, criteria.attribute, AttrType.NUM)
        self.attr_bool = to_attr(criteria.scope, criteria.attribute, AttrType.BOOL)

    def add_to(self, q: Query) -> Query:
        return _add_sorts(q, self.attr_str, self.attr_num, self.order)


class Select:
    """Restrict the returned fields to the given attributes plus the device id."""

    def __init__(self, attrs: Sequence[SelectAttribute]) -> None:
        self.attrs = list(attrs)

    def add_to(self, q: Query) -> Query:
        fields = [
            to_attr(a.scope, a.attribute, typ)
            for a in self.attrs
            for typ in (AttrType.STR, AttrType.NUM, AttrType.BOOL)
        ]
        return _add_select(q, fields)


class DeviceIdsFilter:
    """Restrict results to the given device ids."""

    def __init__(self, ids: Sequence[str]) -> None:
        self.device_ids = list(ids)

    def add_to(self, q: Query) -> Query:
        return q.must({"terms": {_ATTR_DEVICE_ID: self.device_ids}})


class DeploymentsSort:
    """Sort on a plain deployment field."""

    def __init__(self, criteria: DeploymentsSortCriteria) -> None:
        self.order = criteria.order or SORT_ORDER_ASC
        self.attr_str = criteria.attribute
        self.attr_num = criteria.attribute
        self.attr_bool = criteria.attribute

    def add_to(self, q: Query) -> Query:
        return _add_sorts(q, self.attr_str, self.attr_num, self.order)


class DeploymentsSelect:
    """Restrict the returned fields to the given deployment fields plus the id."""

    def __init__(self, attrs: Sequence[DeploymentsSelectAttribute]) -> None:
        self.attrs = list(attrs)

    def add_to(self, q: Query) -> Query:
        return _add_select(q, [a.attribute for a in self.attrs])


def build_query(params: SearchParams) -> Query:
    """Build the device search query from search parameters."""
    query = Query()
    for pred in params.filters:
        query = get_filter_part(pred).add_to(query)
    if params.groups:
        group_pred = FilterPredicate(
            scope=SCOPE_SYSTEM,
            attribute=ATTR_NAME_GROUP,
            type="$in",
            value=list(params.groups),
        )
        query = FilterIn(group_pred).add_to(query)
    for criteria in params.sort:
        query = Sort(criteria).add_to(query)
    query = query.with_page(params.page, params.per_page)
    if params.attributes:
        query = Select(params.attributes).add_to(query)
    if params.device_ids:
        query = DeviceIdsFilter(params.device_ids).add_to(query)
    return query


def build_deployments_query(params: DeploymentsSearchParams) -> Query:
    """Build the deployments search query from search parameters."""
    query = Query()
    for pred in params.filters:
        part = get_filter_part(
            FilterPredicate(attribute=pred.attribute, type=pred.type, value=pred.value)
        )
        query = part.add_to(query)
    for criteria in params.sort:
        query = DeploymentsSort(criteria).add_to(query)
    query = query.with_page(params.page, params.per_page)
    if params.attributes:
        query = DeploymentsSelect(params.attributes).add_to(query)
    return query