import json

import pytest

from reporting.attributes import SCOPE_IDENTITY
from reporting.filters import (
    DeploymentsFilterPredicate,
    DeploymentsSearchParams,
    DeploymentsSelectAttribute,
    DeploymentsSortCriteria,
    FilterPredicate,
    SearchParams,
    SelectAttribute,
    SortCriteria,
)
from reporting.query import (
    DEFAULT_PAGE,
    DEFAULT_PER_PAGE,
    FilterError,
    FilterExists,
    FilterRange,
    Query,
    build_deployments_query,
    build_query,
    get_filter_part,
)

MAC = "00:00:5e:00:53:01"


def _params(**kwargs):
    return SearchParams(page=DEFAULT_PAGE, per_page=DEFAULT_PER_PAGE, **kwargs)


def _mac_filter(kind, value):
    return [FilterPredicate(scope=SCOPE_IDENTITY, attribute="mac", type=kind, value=value)]


@pytest.mark.parametrize(
    "params, expected",
    [
        (_params(), Query()),
        (
            _params(groups=["group1", "group2"]),
            Query().must({"terms": {"system_group_str": ["group1", "group2"]}}),
        ),
        (
            _params(filters=_mac_filter("$eq", MAC)),
            Query().must({"match": {"identity_mac_str": MAC}}),
        ),
        (
            _params(filters=_mac_filter("$ne", MAC)),
            Query().must_not({"match": {"identity_mac_str": MAC}}),
        ),
        (
            _params(filters=_mac_filter("$gt", MAC)),
            Query().must({"range": {"identity_mac_str": {"gt": MAC}}}),
        ),
        (
            _params(filters=_mac_filter("$gte", MAC)),
            Query().must({"range": {"identity_mac_str": {"gte": MAC}}}),
        ),
        (
            _params(filters=_mac_filter("$lt", MAC)),
            Query().must({"range": {"identity_mac_str": {"lt": MAC}}}),
        ),
        (
            _params(filters=_mac_filter("$lte", MAC)),
            Query().must({"range": {"identity_mac_str": {"lte": MAC}}}),
        ),
        (
            _params(filters=_mac_filter("$in", [MAC])),
            Query().must({"terms": {"identity_mac_str": [MAC]}}),
        ),
        (
            _params(filters=_mac_filter("$nin", [MAC])),
            Query().must_not({"terms": {"identity_mac_str": [MAC]}}),
        ),
        (
            _params(filters=_mac_filter("$exists", True)),
            Query().must(
                {
                    "bool": {
                        "minimum_should_match": 1,
                        "should": [
                            {"exists": {"field": "identity_mac_str"}},
                            {"exists": {"field": "identity_mac_num"}},
                            {"exists": {"field": "identity_mac_bool"}},
                        ],
                    }
                }
            ),
        ),
        (
            _params(filters=_mac_filter("$regex", "00:.*")),
            Query().must({"regexp": {"identity_mac_str": "00:.*"}}),
        ),
        (
            _params(sort=[SortCriteria(scope=SCOPE_IDENTITY, attribute="mac")]),
            Query()
            .with_sort({"identity_mac_str": {"order": "asc", "unmapped_type": "keyword"}})
            .with_sort({"identity_mac_num": {"order": "asc", "unmapped_type": "double"}}),
        ),
        (
            _params(attributes=[SelectAttribute(scope=SCOPE_IDENTITY, attribute="mac")]),
            Query().with_parts(
                {
                    "_source": False,
                    "fields": [
                        "identity_mac_str",
                        "identity_mac_num",
                        "identity_mac_bool",
                        "id",
                    ],
                }
            ),
        ),
        (
            _params(device_ids=["1", "2"]),
            Query().must({"terms": {"id": ["1", "2"]}}),
        ),
    ],
    ids=[
        "empty",
        "groups",
        "eq",
        "ne",
        "gt",
        "gte",
        "lt",
        "lte",
        "in",
        "nin",
        "exists",
        "regex",
        "sort",
        "attributes",
        "device_ids",
    ],
)
def test_build_query(params, expected):
    query = build_query(params)
    assert query == expected
    assert json.loads(query.to_json()) == expected.to_dict()


def test_default_query_dict():
    assert Query().to_dict() == {"query": {"bool": {}}, "from": -20, "size": 20}


def test_with_page_and_size():
    q = Query().with_page(3, 10)
    assert q.to_dict()["from"] == 20
    assert q.to_dict()["size"] == 10
    assert q.with_size(5).to_dict()["size"] == 5


def test_with_parts_empty_keeps_query():
    assert Query().with_parts({}) == Query()


def test_to_dict_layout():
    q = Query().must("a").must_not("b").with_sort("s").with_parts({"x": 1})
    assert q.to_dict() == {
        "query": {"bool": {"must": ["a"], "must_not": ["b"]}},
        "sort": ["s"],
        "from": -20,
        "size": 20,
        "x": 1,
    }


def test_sort_descending():
    q = build_query(
        _params(sort=[SortCriteria(scope=SCOPE_IDENTITY, attribute="mac", order="desc")])
    )
    assert q.sort[0] == {"identity_mac_str": {"order": "desc", "unmapped_type": "keyword"}}


def test_special_device_id_attribute():
    q = build_query(_params(filters=_mac_filter("$eq", MAC)[:0] + [
        FilterPredicate(scope=SCOPE_IDENTITY, attribute="id", type="$eq", value="dev")
    ]))
    assert q.must_conditions == [{"match": {"id": "dev"}}]


def test_exists_false():
    q = FilterExists(
        FilterPredicate(scope=SCOPE_IDENTITY, attribute="mac", type="$exists", value=False)
    ).add_to(Query())
    assert q.must_not_conditions == [
        {"exists": {"field": "identity_mac_str"}},
        {"exists": {"field": "identity_mac_num"}},
        {"exists": {"field": "identity_mac_bool"}},
    ]


def test_range_number():
    pred = FilterPredicate(scope="inventory", attribute="mem", type="$gt", value=4.0)
    q = FilterRange(pred, "gt").add_to(Query())
    assert q.must_conditions == [{"range": {"inventory_mem_num": {"gt": 4.0}}}]


@pytest.mark.parametrize(
    "kind, value, message",
    [
        ("$eq", [MAC], "filter doesn't support array values"),
        ("$in", MAC, "filter supports only array values"),
        ("$regex", 1.0, "filter supports only numeric values"),
        ("$exists", "yes", "filter supports only string values"),
        ("$foo", MAC, "filter type not supported"),
    ],
)
def test_filter_errors(kind, value, message):
    with pytest.raises(FilterError, match=message):
        get_filter_part(_mac_filter(kind, value)[0])


def test_build_query_propagates_filter_error():
    with pytest.raises(FilterError):
        build_query(_params(filters=_mac_filter("$in", MAC)))


def test_unknown_value_type():
    with pytest.raises(ValueError, match="unknown attribute value type"):
        get_filter_part(_mac_filter("$eq", None)[0])


def test_build_deployments_query():
    params = DeploymentsSearchParams(
        page=2,
        per_page=10,
        filters=[
            DeploymentsFilterPredicate(attribute="device_status", type="$eq", value="success")
        ],
        sort=[DeploymentsSortCriteria(attribute="device_created")],
        attributes=[DeploymentsSelectAttribute(attribute="deployment_name")],
    )
    assert build_deployments_query(params).to_dict() == {
        "query": {"bool": {"must": [{"match": {"device_status": "success"}}]}},
        "sort": [
            {"device_created": {"order": "asc", "unmapped_type": "keyword"}},
            {"device_created": {"order": "asc", "unmapped_type": "double"}},
        ],
        "from": 10,
        "size": 10,
        "fields": ["deployment_name", "id"],
        "_source": False,
    }


def test_build_deployments_query_dedots_field():
    params = DeploymentsSearchParams(
        page=DEFAULT_PAGE,
        per_page=DEFAULT_PER_PAGE,
        filters=[DeploymentsFilterPredicate(attribute="image.name", type="$ne", value="x")],
    )
    q = build_deployments_query(params)
    assert q.must_not_conditions == [{"match": {"image\uff0ename": "x"}}]


def test_build_deployments_query_error():
    params = DeploymentsSearchParams(
        filters=[DeploymentsFilterPredicate(attribute="a", type="$bad", value="x")]
    )
    with pytest.raises(FilterError, match="filter type not supported"):
        build_deployments_query(params)