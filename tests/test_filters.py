import pytest

from reporting.attributes import SCOPE_IDENTITY, AttrType
from reporting.filters import (
    SORT_ORDER_ASC,
    DeploymentsFilterPredicate,
    DeploymentsSearchParams,
    DeploymentsSelectAttribute,
    DeploymentsSortCriteria,
    FilterPredicate,
    SearchParams,
    SelectAttribute,
    SortCriteria,
    ValidationError,
)

MAC = "00:00:5e:00:53:01"


def _full_search_params():
    return SearchParams(
        filters=[FilterPredicate(scope=SCOPE_IDENTITY, attribute="mac", type="$eq", value=MAC)],
        sort=[SortCriteria(scope=SCOPE_IDENTITY, attribute="mac", order=SORT_ORDER_ASC)],
        attributes=[SelectAttribute(scope=SCOPE_IDENTITY, attribute="mac")],
    )


def test_search_params_empty_is_valid():
    assert SearchParams().validate() is None


def test_search_params_full_example_is_valid():
    assert _full_search_params().validate() is None


@pytest.mark.parametrize(
    "params, message",
    [
        (
            SearchParams(filters=[FilterPredicate(value="")]),
            "attribute: cannot be blank; scope: cannot be blank; type: cannot be blank.",
        ),
        (
            SearchParams(sort=[SortCriteria(order="dummy")]),
            "attribute: cannot be blank; order: must be a valid value; scope: cannot be blank.",
        ),
        (
            SearchParams(attributes=[SelectAttribute(attribute="mac")]),
            "scope: cannot be blank.",
        ),
    ],
)
def test_search_params_invalid(params, message):
    with pytest.raises(ValidationError) as exc:
        params.validate()
    assert str(exc.value) == message


def test_filter_predicate_invalid_selector():
    pred = FilterPredicate(scope="inventory", attribute="a", type="$bogus", value="x")
    with pytest.raises(ValidationError) as exc:
        pred.validate()
    assert str(exc.value) == "type: must be a valid value."


def test_filter_predicate_nil_value():
    pred = FilterPredicate(scope="inventory", attribute="a", type="$eq", value=None)
    with pytest.raises(ValidationError) as exc:
        pred.validate()
    assert str(exc.value) == "value: is required."
    assert exc.value.errors == {"value": "is required"}


@pytest.mark.parametrize(
    "value, typ, is_array",
    [
        ("a", AttrType.STR, False),
        (["a"], AttrType.STR, True),
        (1.0, AttrType.NUM, False),
        ([1.0], AttrType.NUM, True),
        (True, AttrType.BOOL, False),
        ([True], AttrType.BOOL, True),
    ],
)
def test_filter_predicate_value_type(value, typ, is_array):
    pred = FilterPredicate(scope=SCOPE_IDENTITY, attribute="mac", value=value)
    assert pred.value_type() == (typ, is_array)


@pytest.mark.parametrize("value", [None, [None]])
def test_filter_predicate_value_type_unknown(value):
    pred = FilterPredicate(scope=SCOPE_IDENTITY, attribute="mac", value=value)
    with pytest.raises(ValueError) as exc:
        pred.value_type()
    assert str(exc.value) == "unknown attribute value type: <nil> <nil>"


def test_deployments_search_params_empty_is_valid():
    assert DeploymentsSearchParams().validate() is None


def test_deployments_search_params_full_example_is_valid():
    params = DeploymentsSearchParams(
        filters=[DeploymentsFilterPredicate(attribute="mac", type="$eq", value=MAC)],
        sort=[DeploymentsSortCriteria(attribute="mac", order=SORT_ORDER_ASC)],
        attributes=[DeploymentsSelectAttribute(attribute="mac")],
    )
    assert params.validate() is None


@pytest.mark.parametrize(
    "params, message",
    [
        (
            DeploymentsSearchParams(filters=[DeploymentsFilterPredicate(value="")]),
            "attribute: cannot be blank; type: cannot be blank.",
        ),
        (
            DeploymentsSearchParams(sort=[DeploymentsSortCriteria(order="dummy")]),
            "attribute: cannot be blank; order: must be a valid value.",
        ),
        (
            DeploymentsSearchParams(attributes=[DeploymentsSelectAttribute()]),
            "attribute: cannot be blank.",
        ),
    ],
)
def test_deployments_search_params_invalid(params, message):
    with pytest.raises(ValidationError) as exc:
        params.validate()
    assert str(exc.value) == message


@pytest.mark.parametrize(
    "value, typ, is_array",
    [
        ("a", AttrType.STR, False),
        (["a"], AttrType.STR, True),
        (1.0, AttrType.NUM, False),
        ([1.0], AttrType.NUM, True),
        (True, AttrType.BOOL, False),
        ([True], AttrType.BOOL, True),
    ],
)
def test_deployments_filter_predicate_value_type(value, typ, is_array):
    pred = DeploymentsFilterPredicate(attribute="mac", value=value)
    assert pred.value_type() == (typ, is_array)


@pytest.mark.parametrize("value", [None, [None]])
def test_deployments_filter_predicate_value_type_unknown(value):
    pred = DeploymentsFilterPredicate(attribute="mac", value=value)
    with pytest.raises(ValueError) as exc:
        pred.value_type()
    assert str(exc.value) == "unknown attribute value type: <nil> <nil>"


def test_validation_error_nested_rendering():
    inner = ValidationError({"name": "cannot be blank", "attribute": "cannot be blank"})
    outer = ValidationError({"aggregations": ValidationError({"0": inner})})
    assert str(outer) == (
        "aggregations: (0: (attribute: cannot be blank; name: cannot be blank.).)."
    )