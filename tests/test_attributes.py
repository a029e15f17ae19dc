import pytest

from reporting.attributes import (
    ATTR_NAME_STATUS,
    SCOPE_IDENTITY,
    AttrType,
    Job,
    Mapping,
    dedot,
    redot,
    to_attr,
)


def test_to_attr_scoped():
    assert to_attr(SCOPE_IDENTITY, ATTR_NAME_STATUS, AttrType.STR) == "identity_status_str"


def test_to_attr_no_scope():
    assert to_attr("", "noscope", AttrType.STR) == "noscope"


@pytest.mark.parametrize(
    "typ, expected",
    [
        (AttrType.STR, "inventory_mac_str"),
        (AttrType.NUM, "inventory_mac_num"),
        (AttrType.BOOL, "inventory_mac_bool"),
    ],
)
def test_to_attr_suffixes(typ, expected):
    assert to_attr("inventory", "mac", typ) == expected


def test_to_attr_dedots_name():
    result = to_attr("inventory", "a.b", AttrType.NUM)
    assert result == "inventory_a\uff0eb_num"
    assert "." not in result


def test_redot_round_trip():
    value = "test.value"
    dotless = dedot(value)
    assert dotless != value
    assert "." not in dotless
    assert redot(dotless) == value


def test_dedot_without_dots_is_identity():
    assert dedot("plain") == "plain"
    assert redot("plain") == "plain"


def test_mapping_defaults_are_independent():
    first = Mapping(tenant_id="t1")
    second = Mapping(tenant_id="t2")
    first.inventory.append("inventory/a1")
    assert second.inventory == []
    assert first.inventory == ["inventory/a1"]


def test_job_fields():
    job = Job(action="reindex", tenant_id="t", device_id="d", service="inventory")
    assert (job.action, job.tenant_id, job.device_id, job.service) == (
        "reindex",
        "t",
        "d",
        "inventory",
    )
    assert job.deployment_id == ""