import json
from datetime import datetime, timezone

import pytest
import requests
import responses

from reporting.inventory import (
    ClientError,
    Device,
    DeviceAttribute,
    InventoryClient,
    parse_device_attributes,
)

BASE = "http://inventory:8080"
TENANT = "123456789012345678901234"
SEARCH_URL = f"{BASE}/api/internal/v2/inventory/tenants/{TENANT}/filters/search"
DEV1 = "00000000-0000-0000-0000-000000000001"
DEV2 = "00000000-0000-0000-0000-000000000002"


def test_get_devices_no_devices():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, SEARCH_URL, json=[], status=200)
        client = InventoryClient(BASE)
        assert client.get_devices(TENANT, [DEV1]) == []


def test_get_devices_ok():
    updated1 = datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    updated2 = datetime(2023, 1, 2, 2, 4, 5, tzinfo=timezone.utc)
    expected = [
        Device(
            id=DEV1,
            attributes=[DeviceAttribute(name="foo", value="bar", scope="baz")],
            updated_ts=updated1,
        ),
        Device(
            id=DEV2,
            attributes=[DeviceAttribute(name="lorem", value="ipsum", scope="questionmark")],
            updated_ts=updated2,
        ),
    ]
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            SEARCH_URL,
            body=json.dumps([d.to_dict() for d in expected]),
            status=200,
            content_type="application/json",
        )
        client = InventoryClient(BASE)
        devices = client.get_devices(TENANT, [DEV1, DEV2])
        assert devices == expected

        sent = rsps.calls[0].request
        assert json.loads(sent.body) == {
            "device_ids": [DEV1, DEV2],
            "page": 1,
            "per_page": 2,
        }
        assert sent.headers["Content-Type"] == "application/json"


def test_get_devices_bad_url():
    client = InventoryClient(BASE + "#%%%")
    with pytest.raises(ClientError, match="failed to create request"):
        client.get_devices(TENANT, [DEV1])


def test_get_devices_invalid_response_schema():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, SEARCH_URL, body=b"bad response", status=200)
        client = InventoryClient(BASE)
        with pytest.raises(ClientError, match="failed to parse request body"):
            client.get_devices(TENANT, [DEV1])


def test_get_devices_unexpected_status():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            SEARCH_URL,
            json={"error": "something went wrong..."},
            status=500,
        )
        client = InventoryClient(BASE)
        with pytest.raises(ClientError) as info:
            client.get_devices(TENANT, [DEV1])
        assert info.match(r"^POST [A-Za-z:0-9/\.]+ request failed with status 500")


def test_get_devices_connection_error():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, SEARCH_URL, body=requests.ConnectionError("refused"))
        client = InventoryClient(BASE)
        with pytest.raises(ClientError, match="^failed to submit POST"):
            client.get_devices(TENANT, [DEV1])


def test_parse_device_attributes_defaults_scope():
    attrs = parse_device_attributes(
        [{"name": "a", "value": 1}, {"name": "b", "value": "x", "scope": "identity"}]
    )
    assert attrs == [
        DeviceAttribute(name="a", value=1, scope="inventory"),
        DeviceAttribute(name="b", value="x", scope="identity"),
    ]


def test_device_from_dict_parses_timestamps_and_scope():
    device = Device.from_dict(
        {
            "id": DEV1,
            "attributes": [{"name": "n", "value": "v", "description": "d"}],
            "created_ts": "2021-05-06T07:08:09.123456789Z",
        }
    )
    assert device.id == DEV1
    assert device.attributes == [
        DeviceAttribute(name="n", value="v", scope="inventory", description="d")
    ]
    assert device.created_ts == datetime(2021, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
    assert device.updated_ts is None


def test_device_round_trip():
    device = Device(
        id=DEV1,
        attributes=[DeviceAttribute(name="n", value=[1, 2], scope="inventory")],
        created_ts=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )
    doc = device.to_dict()
    assert doc["created_ts"] == "2020-01-01T00:00:00Z"
    assert "updated_ts" not in doc
    assert Device.from_dict(doc) == device