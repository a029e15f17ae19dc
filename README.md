# reporting

This library holds the building blocks for a device and deployment reporting
service. It turns search and aggregation requests into search-engine query
documents. It models the device and deployment documents that get indexed.
It also talks to the inventory, device-authentication and deployments
services over HTTP.

## Installation

```
pip install .
```

To run the test suite, install the test extra and run pytest:

```
pip install ".[test]"
pytest
```

## What is inside

- `reporting.attributes` covers attribute naming: `to_attr` builds a flat field
  name such as `identity_mac_str` from a scope, a name and an `AttrType`.
  `dedot` and `redot` swap `.` in names for a full-width dot and back. The
  module also holds the small records `FilterAttribute`, `Job` and `Mapping`.
- `reporting.filters` holds search parameters for devices (`SearchParams`,
  `FilterPredicate`, `SortCriteria`, `SelectAttribute`) and for deployments
  (`DeploymentsSearchParams`, `DeploymentsFilterPredicate`,
  `DeploymentsSortCriteria`, `DeploymentsSelectAttribute`). Their
  `validate()` methods raise `ValidationError`. A predicate's `value_type()`
  reports the value's `AttrType` and whether it is an array.
- `reporting.aggregations` holds aggregation requests (`AggregateParams`,
  `AggregationTerm`, `AggregateDeploymentsParams`,
  `DeploymentsAggregationTerm`), with a limit of five levels of nesting and
  100 terms. `build_aggregations` and `build_deployments_aggregations` turn
  them into `terms` aggregation dictionaries. The default size is 10.
  `DeviceAggregation` and `DeviceAggregationItem` hold the results.
- `reporting.device` holds the indexed `Device` document. Its typed
  `InventoryAttribute` values are grouped by scope. `to_dict()` and
  `to_json()` flatten the document. `maybe_parse_attr` splits a flat field
  name back into its scope and name.
- `reporting.query` holds the `Query` builder and its parts: `FilterEq`,
  `FilterNe`, `FilterRange`, `FilterIn`, `FilterNin`, `FilterExists`,
  `FilterRegex`, `Sort`, `Select`, `DeviceIdsFilter`, `DeploymentsSort` and
  `DeploymentsSelect`. `get_filter_part` picks the part that matches a
  predicate's selector. `build_query` and `build_deployments_query` turn
  search parameters into a query. A predicate that a filter cannot take
  raises `FilterError`.
- `reporting.inventory`, `reporting.deviceauth` and `reporting.deployments`
  hold the HTTP clients `InventoryClient`, `DeviceAuthClient` and
  `DeploymentsClient`, along with the records they return.
- `reporting.deployment` holds the flattened deployment `Deployment` document
  that gets indexed, with `to_dict()` and `from_dict()`.

## Example

```python
from reporting.filters import SearchParams, FilterPredicate
from reporting.query import build_query

params = SearchParams(
    page=1,
    per_page=20,
    filters=[FilterPredicate(scope="identity", attribute="mac",
                             type="$eq", value="00:00:00:00:00:01")],
)
params.validate()
print(build_query(params).to_json())
```

This prints a `bool` query with one `match` condition on the field
`identity_mac_str`. The query starts at offset 0 and returns 20 results.

Each client takes the base URL of the service it calls:

```python
from reporting.inventory import InventoryClient

client = InventoryClient("http://localhost:8080")
devices = client.get_devices("tenant", ["device-1", "device-2"])
```

Each client module defines its own `ClientError`, and a failed request raises
it. `DeploymentsClient` methods return `None` when the service answers 404 or
returns an empty list.

## What it does not do

This package is a library only. It has:

- no command to run;
- no HTTP API server;
- no indexer process that consumes jobs from a message queue;
- no connection to a search engine or a database.

It does not map a tenant's inventory attribute names onto a fixed set of
indexed fields. It builds query and document dictionaries, and the caller
sends them to wherever they are stored.