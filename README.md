# dcpstream

`dcpstream` holds the parts of a Couchbase DCP (Database Change Protocol)
consumer that need no live cluster. It covers:

- consumer configuration and its defaults
- parsing of durations, sizes and flags
- server versions
- connection strings
- management REST calls
- periodic health checks
- checkpoint document keys
- group membership decisions
- the bookkeeping behind rollback mitigation

The package uses only the standard library.

## Configuration

`dcpstream.config.DcpConfig` is the top-level configuration. Build it from a
plain mapping keyed the way a YAML file is, then fill in the defaults:

```python
from dcpstream.config import DcpConfig

config = DcpConfig.from_dict({
    "hosts": ["localhost:8091"],
    "bucketName": "dcp-test",
    "dcp": {"group": {"name": "groupName"}},
})
config.apply_defaults()
```

`apply_defaults()` sets every value that is still unset:

| Setting | Default |
| --- | --- |
| scope | `_default` |
| collection list | `["_default"]` |
| checkpoint | type `auto`, auto reset `earliest`, interval and timeout of one minute |
| health check | interval and timeout of one minute |
| rollback mitigation | interval of one second, config watch interval of ten seconds |
| group membership | type `couchbase`, member 1 of 1, rebalance delay of 30 seconds |
| connection timeouts | one minute |
| queue sizes | 2048 |
| connection buffers | 20 MB |
| DCP buffer | 16 MB |
| metadata type | `couchbase` |
| API port | 8080 |
| leader election | type `kubernetes`, RPC port 8081 |
| metric path | `/metrics` |
| logging level | `info` |

Two environment variables override the group membership numbers:

- `DCPSTREAM__DCP_GROUP_MEMBERSHIP_TOTALMEMBERS`
- `DCPSTREAM__DCP_GROUP_MEMBERSHIP_MEMBERNUMBER`

A non-integer value in either raises `ConfigError`.

The derived views read their overrides from the free-form `config` maps:

- `couchbase_metadata()` returns a `CouchbaseMetadata`. Unless overridden, it takes the source connection's hosts, credentials and bucket. Its queue size is 2048, its buffer 5 MB and its timeout one minute.
- `couchbase_membership()` returns a `CouchbaseMembership`. Its defaults are:
  - expiry of 120 seconds
  - heartbeat interval of 10 seconds
  - heartbeat tolerance of one minute
  - monitor interval and timeout of 30 seconds
- `kubernetes_leader_elector()` returns a `KubernetesLeaderElector`. It requires `leaseLockName` and `leaseLockNamespace`.
- `file_metadata()` returns the `fileName` entry.

A missing or unparsable value raises `ConfigError`.

Three checks report the configured modes:

- `is_couchbase_metadata()`
- `is_file_metadata()`
- `is_dcp_mode_finite()`

## Units

`dcpstream.units` parses the value formats the configuration accepts:

- `parse_duration("1m30s")` returns a `timedelta`. The units are `ns`, `us`, `ms`, `s`, `m` and `h`, and a sign is allowed. A bare `"0"` is the only number allowed without a unit.
- `resolve_size` reads a byte size. It takes an integer as it is, or a string with `b`, `kb`, `mb` or `gb`, so `resolve_size("20mb") == 20971520`.
- `parse_bool` accepts `1`, `t` and `true` and their negatives, in the usual casings.
- `parse_uint32` reads a base-10 unsigned integer that fits in 32 bits.

Invalid input raises `ValueError`.

## Server versions

```python
from dcpstream.version import parse_version, SRV_VER_650

current = parse_version("7.2.0-1234-enterprise")
assert current.higher(SRV_VER_650)
assert parse_version("6.0").lower(current)
```

Versions are ordered dataclasses of major, minor, patch and build. A build
part that is not a number is ignored.

## Waiting on callbacks

`dcpstream.async_op.AsyncOp(timeout)` bridges a completion callback to a
blocking wait:

- The callback calls `resolve()`.
- The caller blocks in `wait(op)`.
- When the deadline passes, `wait(op)` calls `op.cancel()` and raises `TimeoutError`.

## Connection strings

`dcpstream.connstr.resolve_hosts_as_http(hosts)` turns connection strings into
management addresses:

- A host without a port gets 8091, or 18091 for `couchbases://`. So `["localhost"]` becomes `["localhost:8091"]`.
- A bare host with a port other than 8091 is ambiguous and raises `ConnectionStringError`.
- An unknown scheme also raises `ConnectionStringError`.

## Management REST calls

`dcpstream.http_client.HttpClient(config, client, opener=None)` works against
the management endpoint:

- `connect()` finds the endpoint by calling `client.ping()` and using its `mgmt_endpoint`.
- `get_version()` reads `/pools`.
- `get_bucket_info()` reads the configured bucket. It returns a `BucketInfo` with `is_ephemeral()` and `is_magma()`.

Requests use HTTP basic authentication from the configured credentials. They
go through `opener`, which defaults to `urllib.request.urlopen`.

## Health checks

`dcpstream.healthcheck.HealthCheck(config, client, on_failure=None)` calls
`client.ping()` every `config.interval` in a background thread:

- A failed ping is retried up to five times, one second apart.
- If every attempt fails, a `HealthCheckError` goes to `on_failure` and checking stops. Without a callback, the error is raised in the thread.
- `start()` and `stop()` control the thread.
- `perform_check()` runs a single check.

## Cluster helpers

`dcpstream.cluster` holds the decisions made around a cluster connection:

- `evaluate_ping` picks healthy data and management endpoints from `ServiceResult`s. If either is missing it raises `UnhealthyServicesError`.
- `service_endpoint` returns the first healthy endpoint of one service.
- `same_hosts` compares host lists regardless of order.
- `connection_settings(config)` returns the buffer size and timeout for the source connection. When the metadata shares the bucket and hosts, it takes the larger of the two configured values.
- `rollback_vb_uuid` picks the vBucket UUID to resume from after a rollback. It takes a failover log of `FailoverEntry` items.
- `merge_seq_nos` keeps the highest sequence number reported per vBucket.

## Checkpoints

`dcpstream.checkpoint.checkpoint_id(vb_id, group_name)` builds the key under
which a vBucket's checkpoint is stored:

```python
from dcpstream.checkpoint import checkpoint_id

assert checkpoint_id(1, "group1") == "_connector:cbgo:group1:checkpoint:1"
```

A group name that contains a dot raises `InvalidGroupNameError`.

## Membership

`dcpstream.membership` provides the logic of heartbeat-based group membership:

- `instance_id(group_name, unique)` and `index_id(group_name)` build the document keys.
- `Instance` is a heartbeat document, with `to_json()` and `Instance.from_json(instance_id, text)`.
- `order_by_join_time` orders an index of instance ids by join time.
- `is_alive(heartbeat_time, heartbeat_interval, tolerance, now)` checks a heartbeat against the interval plus tolerance. Times are in nanoseconds.
- `is_cluster_changed` compares two ordered lists of live instances.
- `member_info(instances, self_id)` returns this instance's `MembershipInfo`: its 1-based member number and the total number of members. If the instance is absent, it raises `MembershipError`.

## Rollback mitigation

`dcpstream.rollback` tracks what each replica reports as persisted:

- `ReplicaState` holds one replica's vBucket UUID and persisted sequence number. It can be marked absent.
- `ConfigRevision.is_newer_than` compares cluster configuration revisions by epoch, then by id.
- `min_seq_no(replicas)` returns the sequence number persisted on every present replica. It returns 0 when all replicas are absent or when they disagree on the vBucket UUID.

## What the package does not do

`dcpstream` opens no connection to a cluster. It has no DCP stream
client and no object that receives stream events and delivers them to a
listener. It does not read or write checkpoint or membership documents. It
provides the configuration, keys and decisions such a consumer needs, but not
the consumer itself, a command line or an HTTP API.