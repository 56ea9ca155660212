from datetime import timedelta

import pytest

from dcpstream.cluster import (
    AgentQueue,
    FailoverEntry,
    PingResult,
    PingState,
    ServiceResult,
    ServiceType,
    UnhealthyServicesError,
    connection_settings,
    evaluate_ping,
    merge_seq_nos,
    rollback_vb_uuid,
    same_hosts,
    service_endpoint,
)
from dcpstream.config import DcpConfig, MetadataConfig
from dcpstream.units import resolve_size


def _healthy_services():
    return {
        ServiceType.MEMD: [
            ServiceResult("bad:11210", PingState.ERROR, error=RuntimeError("down")),
            ServiceResult("good:11210", PingState.OK),
        ],
        ServiceType.MGMT: [ServiceResult("http://good:8091", PingState.OK)],
    }


def test_service_endpoint_skips_unhealthy_results():
    services = _healthy_services()
    assert service_endpoint(services, ServiceType.MEMD) == "good:11210"


def test_service_endpoint_skips_timeout_state():
    services = {ServiceType.MGMT: [ServiceResult("x:8091", PingState.TIMEOUT)]}
    assert service_endpoint(services, ServiceType.MGMT) == ""


def test_service_endpoint_missing_service_is_empty():
    assert service_endpoint({}, ServiceType.MEMD) == ""


def test_evaluate_ping_returns_endpoints():
    result = evaluate_ping(_healthy_services())
    assert result == PingResult(memd_endpoint="good:11210", mgmt_endpoint="http://good:8091")


def test_evaluate_ping_raises_when_service_unhealthy():
    services = _healthy_services()
    services[ServiceType.MGMT] = [ServiceResult("x:8091", PingState.ERROR, error=RuntimeError("no"))]
    with pytest.raises(UnhealthyServicesError, match="some services are not healthy"):
        evaluate_ping(services)


def test_same_hosts_ignores_order():
    assert same_hosts(["b", "a"], ["a", "b"]) is True
    assert same_hosts(["a"], ["a", "b"]) is False


def _config(metadata_config, bucket="bucket"):
    return DcpConfig(
        hosts=["h1", "h2"],
        bucket_name=bucket,
        connection_buffer_size="20mb",
        connection_timeout=timedelta(minutes=1),
        metadata=MetadataConfig(type="couchbase", config=metadata_config),
    )


def test_connection_settings_takes_larger_metadata_values_on_shared_bucket():
    config = _config({"connectionBufferSize": "50mb", "connectionTimeout": "2m", "hosts": "h2,h1"})
    assert connection_settings(config) == (resolve_size("50mb"), timedelta(minutes=2))


def test_connection_settings_keeps_larger_source_values():
    config = _config({"connectionBufferSize": "1mb", "connectionTimeout": "10s"})
    assert connection_settings(config) == (resolve_size("20mb"), timedelta(minutes=1))


def test_connection_settings_ignores_other_metadata_bucket():
    config = _config({"bucket": "meta", "connectionBufferSize": "50mb", "connectionTimeout": "2m"})
    assert connection_settings(config) == (resolve_size("20mb"), timedelta(minutes=1))


def test_connection_settings_ignores_file_metadata():
    config = _config({"connectionBufferSize": "50mb"})
    config.metadata.type = "file"
    assert connection_settings(config) == (resolve_size("20mb"), timedelta(minutes=1))


def test_rollback_vb_uuid_picks_earliest_entry_at_or_below_rollback():
    log = [FailoverEntry(vb_uuid=30, seq_no=200), FailoverEntry(vb_uuid=20, seq_no=100), FailoverEntry(10, 0)]
    assert rollback_vb_uuid(log, 150) == 20
    assert rollback_vb_uuid(log, 250) == 30


def test_rollback_vb_uuid_defaults_to_zero():
    assert rollback_vb_uuid([FailoverEntry(5, 100)], 50) == 0
    assert rollback_vb_uuid([], 50) == 0


def test_merge_seq_nos_keeps_maximum():
    seq_nos = {1: 10}
    result = merge_seq_nos(seq_nos, [(1, 5), (1, 12), (2, 3), (2, 1)])
    assert result is seq_nos
    assert seq_nos == {1: 12, 2: 3}


def test_agent_queue_fields():
    queue = AgentQueue(address="h1:11210", is_dcp=True, current=3, max=2048)
    assert (queue.address, queue.is_dcp, queue.current, queue.max) == ("h1:11210", True, 3, 2048)