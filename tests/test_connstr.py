import pytest

from dcpstream.connstr import ConnectionStringError, resolve_hosts_as_http


def test_single_host_with_port():
    assert resolve_hosts_as_http(["localhost:8091"]) == ["localhost:8091"]


def test_single_host_without_port():
    assert resolve_hosts_as_http(["localhost"]) == ["localhost:8091"]


def test_multi_host_with_port():
    hosts = ["localhost:8091", "localhost_2:8091", "localhost_3:8091"]
    assert resolve_hosts_as_http(hosts) == ["localhost:8091", "localhost_2:8091", "localhost_3:8091"]


def test_multi_host_without_port():
    hosts = ["localhost", "localhost_2", "localhost_3"]
    assert resolve_hosts_as_http(hosts) == ["localhost:8091", "localhost_2:8091", "localhost_3:8091"]


def test_comma_separated_hosts_in_one_string():
    assert resolve_hosts_as_http(["node1,node2"]) == ["node1:8091", "node2:8091"]


def test_couchbase_scheme_uses_default_http_port():
    assert resolve_hosts_as_http(["couchbase://node1"]) == ["node1:8091"]


def test_secure_scheme_uses_ssl_http_port():
    assert resolve_hosts_as_http(["couchbases://node1"]) == ["node1:18091"]


def test_http_scheme_keeps_explicit_port():
    assert resolve_hosts_as_http(["http://node1:9000"]) == ["node1:9000"]


def test_couchbase_scheme_with_data_port_gives_no_http_host():
    assert resolve_hosts_as_http(["couchbase://node1:11210"]) == []


def test_empty_list_resolves_to_nothing():
    assert resolve_hosts_as_http([]) == []


def test_port_without_scheme_other_than_http_port_is_ambiguous():
    with pytest.raises(ConnectionStringError, match="ambiguous port"):
        resolve_hosts_as_http(["localhost:11210"])


def test_couchbase_scheme_with_http_port_is_rejected():
    with pytest.raises(ConnectionStringError):
        resolve_hosts_as_http(["couchbase://localhost:8091"])


def test_unknown_scheme_is_rejected():
    with pytest.raises(ConnectionStringError, match="bad scheme"):
        resolve_hosts_as_http(["ftp://localhost"])