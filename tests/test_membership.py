import json
from datetime import timedelta

import pytest

from dcpstream.membership import (
    Instance,
    MembershipError,
    MembershipInfo,
    index_id,
    instance_id,
    is_alive,
    is_cluster_changed,
    member_info,
    order_by_join_time,
)


def test_instance_and_index_ids():
    assert instance_id("group1", "abc") == "_connector:cbgo:group1:instance:abc"
    assert index_id("group1") == "_connector:cbgo:group1:instance:all"


def test_instance_json_round_trip():
    original = Instance(id="member-1", heartbeat_time=20, cluster_join_time=10)
    restored = Instance.from_json("member-1", original.to_json())
    assert restored == original


def test_instance_json_without_id_uses_key():
    stored = Instance(heartbeat_time=5, cluster_join_time=3)
    document = json.loads(stored.to_json())
    assert "id" not in document
    assert document["type"] == "instance"
    restored = Instance.from_json("key-1", stored.to_json())
    assert restored.id == "key-1"
    assert restored.heartbeat_time == 5


def test_instance_from_malformed_json():
    with pytest.raises(MembershipError):
        Instance.from_json("x", "not json")
    with pytest.raises(MembershipError):
        Instance.from_json("x", "[1, 2]")


def test_order_by_join_time():
    assert order_by_join_time({"a": 3, "b": 1, "c": 2}) == ["b", "c", "a"]


def test_is_alive():
    interval = timedelta(seconds=10)
    tolerance = timedelta(minutes=1)
    limit = 70 * 1_000_000_000
    assert is_alive(0, interval, tolerance, now=limit - 1) is True
    assert is_alive(0, interval, tolerance, now=limit) is False


def test_is_cluster_changed():
    a = Instance(id="a")
    b = Instance(id="b")
    assert is_cluster_changed([a, b], [a, b]) is False
    assert is_cluster_changed([a, b], [b, a]) is True
    assert is_cluster_changed([a], [a, b]) is True
    assert is_cluster_changed([], []) is False


def test_member_info():
    instances = [Instance(id="a"), Instance(id="b"), Instance(id="c")]
    info = member_info(instances, "b")
    assert info == MembershipInfo(member_number=2, total_members=3)


def test_member_info_missing_self():
    with pytest.raises(MembershipError):
        member_info([Instance(id="a")], "z")


def test_membership_info_is_changed():
    info = MembershipInfo(1, 2)
    assert info.is_changed(None) is True
    assert info.is_changed(MembershipInfo(1, 2)) is False
    assert info.is_changed(MembershipInfo(2, 2)) is True
    assert info.is_changed(MembershipInfo(1, 3)) is True