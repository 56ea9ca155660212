"""Connector configuration: the settings tree, its defaults and derived settings."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping

from dcpstream.units import parse_bool, parse_duration, parse_uint32, resolve_size

__all__ = [
    "ConfigError",
    "DcpMode",
    "GroupMembership",
    "Group",
    "Listener",
    "ExternalDcp",
    "ApiConfig",
    "MetricConfig",
    "RpcConfig",
    "LeaderElection",
    "CheckpointConfig",
    "HealthCheckConfig",
    "RollbackMitigationConfig",
    "MetadataConfig",
    "LoggingConfig",
    "CouchbaseMembership",
    "KubernetesLeaderElector",
    "CouchbaseMetadata",
    "DcpConfig",
]

DEFAULT_SCOPE_NAME = "_default"
DEFAULT_COLLECTION_NAME = "_default"
FILE_METADATA_FILE_NAME_CONFIG = "fileName"
METADATA_TYPE_COUCHBASE = "couchbase"
METADATA_TYPE_FILE = "file"
MEMBERSHIP_TYPE_COUCHBASE = "couchbase"
CHECKPOINT_TYPE_AUTO = "auto"

COUCHBASE_METADATA_HOSTS_CONFIG = "hosts"
COUCHBASE_METADATA_USERNAME_CONFIG = "username"
COUCHBASE_METADATA_PASSWORD_CONFIG = "password"
COUCHBASE_METADATA_BUCKET_CONFIG = "bucket"
COUCHBASE_METADATA_SCOPE_CONFIG = "scope"
COUCHBASE_METADATA_COLLECTION_CONFIG = "collection"
COUCHBASE_METADATA_MAX_QUEUE_SIZE_CONFIG = "maxQueueSize"
COUCHBASE_METADATA_CONNECTION_BUFFER_SIZE_CONFIG = "connectionBufferSize"
COUCHBASE_METADATA_CONNECTION_TIMEOUT_CONFIG = "connectionTimeout"
COUCHBASE_METADATA_SECURE_CONNECTION_CONFIG = "secureConnection"
COUCHBASE_METADATA_ROOT_CA_PATH_CONFIG = "rootCAPath"

COUCHBASE_MEMBERSHIP_EXPIRY_SECONDS_CONFIG = "expirySeconds"
COUCHBASE_MEMBERSHIP_HEARTBEAT_INTERVAL_CONFIG = "heartbeatInterval"
COUCHBASE_MEMBERSHIP_HEARTBEAT_TOLERANCE_CONFIG = "heartbeatToleranceDuration"
COUCHBASE_MEMBERSHIP_MONITOR_INTERVAL_CONFIG = "monitorInterval"
COUCHBASE_MEMBERSHIP_TIMEOUT_CONFIG = "timeout"

KUBERNETES_LEASE_LOCK_NAME_CONFIG = "leaseLockName"
KUBERNETES_LEASE_LOCK_NAMESPACE_CONFIG = "leaseLockNamespace"
KUBERNETES_LEASE_DURATION_CONFIG = "leaseDuration"
KUBERNETES_RENEW_DEADLINE_CONFIG = "renewDeadline"
KUBERNETES_RETRY_PERIOD_CONFIG = "retryPeriod"

TOTAL_MEMBERS_ENV = "DCPSTREAM__DCP_GROUP_MEMBERSHIP_TOTALMEMBERS"
MEMBER_NUMBER_ENV = "DCPSTREAM__DCP_GROUP_MEMBERSHIP_MEMBERNUMBER"

_ZERO = timedelta(0)
_SIGNED_INTEGER = re.compile(r"[+-]?\d+")


class ConfigError(ValueError):
    """Raised when configuration is missing or malformed."""


class DcpMode(str, Enum):
    INFINITE = "infinite"
    FINITE = "finite"


@dataclass
class GroupMembership:
    config: dict[str, str] = field(default_factory=dict)
    type: str = ""
    member_number: int = 0
    total_members: int = 0
    rebalance_delay: timedelta = _ZERO


@dataclass
class Group:
    name: str = ""
    membership: GroupMembership = field(default_factory=GroupMembership)


@dataclass
class Listener:
    skip_until: datetime | None = None


@dataclass
class ExternalDcp:
    buffer_size: int | str | None = None
    mode: str = ""
    connection_buffer_size: int | str | None = None
    listener: Listener = field(default_factory=Listener)
    group: Group = field(default_factory=Group)
    max_queue_size: int = 0
    connection_timeout: timedelta = _ZERO
    disable_change_streams: bool = False


@dataclass
class ApiConfig:
    disabled: bool = False
    port: int = 0


@dataclass
class MetricConfig:
    path: str = ""


@dataclass
class RpcConfig:
    port: int = 0


@dataclass
class LeaderElection:
    config: dict[str, str] = field(default_factory=dict)
    type: str = ""
    rpc: RpcConfig = field(default_factory=RpcConfig)
    enabled: bool = False


@dataclass
class CheckpointConfig:
    type: str = ""
    auto_reset: str = ""
    interval: timedelta = _ZERO
    timeout: timedelta = _ZERO


@dataclass
class HealthCheckConfig:
    disabled: bool = False
    interval: timedelta = _ZERO
    timeout: timedelta = _ZERO


@dataclass
class RollbackMitigationConfig:
    disabled: bool = False
    interval: timedelta = _ZERO
    config_watch_interval: timedelta = _ZERO


@dataclass
class MetadataConfig:
    config: dict[str, str] = field(default_factory=dict)
    type: str = ""
    read_only: bool = False


@dataclass
class LoggingConfig:
    level: str = ""


@dataclass
class CouchbaseMembership:
    expiry_seconds: int = 120
    heartbeat_interval: timedelta = timedelta(seconds=10)
    heartbeat_tolerance_duration: timedelta = timedelta(minutes=1)
    monitor_interval: timedelta = timedelta(seconds=30)
    timeout: timedelta = timedelta(seconds=30)


@dataclass
class KubernetesLeaderElector:
    lease_lock_name: str = ""
    lease_lock_namespace: str = ""
    lease_duration: timedelta = timedelta(seconds=8)
    renew_deadline: timedelta = timedelta(seconds=5)
    retry_period: timedelta = timedelta(seconds=1)


@dataclass
class CouchbaseMetadata:
    hosts: list[str] = field(default_factory=list)
    username: str = ""
    password: str = ""
    bucket: str = ""
    scope: str = DEFAULT_SCOPE_NAME
    collection: str = DEFAULT_COLLECTION_NAME
    root_ca_path: str = ""
    max_queue_size: int = 2048
    connection_buffer_size: int = 5 * 1024 * 1024
    connection_timeout: timedelta = timedelta(minutes=1)
    secure_connection: bool = False


def _config_duration(config: Mapping[str, str], key: str, default: timedelta) -> timedelta:
    text = config.get(key)
    if text is None:
        return default
    try:
        return parse_duration(text)
    except ValueError as error:
        raise ConfigError(f"invalid {key}: {error}") from error


def _config_size(config: Mapping[str, str], key: str, default: int) -> int:
    text = config.get(key)
    if text is None:
        return default
    try:
        return resolve_size(text)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"invalid {key}: {error}") from error


def _env_int(name: str, label: str) -> int | None:
    text = os.environ.get(name, "")
    if not text:
        return None
    if _SIGNED_INTEGER.fullmatch(text) is None:
        raise ConfigError(f"a non-integer environment variable was entered for {label!r}")
    return int(text)


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{key!r} must be a mapping")
    return value


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ConfigError(f"expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _SIGNED_INTEGER.fullmatch(value.strip()):
        return int(value)
    raise ConfigError(f"expected an integer, got {value!r}")


def _bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return parse_bool(value)
        except ValueError as error:
            raise ConfigError(str(error)) from error
    raise ConfigError(f"expected a boolean, got {value!r}")


def _duration(value: Any) -> timedelta:
    if value is None:
        return _ZERO
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigError(f"expected a duration, got {value!r}")
    if isinstance(value, int):
        return timedelta(microseconds=value / 1000)
    if isinstance(value, str):
        try:
            return parse_duration(value)
        except ValueError as error:
            raise ConfigError(str(error)) from error
    raise ConfigError(f"expected a duration, got {value!r}")


def _size(value: Any) -> int | str | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"expected a size, got {value!r}")
    return value


def _str_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"expected a mapping, got {value!r}")
    return {str(key): _str(item) for key, item in value.items()}


def _str_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"expected a list, got {value!r}")
    return [str(item) for item in value]


def _datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return datetime.fromisoformat(text)
        except ValueError as error:
            raise ConfigError(f"invalid time {value!r}") from error
    raise ConfigError(f"expected a time, got {value!r}")


@dataclass
class DcpConfig:
    """The whole connector configuration."""

    hosts: list[str] = field(default_factory=list)
    username: str = ""
    password: str = ""
    bucket_name: str = ""
    scope_name: str = ""
    collection_names: list[str] | None = None
    root_ca_path: str = ""
    secure_connection: bool = False
    connection_buffer_size: int | str | None = None
    connection_timeout: timedelta = _ZERO
    max_queue_size: int = 0
    debug: bool = False
    metric: MetricConfig = field(default_factory=MetricConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    checkpoint: CheckpointConfig = field(default_factory=CheckpointConfig)
    leader_election: LeaderElection = field(default_factory=LeaderElection)
    dcp: ExternalDcp = field(default_factory=ExternalDcp)
    health_check: HealthCheckConfig = field(default_factory=HealthCheckConfig)
    rollback_mitigation: RollbackMitigationConfig = field(default_factory=RollbackMitigationConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DcpConfig:
        """Build a configuration from a mapping keyed the way the YAML file is."""
        dcp = _section(data, "dcp")
        group = _section(dcp, "group")
        membership = _section(group, "membership")
        leader = _section(data, "leaderElection")
        checkpoint = _section(data, "checkpoint")
        health = _section(data, "healthCheck")
        rollback = _section(data, "rollbackMitigation")
        metadata = _section(data, "metadata")
        api = _section(data, "api")

        return cls(
            hosts=_str_list(data.get("hosts")) or [],
            username=_str(data.get("username")),
            password=_str(data.get("password")),
            bucket_name=_str(data.get("bucketName")),
            scope_name=_str(data.get("scopeName")),
            collection_names=_str_list(data.get("collectionNames")),
            root_ca_path=_str(data.get("rootCAPath")),
            secure_connection=_bool(data.get("secureConnection")),
            connection_buffer_size=_size(data.get("connectionBufferSize")),
            connection_timeout=_duration(data.get("connectionTimeout")),
            max_queue_size=_int(data.get("maxQueueSize")),
            debug=_bool(data.get("debug")),
            metric=MetricConfig(path=_str(_section(data, "metric").get("path"))),
            logging=LoggingConfig(level=_str(_section(data, "logging").get("level"))),
            metadata=MetadataConfig(
                config=_str_map(metadata.get("config")),
                type=_str(metadata.get("type")),
                read_only=_bool(metadata.get("readOnly")),
            ),
            checkpoint=CheckpointConfig(
                type=_str(checkpoint.get("type")),
                auto_reset=_str(checkpoint.get("autoReset")),
                interval=_duration(checkpoint.get("interval")),
                timeout=_duration(checkpoint.get("timeout")),
            ),
            leader_election=LeaderElection(
                config=_str_map(leader.get("config")),
                type=_str(leader.get("type")),
                rpc=RpcConfig(port=_int(_section(leader, "rpc").get("port"))),
                enabled=_bool(leader.get("enabled")),
            ),
            dcp=ExternalDcp(
                buffer_size=_size(dcp.get("bufferSize")),
                mode=_str(dcp.get("mode")),
                connection_buffer_size=_size(dcp.get("connectionBufferSize")),
                listener=Listener(skip_until=_datetime(_section(dcp, "listener").get("skipUntil"))),
                group=Group(
                    name=_str(group.get("name")),
                    membership=GroupMembership(
                        config=_str_map(membership.get("config")),
                        type=_str(membership.get("type")),
                        member_number=_int(membership.get("memberNumber")),
                        total_members=_int(membership.get("totalMembers")),
                        rebalance_delay=_duration(membership.get("rebalanceDelay")),
                    ),
                ),
                max_queue_size=_int(dcp.get("maxQueueSize")),
                connection_timeout=_duration(dcp.get("connectionTimeout")),
                disable_change_streams=_bool(_section(dcp, "config").get("disableChangeStreams")),
            ),
            health_check=HealthCheckConfig(
                disabled=_bool(health.get("disabled")),
                interval=_duration(health.get("interval")),
                timeout=_duration(health.get("timeout")),
            ),
            rollback_mitigation=RollbackMitigationConfig(
                disabled=_bool(rollback.get("disabled")),
                interval=_duration(rollback.get("interval")),
                config_watch_interval=_duration(rollback.get("configWatchInterval")),
            ),
            api=ApiConfig(disabled=_bool(api.get("disabled")), port=_int(api.get("port"))),
        )

    def is_couchbase_metadata(self) -> bool:
        return self.metadata.type == METADATA_TYPE_COUCHBASE

    def is_dcp_mode_finite(self) -> bool:
        return self.dcp.mode == DcpMode.FINITE

    def is_file_metadata(self) -> bool:
        return self.metadata.type == METADATA_TYPE_FILE

    def file_metadata(self) -> str:
        """The file name of file-based metadata."""
        if FILE_METADATA_FILE_NAME_CONFIG not in self.metadata.config:
            raise ConfigError("file metadata file name is not set")
        file_name = self.metadata.config[FILE_METADATA_FILE_NAME_CONFIG]
        if not file_name:
            raise ConfigError("file metadata file name is empty")
        return file_name

    def couchbase_membership(self) -> CouchbaseMembership:
        """Membership settings derived from the group membership config map."""
        config = self.dcp.group.membership.config
        result = CouchbaseMembership()

        expiry = config.get(COUCHBASE_MEMBERSHIP_EXPIRY_SECONDS_CONFIG)
        if expiry is not None:
            try:
                result.expiry_seconds = parse_uint32(expiry)
            except ValueError as error:
                raise ConfigError(f"invalid membership expiry seconds: {error}") from error

        result.heartbeat_interval = _config_duration(
            config, COUCHBASE_MEMBERSHIP_HEARTBEAT_INTERVAL_CONFIG, result.heartbeat_interval
        )
        result.heartbeat_tolerance_duration = _config_duration(
            config, COUCHBASE_MEMBERSHIP_HEARTBEAT_TOLERANCE_CONFIG, result.heartbeat_tolerance_duration
        )
        result.monitor_interval = _config_duration(
            config, COUCHBASE_MEMBERSHIP_MONITOR_INTERVAL_CONFIG, result.monitor_interval
        )
        result.timeout = _config_duration(config, COUCHBASE_MEMBERSHIP_TIMEOUT_CONFIG, result.timeout)
        return result

    def kubernetes_leader_elector(self) -> KubernetesLeaderElector:
        """Leader election settings; the lease lock name and namespace are required."""
        config = self.leader_election.config
        if KUBERNETES_LEASE_LOCK_NAME_CONFIG not in config:
            raise ConfigError("leaseLockName is not defined")
        if KUBERNETES_LEASE_LOCK_NAMESPACE_CONFIG not in config:
            raise ConfigError("leaseLockNamespace is not defined")

        result = KubernetesLeaderElector(
            lease_lock_name=config[KUBERNETES_LEASE_LOCK_NAME_CONFIG],
            lease_lock_namespace=config[KUBERNETES_LEASE_LOCK_NAMESPACE_CONFIG],
        )
        result.lease_duration = _config_duration(config, KUBERNETES_LEASE_DURATION_CONFIG, result.lease_duration)
        result.renew_deadline = _config_duration(config, KUBERNETES_RENEW_DEADLINE_CONFIG, result.renew_deadline)
        result.retry_period = _config_duration(config, KUBERNETES_RETRY_PERIOD_CONFIG, result.retry_period)
        return result

    def couchbase_metadata(self) -> CouchbaseMetadata:
        """Metadata bucket settings, falling back to the source connection's settings."""
        config = self.metadata.config
        result = CouchbaseMetadata(
            hosts=list(self.hosts),
            username=self.username,
            password=self.password,
            bucket=self.bucket_name,
            secure_connection=self.secure_connection,
            root_ca_path=self.root_ca_path,
        )

        if COUCHBASE_METADATA_HOSTS_CONFIG in config:
            result.hosts = config[COUCHBASE_METADATA_HOSTS_CONFIG].split(",")
        result.username = config.get(COUCHBASE_METADATA_USERNAME_CONFIG, result.username)
        result.password = config.get(COUCHBASE_METADATA_PASSWORD_CONFIG, result.password)
        result.bucket = config.get(COUCHBASE_METADATA_BUCKET_CONFIG, result.bucket)
        result.scope = config.get(COUCHBASE_METADATA_SCOPE_CONFIG, result.scope)
        result.collection = config.get(COUCHBASE_METADATA_COLLECTION_CONFIG, result.collection)
        result.max_queue_size = _config_size(config, COUCHBASE_METADATA_MAX_QUEUE_SIZE_CONFIG, result.max_queue_size)
        result.connection_buffer_size = _config_size(
            config, COUCHBASE_METADATA_CONNECTION_BUFFER_SIZE_CONFIG, result.connection_buffer_size
        )
        result.connection_timeout = _config_duration(
            config, COUCHBASE_METADATA_CONNECTION_TIMEOUT_CONFIG, result.connection_timeout
        )

        secure = config.get(COUCHBASE_METADATA_SECURE_CONNECTION_CONFIG)
        if secure is not None:
            try:
                result.secure_connection = parse_bool(secure)
            except ValueError as error:
                raise ConfigError(f"invalid metadata secure connection: {error}") from error

        result.root_ca_path = config.get(COUCHBASE_METADATA_ROOT_CA_PATH_CONFIG, result.root_ca_path)
        return result

    def apply_defaults(self) -> None:
        """Fill every unset setting with its default value."""
        self._apply_default_rollback_mitigation()
        self._apply_default_checkpoint()
        self._apply_default_health_check()
        self._apply_default_group_membership()
        self._apply_default_connection_timeout()
        if self.collection_names is None:
            self.collection_names = [DEFAULT_COLLECTION_NAME]
        if not self.scope_name:
            self.scope_name = DEFAULT_SCOPE_NAME
        if self.connection_buffer_size is None:
            self.connection_buffer_size = resolve_size("20mb")
        if self.max_queue_size == 0:
            self.max_queue_size = 2048
        if not self.metric.path:
            self.metric.path = "/metrics"
        if self.api.port == 0:
            self.api.port = 8080
        if not self.leader_election.type:
            self.leader_election.type = "kubernetes"
        if self.leader_election.rpc.port == 0:
            self.leader_election.rpc.port = 8081
        self._apply_default_dcp()
        if not self.metadata.type:
            self.metadata.type = METADATA_TYPE_COUCHBASE
        if not self.logging.level:
            self.logging.level = "info"

    def _apply_default_rollback_mitigation(self) -> None:
        if not self.rollback_mitigation.interval:
            self.rollback_mitigation.interval = timedelta(seconds=1)
        if not self.rollback_mitigation.config_watch_interval:
            self.rollback_mitigation.config_watch_interval = timedelta(seconds=10)

    def _apply_default_checkpoint(self) -> None:
        if not self.checkpoint.interval:
            self.checkpoint.interval = timedelta(minutes=1)
        if not self.checkpoint.timeout:
            self.checkpoint.timeout = timedelta(minutes=1)
        if not self.checkpoint.type:
            self.checkpoint.type = CHECKPOINT_TYPE_AUTO
        if not self.checkpoint.auto_reset:
            self.checkpoint.auto_reset = "earliest"

    def _apply_default_health_check(self) -> None:
        if not self.health_check.interval:
            self.health_check.interval = timedelta(minutes=1)
        if not self.health_check.timeout:
            self.health_check.timeout = timedelta(minutes=1)

    def _apply_default_group_membership(self) -> None:
        membership = self.dcp.group.membership
        if not membership.rebalance_delay:
            membership.rebalance_delay = timedelta(seconds=30)
        if membership.total_members == 0:
            membership.total_members = 1
        if membership.member_number == 0:
            membership.member_number = 1
        if not membership.type:
            membership.type = MEMBERSHIP_TYPE_COUCHBASE

        total = _env_int(TOTAL_MEMBERS_ENV, "totalMembers")
        if total is not None:
            membership.total_members = total
        number = _env_int(MEMBER_NUMBER_ENV, "memberNumber")
        if number is not None:
            membership.member_number = number

    def _apply_default_connection_timeout(self) -> None:
        if not self.dcp.connection_timeout:
            self.dcp.connection_timeout = timedelta(minutes=1)
        if not self.connection_timeout:
            self.connection_timeout = timedelta(minutes=1)

    def _apply_default_dcp(self) -> None:
        if self.dcp.buffer_size is None:
            self.dcp.buffer_size = resolve_size("16mb")
        if self.dcp.connection_buffer_size is None:
            self.dcp.connection_buffer_size = resolve_size("20mb")
        if self.dcp.max_queue_size == 0:
            self.dcp.max_queue_size = 2048