"""Management REST calls against the cluster."""

from __future__ import annotations

import base64
import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from dcpstream.config import DcpConfig
from dcpstream.version import Version, parse_version

__all__ = ["BucketInfo", "HttpClient"]

_log = logging.getLogger(__name__)


class _Pinger(Protocol):
    def ping(self) -> Any: ...


@dataclass(frozen=True)
class BucketInfo:
    """The parts of a bucket description the connector cares about."""

    bucket_type: str = ""
    storage_backend: str = ""

    def is_ephemeral(self) -> bool:
        return self.bucket_type == "ephemeral"

    def is_magma(self) -> bool:
        return self.storage_backend == "magma"


class HttpClient:
    """Reads server version and bucket details from the management endpoint.

    ``opener`` performs a :class:`urllib.request.Request` and returns a context
    manager with a ``read()`` method; it defaults to :func:`urllib.request.urlopen`.
    """

    def __init__(
        self,
        config: DcpConfig,
        client: _Pinger,
        opener: Callable[[urllib.request.Request], Any] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._opener = opener or urllib.request.urlopen
        self.base_url = ""

    def connect(self) -> None:
        """Find a healthy management endpoint by pinging the cluster."""
        try:
            result = self._client.ping()
        except Exception as error:
            _log.error("error while connecting as http to couchbase: %s", error)
            raise
        self.base_url = result.mgmt_endpoint

    def _get_json(self, path: str) -> dict[str, Any]:
        credentials = f"{self._config.username}:{self._config.password}".encode()
        request = urllib.request.Request(
            f"{self.base_url}{path}",
            method="GET",
            headers={"Authorization": "Basic " + base64.b64encode(credentials).decode("ascii")},
        )
        with self._opener(request) as response:
            body = response.read()
        document = json.loads(body)
        if not isinstance(document, dict):
            raise ValueError("expected a JSON object in the response")
        return document

    def get_version(self) -> Version:
        """The cluster's implementation version."""
        document = self._get_json("/pools")
        return parse_version(str(document.get("implementationVersion", "")))

    def get_bucket_info(self) -> BucketInfo:
        """Type and storage backend of the configured bucket."""
        document = self._get_json(f"/pools/default/buckets/{self._config.bucket_name}")
        return BucketInfo(
            bucket_type=str(document.get("bucketType", "")),
            storage_backend=str(document.get("storageBackend", "")),
        )