"""HTTP access to Elasticsearch and Kibana.

Two transports share one interface:

- ``HttpStackClient`` talks to the published port from the host with
  ``requests``, verifying TLS against a CA certificate on the host.
- ``ContainerStackClient`` runs ``curl`` inside the service container against
  ``https://localhost``, verifying TLS against the CA mounted in the container.
  This works before any certificate has been exported to the host.
"""
import json
import logging
from pathlib import Path
from typing import Any, Optional, Tuple

import requests

from ..errors import CommandError, ProbeError
from .models import Credentials, NodeInfo

logger = logging.getLogger("elasticctl.client")

# Ports the services listen on inside their containers
INTERNAL_PORTS = {"elasticsearch": 9200, "kibana": 5601}


class StackClient:
    """Base class: subclasses implement ``request``."""

    base_url: str = ""

    def request(self, path: str, auth: bool = True) -> Tuple[int, str]:
        """GET ``path`` and return ``(status_code, body)``.

        Raises:
            ProbeError: If no HTTP response could be obtained (connection
                refused, TLS failure, container not running)
        """
        raise NotImplementedError

    def probe(self, path: str = "/", auth: bool = False) -> int:
        """Return the HTTP status of ``path``; any status means TLS and TCP are up."""
        status, _ = self.request(path, auth=auth)
        return status

    def get_json(self, path: str, auth: bool = True) -> Any:
        status, body = self.request(path, auth=auth)
        if status != 200:
            raise ProbeError(f"GET {path} returned HTTP {status}")
        try:
            return json.loads(body)
        except ValueError as e:
            raise ProbeError(f"GET {path} returned invalid JSON") from e

    def is_ready(self, path: str = "/") -> bool:
        """True when an authenticated GET succeeds."""
        status, _ = self.request(path, auth=True)
        return status == 200

    def cluster_health(self) -> dict:
        return self.get_json("/_cluster/health")

    def cat_nodes(self) -> list:
        rows = self.get_json("/_cat/nodes?format=json&h=name,ip,node.role,master,heap.percent,cpu")
        return [
            NodeInfo(
                name=row.get("name", ""),
                ip=row.get("ip"),
                roles=row.get("node.role"),
                master=row.get("master") == "*",
                heap_percent=_to_int(row.get("heap.percent")),
                cpu=_to_int(row.get("cpu")),
            )
            for row in rows
        ]


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class HttpStackClient(StackClient):
    """Host-side client using requests."""

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        ca_cert: Optional[Path] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        # Never disable verification; fall back to the system trust store
        self.verify = str(ca_cert) if ca_cert else True
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(self, path: str, auth: bool = True) -> Tuple[int, str]:
        url = f"{self.base_url}{path}"
        logger.debug("GET %s", url)
        kwargs = {"verify": self.verify, "timeout": self.timeout}
        if auth and self.credentials.password:
            kwargs["auth"] = (self.credentials.username, self.credentials.password)
        try:
            response = self.session.get(url, **kwargs)
        except requests.RequestException as e:
            raise ProbeError(f"GET {url} failed: {e}") from e
        return response.status_code, response.text


def make_client(runtime, settings, config, service: str, container: str) -> StackClient:
    """Build the client for ``service`` ('elasticsearch' or 'kibana').

    With ``ES_CA_CERT`` configured the published port is called from the
    host; otherwise curl runs inside ``container`` on the service's own port.
    """
    if settings.ca_cert and config.node_ip:
        port = config.ports.kibana if service == "kibana" else config.ports.es
        return HttpStackClient(
            f"https://{config.node_ip}:{port}",
            config.credentials,
            ca_cert=settings.ca_cert,
            timeout=settings.http_timeout,
        )
    return ContainerStackClient(
        runtime,
        container,
        INTERNAL_PORTS[service],
        config.credentials,
        ca_cert=settings.container_ca_cert,
        timeout=settings.http_timeout,
    )


class ContainerStackClient(StackClient):
    """In-container client using curl through ``docker exec``."""

    def __init__(
        self,
        runtime,
        container: str,
        port: int,
        credentials: Credentials,
        ca_cert: str = "config/certs/ca/ca.crt",
        timeout: float = 10.0,
    ):
        self.runtime = runtime
        self.container = container
        self.base_url = f"https://localhost:{port}"
        self.credentials = credentials
        self.ca_cert = ca_cert
        self.timeout = timeout

    def request(self, path: str, auth: bool = True) -> Tuple[int, str]:
        cmd = [
            "curl", "-s",
            "--max-time", str(int(self.timeout)),
            "--cacert", self.ca_cert,
            "-w", "\n%{http_code}",
        ]
        if auth and self.credentials.password:
            cmd += ["-u", f"{self.credentials.username}:{self.credentials.password}"]
        cmd.append(f"{self.base_url}{path}")
        logger.debug("%s: GET %s%s", self.container, self.base_url, path)

        try:
            output = self.runtime.exec_in(self.container, cmd, timeout=self.timeout + 5)
        except CommandError as e:
            raise ProbeError(f"{self.container}: GET {path} failed (exit {e.returncode})") from e

        body, _, code = output.rpartition("\n")
        try:
            status = int(code.strip())
        except ValueError as e:
            raise ProbeError(f"{self.container}: unexpected curl output") from e
        if status == 0:
            raise ProbeError(f"{self.container}: no response from {path}")
        return status, body
