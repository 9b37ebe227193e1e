"""Cluster and container status reporting."""
import json
import logging
import re
from functools import partial
from typing import Callable, List, Optional

import yaml

from .client import StackClient, make_client
from .health import TRANSIENT_ERRORS
from .models import ClusterHealth, ClusterStatusSnapshot, DeploymentConfig, NodeRole

logger = logging.getLogger("elasticctl.status")

UNAVAILABLE = "cluster query unavailable"


class ClusterStatusReporter:
    """Builds a fresh ClusterStatusSnapshot on every call."""

    def __init__(
        self,
        runtime,
        settings,
        config: DeploymentConfig,
        client_factory: Optional[Callable[[DeploymentConfig, str, str], StackClient]] = None,
    ):
        self.runtime = runtime
        self.settings = settings
        self.config = config
        self.client_factory = client_factory or partial(make_client, runtime, settings)

    def expected_containers(self) -> List[str]:
        s = self.settings
        names = [s.master_container, s.kibana_container, s.fleet_container]
        if self.config.node_role == NodeRole.DATA and self.config.node_name not in names:
            names.append(self.config.node_name)
        return names

    def _es_containers(self, states) -> List[str]:
        """Elasticsearch containers known locally: the master first, then extra nodes."""
        prefix = re.escape(self.settings.node_container_prefix())
        pattern = re.compile(rf"^{prefix}\d+$")
        names = [self.settings.master_container]
        if self.config.node_role == NodeRole.DATA:
            names.append(self.config.node_name)
        names += sorted(n for n in states if pattern.match(n) and n not in names)
        return names

    def status(self) -> ClusterStatusSnapshot:
        """Query container state, then the cluster when a node answers.

        Container state is always reported. A failure of the cluster query
        leaves the snapshot degraded rather than failing the call.
        """
        all_states = self.runtime.container_states()
        es_names = self._es_containers(all_states)

        snapshot = ClusterStatusSnapshot()
        for name in self.expected_containers():
            snapshot.container_states[name] = all_states.get(name, "absent")
        for name in es_names:
            if name in all_states:
                snapshot.container_states[name] = all_states[name]

        running = [n for n in es_names if all_states.get(n) == "running"]
        if not running:
            logger.debug("No Elasticsearch container running, skipping cluster query")
            return snapshot

        client = self.client_factory(self.config, "elasticsearch", running[0])
        try:
            # TLS-verified, unauthenticated reachability check first
            client.probe("/", auth=False)
            if not self.config.credentials.password:
                return self._degrade(snapshot, "ELASTIC_PASSWORD is not configured")
            health = client.cluster_health()
            nodes = client.cat_nodes()
        except TRANSIENT_ERRORS as e:
            return self._degrade(snapshot, str(e))

        snapshot.cluster_health = ClusterHealth(
            name=health.get("cluster_name", ""),
            status=health.get("status", "unknown"),
            node_count=int(health.get("number_of_nodes", 0)),
            active_primary_shards=health.get("active_primary_shards"),
        )
        snapshot.nodes = nodes
        snapshot.cluster_query = "ok"
        return snapshot

    def _degrade(self, snapshot: ClusterStatusSnapshot, reason: str) -> ClusterStatusSnapshot:
        logger.warning("⚠️  %s: %s", UNAVAILABLE, reason)
        snapshot.cluster_query = "unavailable"
        snapshot.cluster_query_error = f"{UNAVAILABLE}: {reason}"
        return snapshot


def render(snapshot: ClusterStatusSnapshot, output: str = "text") -> str:
    """Render a snapshot as 'text', 'json' or 'yaml'."""
    if output == "json":
        return json.dumps(snapshot.to_dict(), indent=2)
    if output == "yaml":
        return yaml.safe_dump(snapshot.to_dict(), default_flow_style=False, sort_keys=False)
    if output != "text":
        raise ValueError(f"Unknown output format: {output}")

    lines = ["Containers:"]
    width = max((len(n) for n in snapshot.container_states), default=0)
    for name, state in snapshot.container_states.items():
        lines.append(f"  {name.ljust(width)}  {state}")

    if not snapshot.running:
        lines.append("")
        lines.append("No Elastic Stack containers are running.")
        lines.append("To deploy: 'elasticctl deploy-master' or 'elasticctl add-node'")

    if snapshot.cluster_query == "unavailable":
        lines.append("")
        lines.append(snapshot.cluster_query_error or UNAVAILABLE)

    if snapshot.cluster_health is not None:
        h = snapshot.cluster_health
        lines += [
            "",
            "Cluster Health:",
            f"  cluster_name: {h.name}",
            f"  status: {h.status}",
            f"  number_of_nodes: {h.node_count}",
        ]
        if h.active_primary_shards is not None:
            lines.append(f"  active_primary_shards: {h.active_primary_shards}")

    if snapshot.nodes:
        lines += ["", "Cluster Nodes:", f"  {'name':<16}{'ip':<16}{'role':<12}{'master':<8}heap%  cpu"]
        for n in snapshot.nodes:
            heap = "-" if n.heap_percent is None else str(n.heap_percent)
            cpu = "-" if n.cpu is None else str(n.cpu)
            master = "*" if n.master else "-"
            lines.append(
                f"  {n.name:<16}{n.ip or '-':<16}{n.roles or '-':<12}{master:<8}{heap:<7}{cpu}"
            )
    return "\n".join(lines)
