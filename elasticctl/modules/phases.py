"""Phased bring-up of master and additional nodes.

Each role is an ordered list of idempotent phases: storage before containers,
containers before health checks. Phases run strictly in sequence and the
first failure aborts the run. Nothing is rolled back: directories, volumes
and containers that already exist are left in place and a re-run picks up
from them.
"""
import logging
import time
from functools import partial
from typing import Callable, List, Optional

import requests

from ..errors import CommandError, DeployError, PhaseFailed, PreconditionFailed, ProbeError
from .client import StackClient, make_client
from .health import HealthPoller
from .models import (
    DeploymentConfig,
    HealthCheck,
    NodeRole,
    Phase,
    PhaseOutcome,
    PhaseReport,
    RetryPolicy,
)

logger = logging.getLogger("elasticctl.phases")

# Collaborator failures that become PhaseFailed
RUNTIME_ERRORS = (CommandError, ProbeError, OSError, requests.RequestException)

MASTER_SERVICES = ("elasticsearch", "kibana", "fleet-server")

ClientFactory = Callable[[DeploymentConfig, str, str], StackClient]


class PhaseRunner:
    """Builds and executes the phase sequence of a deployment role."""

    def __init__(
        self,
        runtime,
        poller: HealthPoller,
        transfer,
        settings,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the runner.

        Args:
            runtime: Container runtime (DockerRuntime or compatible)
            poller: Health poller used by the wait phases
            transfer: CertificateTransfer used by the certificate guard
            settings: Tool settings
            client_factory: Builds a StackClient for (config, service, container)
            sleep: Sleep function used between retry attempts
            clock: Monotonic clock used for phase timing
        """
        self.runtime = runtime
        self.poller = poller
        self.transfer = transfer
        self.settings = settings
        self.client_factory = client_factory or partial(make_client, runtime, settings)
        self.sleep = sleep
        self.clock = clock

    # Planning

    def plan(self, role: NodeRole, config: DeploymentConfig) -> List[Phase]:
        if role == NodeRole.MASTER:
            return self._master_phases(config)
        return self._data_phases(config)

    def _master_phases(self, config: DeploymentConfig) -> List[Phase]:
        s = self.settings
        dirs = [s.path(s.data_dir, name) for name in MASTER_SERVICES]
        es = self.client_factory(config, "elasticsearch", s.master_container)
        kibana = self.client_factory(config, "kibana", s.kibana_container)

        return [
            Phase("check-runtime", self.runtime.check_available),
            Phase(
                "create-directories",
                partial(self._make_dirs, dirs),
                precondition=lambda: all(d.is_dir() for d in dirs),
            ),
            Phase("set-ownership", lambda: self.runtime.set_owner(s.path(s.data_dir), s.data_owner)),
            Phase(
                "start-containers",
                lambda: self.runtime.compose_up(s.master_compose_file),
                timeout=s.command_timeout,
                retry=RetryPolicy(attempts=2, delay=5.0),
            ),
            Phase("wait-elasticsearch", partial(self._wait, self._check(
                "Elasticsearch", lambda: es.is_ready("/"), s.es_grace_period,
            ))),
            Phase("wait-kibana", partial(self._wait, self._check(
                "Kibana", lambda: kibana.is_ready("/api/status"), s.kibana_grace_period,
            ))),
            Phase("wait-fleet-server", partial(self._wait, self._check(
                "Fleet Server", lambda: self.runtime.is_running(s.fleet_container), s.fleet_grace_period,
            ))),
            Phase("check-cluster-health", partial(self._report_health, es)),
        ]

    def _data_phases(self, config: DeploymentConfig) -> List[Phase]:
        s = self.settings
        node_dir = s.path(s.data_dir, f"elasticsearch-{config.node_name}")
        bundle_id = s.bundle_id(config.cluster_name)
        node = self.client_factory(config, "elasticsearch", config.node_name)

        if config.credentials.password:
            def joined() -> bool:
                return config.node_name in [n.name for n in node.cat_nodes()]
        else:
            # Without credentials the best available signal is the container state
            def joined() -> bool:
                return self.runtime.is_running(config.node_name)

        return [
            Phase("check-runtime", self.runtime.check_available),
            Phase("verify-certificates", partial(self._require_bundle, bundle_id)),
            Phase(
                "create-directories",
                partial(self._make_dirs, [node_dir]),
                precondition=node_dir.is_dir,
            ),
            Phase("set-ownership", lambda: self.runtime.set_owner(node_dir, s.data_owner)),
            Phase(
                "start-containers",
                lambda: self.runtime.compose_up(s.node_compose_file),
                timeout=s.command_timeout,
                retry=RetryPolicy(attempts=2, delay=5.0),
            ),
            Phase("wait-node-join", partial(self._wait, self._check(
                f"{config.node_name} cluster membership", joined, s.node_join_grace_period,
            ))),
        ]

    def _check(self, target: str, predicate: Callable[[], bool], grace: float) -> HealthCheck:
        s = self.settings
        return HealthCheck(
            target=target,
            predicate=predicate,
            max_attempts=s.health_max_attempts,
            interval=s.health_interval,
            grace_period=grace,
            backoff=s.health_backoff,
            max_interval=s.health_max_interval,
        )

    # Phase actions

    def _make_dirs(self, dirs) -> None:
        for d in dirs:
            d.mkdir(parents=True, exist_ok=True)
            logger.info("  - %s/", d)

    def _require_bundle(self, bundle_id: str) -> None:
        if not self.transfer.has_bundle(bundle_id):
            raise PreconditionFailed(
                "Certificates not found! Run 'export-certs' on the master node, "
                "copy certs-export to this server and run 'import-certs <path>' first"
            )
        logger.info("✅ Certificate bundle %s present", bundle_id)

    def _wait(self, check: HealthCheck) -> None:
        self.poller.poll(check)

    def _report_health(self, client: StackClient) -> None:
        health = client.cluster_health()
        status = health.get("status", "unknown")
        logger.info(
            "Cluster %s: status=%s nodes=%s",
            health.get("cluster_name"), status, health.get("number_of_nodes"),
        )
        if status == "red":
            logger.warning("⚠️  Cluster health is red")

    # Execution

    def run(self, role: NodeRole, config: DeploymentConfig) -> PhaseReport:
        """Run every phase of ``role`` in order.

        Returns:
            PhaseReport listing each phase as 'ok' or 'skipped'

        Raises:
            DeployError: The first failure, tagged with the failing phase name
        """
        logger.info("🚀 Deploying %s node '%s' of cluster '%s'", role.value, config.node_name, config.cluster_name)
        report = self.execute(self.plan(role, config), role)
        logger.info("✅ %s node deployment complete: %s", role.value.capitalize(), report.summary())
        return report

    def execute(self, phases: List[Phase], role: NodeRole) -> PhaseReport:
        report = PhaseReport(role=role)
        total = len(phases)
        for index, phase in enumerate(phases, 1):
            if self._satisfied(phase):
                logger.info("[%d/%d] %s: already in place, skipping", index, total, phase.name)
                report.add(PhaseOutcome(name=phase.name, status="skipped"))
                continue

            logger.info("[%d/%d] %s", index, total, phase.name)
            started = self.clock()
            attempts = self._attempt(phase)
            report.add(PhaseOutcome(
                name=phase.name,
                status="ok",
                attempts=attempts,
                duration=self.clock() - started,
            ))
        return report

    def _satisfied(self, phase: Phase) -> bool:
        if phase.precondition is None:
            return False
        try:
            return bool(phase.precondition())
        except RUNTIME_ERRORS as e:
            raise PhaseFailed(phase.name, e) from e

    def _attempt(self, phase: Phase) -> int:
        started = self.clock()
        attempt = 0
        while True:
            attempt += 1
            try:
                phase.action()
                return attempt
            except DeployError as e:
                if e.phase is None:
                    e.phase = phase.name
                raise
            except RUNTIME_ERRORS as e:
                more = attempt < phase.retry.attempts
                in_time = (
                    phase.timeout is None
                    or self.clock() - started + phase.retry.delay < phase.timeout
                )
                if not (more and in_time):
                    logger.error("❌ Phase %s failed: %s", phase.name, e)
                    raise PhaseFailed(phase.name, e) from e
                logger.warning(
                    "Phase %s attempt %d/%d failed: %s. Retrying in %.0fs...",
                    phase.name, attempt, phase.retry.attempts, e, phase.retry.delay,
                )
                self.sleep(phase.retry.delay)
