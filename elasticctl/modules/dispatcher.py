"""Command variants and their dispatch.

Every CLI verb is a frozen dataclass carrying its validated parameters. The
Dispatcher maps each variant to a PhaseRunner run or a direct component call.
Console interaction (confirmation, prompting, output) is injected so commands
can run headless and under test.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Optional

from ..config import load_ambient_config, load_deployment_config
from ..errors import ConfigInvalid, DeployError, PhaseFailed, UnknownService, UserCancelled
from .backup import backup_data
from .certs import CertificateTransfer
from .health import HealthPoller
from .models import DeploymentConfig, NodeRole, PhaseReport
from .phases import RUNTIME_ERRORS, PhaseRunner
from .runtime import DockerRuntime
from .status import ClusterStatusReporter, render

logger = logging.getLogger("elasticctl.dispatcher")

OUTPUT_FORMATS = ("text", "json", "yaml")


class Verb(str, Enum):
    DEPLOY_MASTER = 'deploy-master'
    ADD_NODE = 'add-node'
    EXPORT_CERTS = 'export-certs'
    IMPORT_CERTS = 'import-certs'
    STATUS = 'status'
    STOP_MASTER = 'stop-master'
    STOP_NODE = 'stop-node'
    REMOVE_MASTER = 'remove-master'
    REMOVE_NODE = 'remove-node'
    BACKUP = 'backup'
    LOGS = 'logs'
    HELP = 'help'


@dataclass(frozen=True)
class Command:
    verb: ClassVar[Verb]


@dataclass(frozen=True)
class DeployMaster(Command):
    verb: ClassVar[Verb] = Verb.DEPLOY_MASTER


@dataclass(frozen=True)
class AddNode(Command):
    verb: ClassVar[Verb] = Verb.ADD_NODE


@dataclass(frozen=True)
class ExportCerts(Command):
    verb: ClassVar[Verb] = Verb.EXPORT_CERTS


@dataclass(frozen=True)
class ImportCerts(Command):
    path: str
    verb: ClassVar[Verb] = Verb.IMPORT_CERTS

    def __post_init__(self):
        if not self.path or not str(self.path).strip():
            raise ConfigInvalid("Please provide the path to the certs directory", fields=["path"])


@dataclass(frozen=True)
class Status(Command):
    output: str = 'text'
    verb: ClassVar[Verb] = Verb.STATUS

    def __post_init__(self):
        if self.output not in OUTPUT_FORMATS:
            raise ConfigInvalid(
                f"Unknown output format '{self.output}' (choose from {', '.join(OUTPUT_FORMATS)})",
                fields=["output"],
            )


@dataclass(frozen=True)
class StopMaster(Command):
    verb: ClassVar[Verb] = Verb.STOP_MASTER


@dataclass(frozen=True)
class StopNode(Command):
    verb: ClassVar[Verb] = Verb.STOP_NODE


@dataclass(frozen=True)
class RemoveMaster(Command):
    assume_yes: bool = False
    verb: ClassVar[Verb] = Verb.REMOVE_MASTER


@dataclass(frozen=True)
class RemoveNode(Command):
    assume_yes: bool = False
    verb: ClassVar[Verb] = Verb.REMOVE_NODE


@dataclass(frozen=True)
class Backup(Command):
    verb: ClassVar[Verb] = Verb.BACKUP


@dataclass(frozen=True)
class Logs(Command):
    service: Optional[str] = None
    follow: bool = True
    verb: ClassVar[Verb] = Verb.LOGS


@dataclass(frozen=True)
class Help(Command):
    verb: ClassVar[Verb] = Verb.HELP


class Dispatcher:
    """Runs commands against the local stack."""

    def __init__(
        self,
        settings,
        env_file: Path,
        runtime=None,
        poller: Optional[HealthPoller] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        prompt: Optional[Callable[[str], str]] = None,
        echo: Callable[[str], None] = print,
        usage: Optional[Callable[[], str]] = None,
        client_factory=None,
    ):
        """Initialize the dispatcher.

        Args:
            settings: Tool settings
            env_file: Path of the key/value configuration file
            runtime: Container runtime; a DockerRuntime by default
            poller: Health poller; a real-time HealthPoller by default
            confirm: Asked before destructive commands; declines when absent
            prompt: Asked for missing interactive input such as a log service
            echo: Receives command output
            usage: Returns the help text
            client_factory: Builds HTTP clients for (config, service, container)
        """
        self.settings = settings
        self.env_file = Path(env_file)
        self.runtime = runtime or DockerRuntime(
            settings.project_dir,
            helper_image=settings.helper_image,
            timeout=settings.command_timeout,
        )
        self.poller = poller or HealthPoller()
        self.transfer = CertificateTransfer(self.runtime)
        self.confirm = confirm or (lambda message: False)
        self.prompt = prompt
        self.echo = echo
        self.usage = usage
        self.client_factory = client_factory
        self._handlers: Dict[type, Callable[[Any], Any]] = {
            DeployMaster: self.deploy_master,
            AddNode: self.add_node,
            ExportCerts: self.export_certs,
            ImportCerts: self.import_certs,
            Status: self.status,
            StopMaster: self.stop_master,
            StopNode: self.stop_node,
            RemoveMaster: self.remove_master,
            RemoveNode: self.remove_node,
            Backup: self.backup,
            Logs: self.logs,
            Help: self.help,
        }

    def dispatch(self, command: Command) -> Any:
        """Run ``command``.

        Raises:
            DeployError: On any failure; collaborator errors outside the phase
                runner are wrapped in PhaseFailed named after the verb
        """
        handler = self._handlers[type(command)]
        logger.debug("Dispatching %s", command.verb.value)
        try:
            return handler(command)
        except DeployError:
            raise
        except RUNTIME_ERRORS as e:
            raise PhaseFailed(command.verb.value, e) from e

    def runner(self) -> PhaseRunner:
        return PhaseRunner(
            self.runtime,
            self.poller,
            self.transfer,
            self.settings,
            client_factory=self.client_factory,
        )

    def ambient_config(self) -> DeploymentConfig:
        return load_ambient_config(self.env_file)

    # Deployment

    def deploy_master(self, command: DeployMaster) -> PhaseReport:
        config = load_deployment_config(self.env_file, NodeRole.MASTER)
        self._echo_config(config)
        report = self.runner().run(NodeRole.MASTER, config)

        s = self.settings
        self.echo("")
        self.echo("Access URLs:")
        self.echo(f"  Elasticsearch: {config.es_url()}")
        self.echo(f"  Kibana: {config.kibana_url()}")
        self.echo(f"  Fleet Server: {config.fleet_url()}")
        self.echo(f"  Username: {config.credentials.username}")
        self.echo("")
        self.echo("Data Locations:")
        for name in ("elasticsearch", "kibana", "fleet-server"):
            self.echo(f"  {s.path(s.data_dir, name)}/")
        self.echo("")
        self.echo("Next Steps:")
        self.echo("  Export certs for additional nodes: elasticctl export-certs")
        self.echo("  Add a new node: elasticctl add-node")
        return report

    def add_node(self, command: AddNode) -> PhaseReport:
        config = load_deployment_config(self.env_file, NodeRole.DATA)
        self._echo_config(config)
        report = self.runner().run(NodeRole.DATA, config)

        s = self.settings
        self.echo("")
        self.echo("Verify the node joined the cluster: elasticctl status")
        self.echo(f"Data Location: {s.path(s.data_dir, f'elasticsearch-{config.node_name}')}/")
        return report

    def _echo_config(self, config: DeploymentConfig) -> None:
        self.echo("Configuration:")
        self.echo(f"  Cluster Name: {config.cluster_name}")
        self.echo(f"  Node Name: {config.node_name}")
        self.echo(f"  Node IP: {config.node_ip}")
        if config.is_master:
            self.echo(f"  Elasticsearch Port: {config.ports.es}")
            self.echo(f"  Kibana Port: {config.ports.kibana}")
            self.echo(f"  Fleet Port: {config.ports.fleet}")
        else:
            self.echo(f"  Master Node: {config.master_node_ip}")

    # Certificates

    def export_certs(self, command: ExportCerts) -> Path:
        config = self.ambient_config()
        dest = self.settings.path(self.settings.certs_export_dir)
        self.transfer.export_bundle(self.settings.bundle_id(config.cluster_name), dest)
        self.echo(f"Certificates exported to {dest}/")
        self.echo("To deploy a new node on another server:")
        self.echo(f"  1. Copy {dest.name} to the new server (e.g. scp -r {dest} user@new-server:/path/to/elastic/)")
        self.echo(f"  2. On the new server run: elasticctl import-certs /path/to/{dest.name}")
        self.echo("  3. Then deploy the node: elasticctl add-node")
        return dest

    def import_certs(self, command: ImportCerts) -> str:
        config = self.ambient_config()
        bundle_id = self.settings.bundle_id(config.cluster_name)
        self.transfer.import_bundle(Path(command.path).expanduser().resolve(), bundle_id)
        self.echo("Certificates imported successfully!")
        self.echo("You can now deploy a node with: elasticctl add-node")
        return bundle_id

    # Monitoring

    def status(self, command: Status):
        reporter = ClusterStatusReporter(
            self.runtime,
            self.settings,
            self.ambient_config(),
            client_factory=self.client_factory,
        )
        snapshot = reporter.status()
        self.echo(render(snapshot, command.output))
        return snapshot

    def logs(self, command: Logs) -> str:
        s = self.settings
        config = self.ambient_config()
        services = [s.master_container, s.kibana_container, s.fleet_container, "all"]
        node_service = config.node_name if config.node_role == NodeRole.DATA else None
        if node_service:
            services.append(node_service)

        service = command.service
        if not service:
            if self.prompt is None:
                raise ConfigInvalid(f"Please name a service: {', '.join(services)}", fields=["service"])
            service = self.prompt(f"Which service logs do you want to view? ({', '.join(services)})").strip()
        if service not in services:
            raise UnknownService(f"Unknown service: {service} (choose from {', '.join(services)})")

        if service == node_service:
            compose_file = s.node_compose_file
        else:
            compose_file = s.master_compose_file
        logger.info("Showing logs for %s (Ctrl+C to exit)...", service)
        self.runtime.compose_logs(compose_file, None if service == "all" else service, follow=command.follow)
        return service

    # Management

    def stop_master(self, command: StopMaster) -> None:
        self.runtime.compose_stop(self.settings.master_compose_file)
        self.echo("Master node stopped. Data is preserved in ./data/")
        self.echo(f"To start again: docker compose -f {self.settings.master_compose_file} up -d")

    def stop_node(self, command: StopNode) -> None:
        self.runtime.compose_stop(self.settings.node_compose_file)
        self.echo("Node stopped. Data is preserved in ./data/")
        self.echo(f"To start again: docker compose -f {self.settings.node_compose_file} up -d")

    def remove_master(self, command: RemoveMaster) -> None:
        if not command.assume_yes and not self.confirm(
            "This will remove all master node containers. Data in ./data/ will be preserved. Are you sure?"
        ):
            raise UserCancelled("Cancelled.")
        config = self.ambient_config()
        self.runtime.compose_down(self.settings.master_compose_file)
        bundle_id = self.settings.bundle_id(config.cluster_name)
        if self.runtime.remove_volume(bundle_id):
            logger.info("Removed certificate volume %s", bundle_id)
        self.echo("Master node removed. Data preserved in ./data/")
        self.echo("To completely remove data: sudo rm -rf ./data/")

    def remove_node(self, command: RemoveNode) -> None:
        if not command.assume_yes and not self.confirm(
            "This will remove the node container. Data in ./data/ will be preserved. Are you sure?"
        ):
            raise UserCancelled("Cancelled.")
        self.runtime.compose_down(self.settings.node_compose_file)
        self.echo("Node removed. Data preserved in ./data/")

    def backup(self, command: Backup) -> Path:
        s = self.settings
        archive, _ = backup_data(s.project_dir, s.data_dir, s.backup_prefix)
        self.echo(f"Backup created: {archive}")
        return archive

    def help(self, command: Help) -> None:
        if self.usage is not None:
            self.echo(self.usage())
        else:
            self.echo("Commands: " + ", ".join(v.value for v in Verb))
