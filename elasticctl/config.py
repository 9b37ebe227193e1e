"""Configuration management for the elasticctl application.

Two kinds of configuration are read from the same ``.env`` key/value file:

- ``DeploymentConfig`` describes the node being deployed (cluster name, node
  name and IP, ports, credentials). Required keys depend on the role.
- ``Settings`` holds tool tuning (poll budgets, grace periods, compose file
  names, container names). Process environment variables override the file.
"""
import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigInvalid, ConfigMissing
from .modules.models import Credentials, DeploymentConfig, NodeRole, Ports
from .utils import redact_sensitive_data

logger = logging.getLogger("elasticctl.config")

DEFAULT_ENV_FILE = ".env"
DEFAULT_MASTER_NODE_NAME = "rook1"

REQUIRED_KEYS: Dict[NodeRole, Tuple[str, ...]] = {
    NodeRole.MASTER: ("CLUSTER_NAME", "NODE_IP", "ELASTIC_PASSWORD"),
    NodeRole.DATA: ("CLUSTER_NAME", "NODE_NAME", "NODE_IP", "MASTER_NODE_IP"),
}

RECOGNIZED_KEYS = (
    "CLUSTER_NAME", "NODE_NAME", "NODE_IP", "MASTER_NODE_IP",
    "ES_PORT", "ES_TRANSPORT_PORT", "KIBANA_PORT", "FLEET_PORT",
    "ELASTIC_USERNAME", "ELASTIC_PASSWORD",
    "STACK_VERSION", "LICENSE", "MEM_LIMIT",
)

# Keys that cannot fail validation, kept when the rest of the file is malformed
AMBIENT_KEYS = ("CLUSTER_NAME", "NODE_NAME", "ELASTIC_USERNAME", "ELASTIC_PASSWORD", "STACK_VERSION", "MEM_LIMIT")


class Settings(BaseModel):
    """Tool settings with sensible defaults."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    project_dir: Path = Field(default_factory=Path.cwd, alias="PROJECT_DIR")
    master_compose_file: str = Field(default="docker-compose.yml", alias="MASTER_COMPOSE_FILE")
    node_compose_file: str = Field(default="docker-compose-node.yml", alias="NODE_COMPOSE_FILE")
    data_dir: str = Field(default="data", alias="DATA_DIR")
    data_owner: str = Field(default="1000:1000", alias="DATA_OWNER")
    certs_export_dir: str = Field(default="certs-export", alias="CERTS_EXPORT_DIR")
    certs_volume: Optional[str] = Field(default=None, alias="CERTS_VOLUME")
    backup_prefix: str = Field(default="elastic-backup", alias="BACKUP_PREFIX")
    helper_image: str = Field(default="alpine", alias="HELPER_IMAGE")

    # Container names as declared in the compose files
    master_container: str = Field(default=DEFAULT_MASTER_NODE_NAME, alias="MASTER_CONTAINER")
    kibana_container: str = Field(default="kibana", alias="KIBANA_CONTAINER")
    fleet_container: str = Field(default="fleet-server", alias="FLEET_CONTAINER")

    # TLS
    container_ca_cert: str = Field(default="config/certs/ca/ca.crt", alias="CONTAINER_CA_CERT")
    ca_cert: Optional[Path] = Field(default=None, alias="ES_CA_CERT")

    # Health polling (seconds)
    health_max_attempts: int = Field(default=30, ge=1, alias="HEALTH_MAX_ATTEMPTS")
    health_interval: float = Field(default=10.0, ge=0, alias="HEALTH_INTERVAL")
    health_backoff: float = Field(default=1.0, ge=1.0, alias="HEALTH_BACKOFF")
    health_max_interval: Optional[float] = Field(default=None, alias="HEALTH_MAX_INTERVAL")
    es_grace_period: float = Field(default=30.0, ge=0, alias="ES_GRACE_PERIOD")
    kibana_grace_period: float = Field(default=20.0, ge=0, alias="KIBANA_GRACE_PERIOD")
    fleet_grace_period: float = Field(default=30.0, ge=0, alias="FLEET_GRACE_PERIOD")
    node_join_grace_period: float = Field(default=30.0, ge=0, alias="NODE_JOIN_GRACE_PERIOD")

    # Timeouts (seconds)
    http_timeout: float = Field(default=10.0, gt=0, alias="HTTP_TIMEOUT")
    command_timeout: float = Field(default=600.0, gt=0, alias="COMMAND_TIMEOUT")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        alias="LOG_FORMAT",
    )
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")

    @field_validator("project_dir")
    @classmethod
    def absolute_project_dir(cls, v: Path) -> Path:
        # Derived paths are passed to commands that already run in project_dir
        return Path(v).expanduser().resolve()

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "Settings":
        """Build settings from the ``.env`` file overlaid with the environment."""
        values: Dict[str, str] = {}
        if env_file is not None and Path(env_file).is_file():
            values.update(_clean(dotenv_values(env_file)))
        values.update(_clean(os.environ if environ is None else environ))
        for name, value in overrides.items():
            if value is not None:
                field = cls.model_fields[name]
                values[field.alias or name] = value
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigInvalid(f"Invalid settings: {_describe(e)}") from e

    def path(self, *parts: str) -> Path:
        return Path(self.project_dir, *parts)

    def bundle_id(self, cluster_name: str) -> str:
        return self.certs_volume or f"{cluster_name}_certs"

    def node_container_prefix(self) -> str:
        """Name prefix shared by additional node containers (``rook1`` -> ``rook``)."""
        return self.master_container.rstrip("0123456789") or self.master_container


def _clean(values: Mapping[str, Optional[str]]) -> Dict[str, str]:
    # Empty values count as unset, matching `[ -z "$VAR" ]`
    return {k: v for k, v in values.items() if v not in (None, "")}


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def read_env_file(env_file: Path) -> Dict[str, str]:
    """Read the key/value file, raising ConfigMissing if it is absent."""
    env_file = Path(env_file)
    if not env_file.is_file():
        raise ConfigMissing(f"{env_file} file not found. Please create it first (see .env.example)")
    return _clean(dotenv_values(env_file))


def build_deployment_config(
    values: Mapping[str, str],
    role: NodeRole,
    strict: bool = True,
) -> DeploymentConfig:
    """Turn raw key/value pairs into a validated ``DeploymentConfig``.

    Args:
        values: Raw configuration values keyed by the recognized keys
        role: Role the configuration is loaded for
        strict: Enforce the per-role required keys

    Raises:
        ConfigInvalid: If a required key is missing or a value is malformed
    """
    if strict:
        missing = [k for k in REQUIRED_KEYS[role] if not values.get(k)]
        if missing:
            raise ConfigInvalid(
                f"Missing required configuration for {role.value} node: {', '.join(missing)}",
                fields=missing,
            )

    node_name = values.get("NODE_NAME")
    if role == NodeRole.MASTER:
        node_name = node_name or DEFAULT_MASTER_NODE_NAME

    port_keys = {"es": "ES_PORT", "transport": "ES_TRANSPORT_PORT"}
    if role == NodeRole.MASTER:
        port_keys.update(kibana="KIBANA_PORT", fleet="FLEET_PORT")
    ports = {name: values[key] for name, key in port_keys.items() if key in values}
    if role == NodeRole.DATA:
        # Additional nodes only run Elasticsearch
        ports.update(kibana=None, fleet=None)

    try:
        return DeploymentConfig(
            cluster_name=values.get("CLUSTER_NAME") or "elastic",
            node_name=node_name or "",
            node_role=role,
            node_ip=values.get("NODE_IP"),
            master_node_ip=values.get("MASTER_NODE_IP"),
            ports=Ports(**ports),
            credentials=Credentials(
                username=values.get("ELASTIC_USERNAME", "elastic"),
                password=values.get("ELASTIC_PASSWORD"),
            ),
            stack_version=values.get("STACK_VERSION"),
            license=values.get("LICENSE", "basic"),
            mem_limit=values.get("MEM_LIMIT"),
        )
    except ValidationError as e:
        raise ConfigInvalid(f"Invalid configuration: {_describe(e)}") from e


def load_deployment_config(env_file: Path, role: NodeRole) -> DeploymentConfig:
    """Load the configuration a deploy command needs, failing on missing keys."""
    values = read_env_file(env_file)
    config = build_deployment_config(values, role, strict=True)
    logger.debug("Loaded %s config: %s", role.value, redact_sensitive_data(config.model_dump(mode="json")))
    return config


def load_ambient_config(env_file: Path) -> DeploymentConfig:
    """Load whatever configuration exists for commands that work without one.

    The role is inferred: a file naming a MASTER_NODE_IP describes an
    additional node, anything else the master.
    """
    env_file = Path(env_file)
    values = _clean(dotenv_values(env_file)) if env_file.is_file() else {}
    role = NodeRole.DATA if values.get("MASTER_NODE_IP") and values.get("NODE_NAME") else NodeRole.MASTER
    try:
        return build_deployment_config(values, role, strict=False)
    except ConfigInvalid as e:
        # Addresses, ports and license are only needed to deploy
        logger.warning("⚠️  Ignoring malformed configuration: %s", e)
        identity = {k: v for k, v in values.items() if k in AMBIENT_KEYS}
        return build_deployment_config(identity, role, strict=False)
