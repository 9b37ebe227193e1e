"""
Data models for elastic stack deployments.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, IPvAnyAddress, field_validator


class NodeRole(str, Enum):
    """Deployment roles."""
    MASTER = 'master'
    DATA = 'data'


class Ports(BaseModel):
    """Published ports of a node."""
    model_config = ConfigDict(frozen=True)

    es: int = Field(default=9200, ge=1, le=65535)
    transport: int = Field(default=9300, ge=1, le=65535)
    kibana: Optional[int] = Field(default=5601, ge=1, le=65535)
    fleet: Optional[int] = Field(default=8220, ge=1, le=65535)


class Credentials(BaseModel):
    """Basic-auth credentials for the built-in superuser."""
    model_config = ConfigDict(frozen=True)

    username: str = 'elastic'
    password: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class DeploymentConfig(BaseModel):
    """Configuration of one node deployment, loaded once per invocation."""
    model_config = ConfigDict(frozen=True)

    cluster_name: str
    node_name: str
    node_role: NodeRole
    node_ip: Optional[IPvAnyAddress] = None
    master_node_ip: Optional[IPvAnyAddress] = None
    ports: Ports = Field(default_factory=Ports)
    credentials: Credentials = Field(default_factory=Credentials)
    stack_version: Optional[str] = None
    license: str = 'basic'
    mem_limit: Optional[str] = None

    @field_validator('license')
    @classmethod
    def check_license(cls, v: str) -> str:
        if v not in ('basic', 'trial'):
            raise ValueError("LICENSE must be 'basic' or 'trial'")
        return v

    @property
    def is_master(self) -> bool:
        return self.node_role == NodeRole.MASTER

    def es_url(self) -> str:
        return f"https://{self.node_ip}:{self.ports.es}"

    def kibana_url(self) -> Optional[str]:
        if self.ports.kibana is None:
            return None
        return f"https://{self.node_ip}:{self.ports.kibana}"

    def fleet_url(self) -> Optional[str]:
        if self.ports.fleet is None:
            return None
        return f"https://{self.node_ip}:{self.ports.fleet}"


@dataclass
class RetryPolicy:
    """How often a phase action is attempted before the phase fails."""
    attempts: int = 1
    delay: float = 0.0


@dataclass
class Phase:
    """One ordered, idempotent step of bringing up a deployment role.

    ``precondition`` returns True when the phase's effect is already in place,
    in which case the action is skipped. ``timeout`` bounds the total time
    spent across retry attempts.
    """
    name: str
    action: Callable[[], Any]
    precondition: Optional[Callable[[], bool]] = None
    timeout: Optional[float] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass
class PhaseOutcome:
    """Result of a single phase."""
    name: str
    status: str  # 'ok' | 'skipped'
    attempts: int = 0
    duration: float = 0.0


@dataclass
class PhaseReport:
    """Ordered outcomes of a successful phase run."""
    role: NodeRole
    outcomes: List[PhaseOutcome] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)

    def add(self, outcome: PhaseOutcome) -> None:
        self.outcomes.append(outcome)

    def names(self, status: Optional[str] = None) -> List[str]:
        return [o.name for o in self.outcomes if status is None or o.status == status]

    def summary(self) -> str:
        ok = len(self.names('ok'))
        skipped = len(self.names('skipped'))
        return f"OK={ok} SKIPPED={skipped} in {time.time() - self.start_time:.1f}s"


@dataclass
class HealthCheck:
    """A readiness condition polled with a bounded budget."""
    target: str
    predicate: Callable[[], bool]
    max_attempts: int = 30
    interval: float = 10.0
    grace_period: float = 0.0
    backoff: float = 1.0
    max_interval: Optional[float] = None
    timeout: Optional[float] = None


@dataclass
class Ready:
    """Successful poll result."""
    target: str
    attempts: int
    elapsed: float


@dataclass
class ClusterHealth:
    name: str
    status: str
    node_count: int
    active_primary_shards: Optional[int] = None


@dataclass
class NodeInfo:
    """One row of ``_cat/nodes``."""
    name: str
    ip: Optional[str] = None
    roles: Optional[str] = None
    master: bool = False
    heap_percent: Optional[int] = None
    cpu: Optional[int] = None


@dataclass
class ClusterStatusSnapshot:
    """Point-in-time view of containers and, when reachable, the cluster."""
    container_states: Dict[str, str] = field(default_factory=dict)
    cluster_health: Optional[ClusterHealth] = None
    nodes: Optional[List[NodeInfo]] = None
    cluster_query: str = 'skipped'  # 'ok' | 'unavailable' | 'skipped'
    cluster_query_error: Optional[str] = None

    @property
    def running(self) -> List[str]:
        return [n for n, s in self.container_states.items() if s == 'running']

    def to_dict(self) -> Dict[str, Any]:
        return {
            'containers': dict(self.container_states),
            'cluster_query': self.cluster_query,
            'cluster_query_error': self.cluster_query_error,
            'cluster_health': (
                None if self.cluster_health is None else {
                    'name': self.cluster_health.name,
                    'status': self.cluster_health.status,
                    'node_count': self.cluster_health.node_count,
                    'active_primary_shards': self.cluster_health.active_primary_shards,
                }
            ),
            'nodes': (
                None if self.nodes is None else [
                    {
                        'name': n.name,
                        'ip': n.ip,
                        'roles': n.roles,
                        'master': n.master,
                        'heap_percent': n.heap_percent,
                        'cpu': n.cpu,
                    }
                    for n in self.nodes
                ]
            ),
        }
