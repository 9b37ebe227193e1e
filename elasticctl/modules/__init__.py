"""
Elastic stack deployment modules.
"""
from .certs import CertificateTransfer
from .health import HealthPoller
from .phases import PhaseRunner
from .runtime import DockerRuntime
from .status import ClusterStatusReporter

__all__ = [
    'CertificateTransfer',
    'ClusterStatusReporter',
    'DockerRuntime',
    'HealthPoller',
    'PhaseRunner',
]
