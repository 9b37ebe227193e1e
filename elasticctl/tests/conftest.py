import json
import shutil
from pathlib import Path

import pytest

from elasticctl.config import Settings
from elasticctl.errors import RuntimeUnavailable
from elasticctl.modules.client import StackClient
from elasticctl.modules.health import HealthPoller

MASTER_ENV = """
CLUSTER_NAME=clusterofrooks
NODE_IP=10.0.0.2
ES_PORT=9200
KIBANA_PORT=5601
FLEET_PORT=8220
ELASTIC_PASSWORD=s3cret
STACK_VERSION=8.11.1
LICENSE=trial
MEM_LIMIT=2GB
"""

NODE_ENV = """
CLUSTER_NAME=clusterofrooks
NODE_NAME=rook2
NODE_IP=10.0.0.3
MASTER_NODE_IP=10.0.0.2
ES_PORT=9200
ES_TRANSPORT_PORT=9300
ELASTIC_PASSWORD=s3cret
"""


class FakeRuntime:
    """In-memory stand-in for DockerRuntime; volumes are directories under root."""

    def __init__(self, root: Path, states=None):
        self.root = Path(root)
        self.states = dict(states or {})
        self.volumes = {}
        self.calls = []
        self.fail = {}
        self.available = True

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def called(self, name):
        return [c for c in self.calls if c[0] == name]

    def check_available(self):
        self._record("check_available")
        if not self.available:
            raise RuntimeUnavailable("Docker is not installed. Please install Docker first.")

    def compose_up(self, compose_file):
        self._record("compose_up", compose_file)

    def compose_stop(self, compose_file):
        self._record("compose_stop", compose_file)

    def compose_down(self, compose_file):
        self._record("compose_down", compose_file)

    def compose_logs(self, compose_file, service=None, follow=True):
        self._record("compose_logs", compose_file, service, follow)

    def container_states(self):
        self._record("container_states")
        return dict(self.states)

    def is_running(self, container):
        return self.states.get(container) == "running"

    def exec_in(self, container, args, timeout=None):
        self._record("exec_in", container, list(args))
        return ""

    def volume_exists(self, name):
        return name in self.volumes

    def create_volume(self, name):
        self._record("create_volume", name)
        path = self.volumes.setdefault(name, self.root / "volumes" / name)
        path.mkdir(parents=True, exist_ok=True)

    def remove_volume(self, name):
        self._record("remove_volume", name)
        path = self.volumes.pop(name, None)
        if path is None:
            return False
        shutil.rmtree(path, ignore_errors=True)
        return True

    def copy_tree(self, source, dest):
        self._record("copy_tree", source, dest)
        shutil.copytree(self._resolve(source), self._resolve(dest), dirs_exist_ok=True)

    def _resolve(self, mount):
        if isinstance(mount, Path):
            return mount
        return self.volumes[mount]

    def set_owner(self, path, owner):
        self._record("set_owner", Path(path), owner)


class FakeClient(StackClient):
    """StackClient answering from a path -> (status, body) table."""

    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.requests = []

    def request(self, path, auth=True):
        self.requests.append((path, auth))
        if self.error is not None:
            raise self.error
        status, body = self.responses.get(path.split("?")[0], (404, ""))
        if not isinstance(body, str):
            body = json.dumps(body)
        return status, body


HEALTHY = {
    "/": (200, {"cluster_name": "clusterofrooks"}),
    "/api/status": (200, {"status": {"overall": {"level": "available"}}}),
    "/_cluster/health": (200, {
        "cluster_name": "clusterofrooks",
        "status": "green",
        "number_of_nodes": 2,
        "active_primary_shards": 7,
    }),
    "/_cat/nodes": (200, [
        {"name": "rook1", "ip": "10.0.0.2", "node.role": "cdfhilmrstw", "master": "*",
         "heap.percent": "41", "cpu": "3"},
        {"name": "rook2", "ip": "10.0.0.3", "node.role": "cdfhilrstw", "master": "-",
         "heap.percent": "22", "cpu": "1"},
    ]),
}


@pytest.fixture
def settings(tmp_path):
    return Settings.from_env(None, environ={}, project_dir=tmp_path)


@pytest.fixture
def runtime(tmp_path):
    return FakeRuntime(tmp_path / "docker")


@pytest.fixture
def poller():
    return HealthPoller(sleep=lambda seconds: None)


@pytest.fixture
def healthy_client():
    return FakeClient(dict(HEALTHY))


@pytest.fixture
def master_env(tmp_path):
    path = tmp_path / ".env"
    path.write_text(MASTER_ENV)
    return path


@pytest.fixture
def node_env(tmp_path):
    path = tmp_path / "node.env"
    path.write_text(NODE_ENV)
    return path
