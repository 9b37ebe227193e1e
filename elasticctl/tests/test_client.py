import pytest
import requests

from elasticctl.config import Settings, load_deployment_config
from elasticctl.errors import CommandError, ProbeError
from elasticctl.modules.client import (
    ContainerStackClient,
    HttpStackClient,
    make_client,
)
from elasticctl.modules.models import Credentials, NodeRole


class FakeExec:
    def __init__(self, output="", error=None):
        self.output = output
        self.error = error
        self.calls = []

    def exec_in(self, container, args, timeout=None):
        self.calls.append((container, list(args)))
        if self.error is not None:
            raise self.error
        return self.output


class FakeResponse:
    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


CREDS = Credentials(username="elastic", password="s3cret")


def test_container_client_parses_status_line():
    runtime = FakeExec('{"status":"green","number_of_nodes":1}\n200')
    client = ContainerStackClient(runtime, "rook1", 9200, CREDS)
    assert client.cluster_health()["status"] == "green"

    container, cmd = runtime.calls[0]
    assert container == "rook1"
    assert cmd[0] == "curl"
    assert "--cacert" in cmd and "-k" not in cmd
    assert cmd[cmd.index("-u") + 1] == "elastic:s3cret"
    assert cmd[-1] == "https://localhost:9200/_cluster/health"


def test_container_client_unauthenticated_probe():
    runtime = FakeExec("\n401")
    client = ContainerStackClient(runtime, "rook1", 9200, CREDS)
    assert client.probe("/") == 401
    assert "-u" not in runtime.calls[0][1]


def test_container_client_not_running():
    runtime = FakeExec(error=CommandError(["docker", "exec", "rook1"], 1, "No such container"))
    client = ContainerStackClient(runtime, "rook1", 9200, CREDS)
    with pytest.raises(ProbeError):
        client.is_ready("/")


def test_container_client_no_response():
    client = ContainerStackClient(FakeExec("\n000"), "kibana", 5601, CREDS)
    with pytest.raises(ProbeError):
        client.request("/api/status")


def test_get_json_rejects_errors():
    client = ContainerStackClient(FakeExec('{"error":"x"}\n500'), "rook1", 9200, CREDS)
    with pytest.raises(ProbeError):
        client.get_json("/_cluster/health")


def test_cat_nodes():
    rows = '[{"name":"rook1","ip":"10.0.0.2","node.role":"m","master":"*","heap.percent":"12","cpu":null}]'
    client = ContainerStackClient(FakeExec(rows + "\n200"), "rook1", 9200, CREDS)
    [node] = client.cat_nodes()
    assert node.name == "rook1"
    assert node.master is True
    assert node.heap_percent == 12
    assert node.cpu is None


def test_http_client_verifies_tls(tmp_path):
    ca = tmp_path / "ca.crt"
    session = FakeSession(FakeResponse(200, "{}"))
    client = HttpStackClient("https://10.0.0.2:9200/", CREDS, ca_cert=ca, session=session)
    assert client.is_ready("/")
    url, kwargs = session.calls[0]
    assert url == "https://10.0.0.2:9200/"
    assert kwargs["verify"] == str(ca)
    assert kwargs["auth"] == ("elastic", "s3cret")


def test_http_client_default_trust_store():
    session = FakeSession(FakeResponse(401, ""))
    client = HttpStackClient("https://10.0.0.2:9200", CREDS, session=session)
    assert client.probe("/") == 401
    _, kwargs = session.calls[0]
    assert kwargs["verify"] is True
    assert "auth" not in kwargs


def test_http_client_connection_error():
    session = FakeSession(error=requests.ConnectionError("refused"))
    client = HttpStackClient("https://10.0.0.2:9200", CREDS, session=session)
    with pytest.raises(ProbeError):
        client.request("/")


def test_make_client_selects_transport(tmp_path, master_env):
    config = load_deployment_config(master_env, NodeRole.MASTER)
    runtime = FakeExec()

    in_container = make_client(runtime, Settings.from_env(None, environ={}), config, "kibana", "kibana")
    assert isinstance(in_container, ContainerStackClient)
    assert in_container.base_url == "https://localhost:5601"

    settings = Settings.from_env(None, environ={"ES_CA_CERT": str(tmp_path / "ca.crt")})
    from_host = make_client(runtime, settings, config, "elasticsearch", "rook1")
    assert isinstance(from_host, HttpStackClient)
    assert from_host.base_url == "https://10.0.0.2:9200"
