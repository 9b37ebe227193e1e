from pathlib import Path

import pytest
from pydantic import ValidationError

from elasticctl.config import (
    Settings,
    build_deployment_config,
    load_ambient_config,
    load_deployment_config,
)
from elasticctl.errors import ConfigInvalid, ConfigMissing
from elasticctl.modules.models import NodeRole
from elasticctl.utils import redact_sensitive_data


def test_master_config_defaults(master_env):
    config = load_deployment_config(master_env, NodeRole.MASTER)
    assert config.cluster_name == "clusterofrooks"
    assert config.node_name == "rook1"
    assert config.node_role == NodeRole.MASTER
    assert str(config.node_ip) == "10.0.0.2"
    assert config.ports.es == 9200
    assert config.ports.transport == 9300
    assert config.ports.kibana == 5601
    assert config.credentials.username == "elastic"
    assert config.credentials.password == "s3cret"
    assert config.license == "trial"
    assert config.es_url() == "https://10.0.0.2:9200"


def test_data_config_has_no_kibana_or_fleet_ports(node_env):
    config = load_deployment_config(node_env, NodeRole.DATA)
    assert config.node_name == "rook2"
    assert str(config.master_node_ip) == "10.0.0.2"
    assert config.ports.kibana is None
    assert config.ports.fleet is None
    assert config.kibana_url() is None


def test_data_node_without_master_ip_is_invalid():
    values = {"CLUSTER_NAME": "c", "NODE_NAME": "node2", "NODE_IP": "10.0.0.3"}
    with pytest.raises(ConfigInvalid) as excinfo:
        build_deployment_config(values, NodeRole.DATA)
    assert excinfo.value.fields == ["MASTER_NODE_IP"]


def test_master_requires_password(tmp_path):
    env = tmp_path / ".env"
    env.write_text("CLUSTER_NAME=c\nNODE_IP=10.0.0.2\n")
    with pytest.raises(ConfigInvalid) as excinfo:
        load_deployment_config(env, NodeRole.MASTER)
    assert "ELASTIC_PASSWORD" in excinfo.value.fields


def test_empty_values_count_as_missing(tmp_path):
    env = tmp_path / ".env"
    env.write_text("CLUSTER_NAME=c\nNODE_NAME=\nNODE_IP=10.0.0.3\nMASTER_NODE_IP=10.0.0.2\n")
    with pytest.raises(ConfigInvalid) as excinfo:
        load_deployment_config(env, NodeRole.DATA)
    assert excinfo.value.fields == ["NODE_NAME"]


def test_missing_file(tmp_path):
    with pytest.raises(ConfigMissing):
        load_deployment_config(tmp_path / "absent.env", NodeRole.MASTER)


@pytest.mark.parametrize("line", ["ES_PORT=notaport", "ES_PORT=70000", "NODE_IP=10.0.0.999", "LICENSE=gold"])
def test_malformed_values(tmp_path, line):
    env = tmp_path / ".env"
    env.write_text(f"CLUSTER_NAME=c\nNODE_IP=10.0.0.2\nELASTIC_PASSWORD=x\n{line}\n")
    with pytest.raises(ConfigInvalid):
        load_deployment_config(env, NodeRole.MASTER)


def test_config_is_frozen(master_env):
    config = load_deployment_config(master_env, NodeRole.MASTER)
    with pytest.raises(ValidationError):
        config.cluster_name = "other"


def test_ambient_config_without_file(tmp_path):
    config = load_ambient_config(tmp_path / ".env")
    assert config.node_role == NodeRole.MASTER
    assert config.credentials.password is None


def test_ambient_config_infers_data_role(node_env):
    config = load_ambient_config(node_env)
    assert config.node_role == NodeRole.DATA
    assert config.node_name == "rook2"


def test_settings_environment_overrides_file(tmp_path):
    env = tmp_path / ".env"
    env.write_text("HEALTH_MAX_ATTEMPTS=5\nHEALTH_INTERVAL=2\n")
    settings = Settings.from_env(env, environ={"HEALTH_MAX_ATTEMPTS": "7"})
    assert settings.health_max_attempts == 7
    assert settings.health_interval == 2.0


def test_settings_reject_bad_values():
    with pytest.raises(ConfigInvalid):
        Settings.from_env(None, environ={"HEALTH_MAX_ATTEMPTS": "0"})


def test_settings_bundle_and_prefix(tmp_path):
    settings = Settings.from_env(None, environ={}, project_dir=tmp_path)
    assert settings.bundle_id("clusterofrooks") == "clusterofrooks_certs"
    assert settings.node_container_prefix() == "rook"
    assert settings.path("data") == tmp_path / "data"

    custom = Settings.from_env(None, environ={"CERTS_VOLUME": "shared_certs"})
    assert custom.bundle_id("clusterofrooks") == "shared_certs"


def test_redaction_hides_password(master_env):
    config = load_deployment_config(master_env, NodeRole.MASTER)
    dumped = redact_sensitive_data(config.model_dump(mode="json"))
    assert dumped["credentials"]["password"] == "[REDACTED]"
    assert dumped["credentials"]["username"] == "elastic"
    assert "s3cret" not in repr(config.credentials)


def test_ambient_config_tolerates_malformed_values(tmp_path):
    env = tmp_path / ".env"
    env.write_text(
        "CLUSTER_NAME=clusterofrooks\nNODE_IP=es-master.local\nLICENSE=gold\n"
        "ES_PORT=9200\nELASTIC_PASSWORD=s3cret\n"
    )
    config = load_ambient_config(env)
    assert config.cluster_name == "clusterofrooks"
    assert config.node_ip is None
    assert config.license == "basic"
    assert config.credentials.password == "s3cret"

    with pytest.raises(ConfigInvalid):
        load_deployment_config(env, NodeRole.MASTER)


def test_relative_project_dir_is_resolved(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings.from_env(None, environ={}, project_dir=Path("proj"))
    assert settings.project_dir == tmp_path / "proj"
    assert settings.path("certs-export") == tmp_path / "proj" / "certs-export"

    from_environ = Settings.from_env(None, environ={"PROJECT_DIR": "proj"})
    assert from_environ.project_dir.is_absolute()
