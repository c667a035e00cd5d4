import logging

import pytest

from forge_deploy.config.parser import Config
from forge_deploy.health.aggregator import HealthAggregator
from forge_deploy.state.inventory import write_inventory
from forge_deploy.state.manager import StateManager
from forge_deploy.state.models import PipelineState
from forge_deploy.utils.logging import setup_logging
from tests.fakes import (
    FakeNetworkProbe,
    FakeServices,
    FakeSnapshotStore,
    LocalTargetHost,
)


@pytest.fixture
def workspace(tmp_path):
    """A project directory with every local artifact the pipeline expects."""
    root = tmp_path / "project"
    (root / "terraform").mkdir(parents=True)
    (root / "terraform" / "qr-forge.pem").write_text("key")
    (root / "ansible" / "playbooks").mkdir(parents=True)
    (root / "ansible" / "playbooks" / "01-install-docker.yml").write_text("---\n")
    (root / "ansible" / "playbooks" / "03-deploy-app.yml").write_text("---\n")
    (root / "app").mkdir()
    return root


@pytest.fixture
def config(workspace):
    cfg = Config(str(workspace / "forge.yaml"), base_dir=workspace).load()
    cfg.settings.pipeline.settle_seconds = 0
    cfg.settings.backup.restore_settle_seconds = 0
    return cfg


@pytest.fixture
def state_manager(config):
    return StateManager(str(config.state_path))


@pytest.fixture
def deployed_state(state_manager, config):
    state = PipelineState(
        target_address="203.0.113.10",
        instance_id="i-0abc123",
        bucket_name="qr-forge-backups",
        ssh_command="ssh -i qr-forge.pem ubuntu@203.0.113.10",
        last_completed_step=4,
    )
    state_manager.save(state)
    write_inventory(config.inventory_path, state, "qr_forge_servers", "ubuntu", config.ssh_key_path)
    return state


@pytest.fixture
def host(tmp_path):
    """Target host with a populated application tree at /opt/qr-forge."""
    remote = tmp_path / "remote"
    app_root = remote / "opt" / "qr-forge"
    (app_root / "app" / "static").mkdir(parents=True)
    (app_root / "docker-compose.yml").write_text("services:\n  web:\n    image: qr-forge:1\n")
    (app_root / "app" / "main.py").write_text("print('v1')\n")
    (app_root / "app" / "static" / "logo.png").write_bytes(bytes(range(256)))
    (remote / "tmp").mkdir()
    return LocalTargetHost(remote)


@pytest.fixture
def store():
    return FakeSnapshotStore()


@pytest.fixture
def network(host):
    return FakeNetworkProbe(host)


@pytest.fixture
def aggregator(host, network, config):
    return HealthAggregator(lambda state: host, network, config=config.settings.health)


@pytest.fixture
def services(config, host, store):
    return FakeServices(config, host, store)


@pytest.fixture
def configured_logging(tmp_path):
    """The CLI's logging setup at debug level; yields the log directory."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_dir = tmp_path / "logs"
    setup_logging("debug", log_dir)
    yield log_dir
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
