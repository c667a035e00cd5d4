import json
import subprocess
from datetime import datetime
from unittest import mock

import pytest
import requests
from botocore.exceptions import ClientError, EndpointConnectionError

from forge_deploy.adapters.ansible import AnsibleEngine
from forge_deploy.adapters.network import SystemNetworkProbe
from forge_deploy.adapters.s3 import S3SnapshotStore
from forge_deploy.adapters.ssh import SSHTargetHost
from forge_deploy.adapters.terraform import TerraformProvisioner
from forge_deploy.utils.errors import (
    ErrorCategory,
    ExternalToolFailure,
    PrerequisiteMissing,
    UnreachableTarget,
)


class FakeSubprocess:
    """Stands in for subprocess.run; answers from a queue of (returncode, stdout, stderr)."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.commands = []

    def __call__(self, args, **kwargs):
        self.commands.append(args)
        code, stdout, stderr = self.answers.pop(0) if self.answers else (0, "", "")
        return subprocess.CompletedProcess(args, code, stdout, stderr)


@pytest.fixture
def fake_run(monkeypatch):
    def install(*answers):
        fake = FakeSubprocess(*answers)
        monkeypatch.setattr("forge_deploy.utils.process.subprocess.run", fake)
        return fake
    return install


class TestTerraformProvisioner:
    """Test cases for the terraform CLI adapter."""

    def test_plan_runs_init_validate_plan(self, fake_run, tmp_path):
        fake = fake_run((0, "", ""), (0, "", ""), (0, "Plan: 3 to add", ""))

        plan = TerraformProvisioner(tmp_path).plan()

        assert plan == "Plan: 3 to add"
        assert [c[1] for c in fake.commands] == ["init", "validate", "plan"]
        assert "-out=tfplan" in fake.commands[2]

    def test_apply_requires_saved_plan(self, fake_run, tmp_path):
        fake = fake_run()
        with pytest.raises(ExternalToolFailure, match="no saved plan"):
            TerraformProvisioner(tmp_path).apply()
        assert fake.commands == []

    def test_apply_uses_saved_plan(self, fake_run, tmp_path):
        (tmp_path / "tfplan").write_text("plan")
        fake = fake_run()
        TerraformProvisioner(tmp_path).apply()
        assert fake.commands[0][-1] == "tfplan"

    def test_outputs(self, fake_run, tmp_path):
        raw = {
            "instance_public_ip": {"value": "198.51.100.4"},
            "instance_id": {"value": "i-9"},
            "s3_bucket_name": {"value": "bucket"},
        }
        fake_run((0, json.dumps(raw), ""))

        outputs = TerraformProvisioner(tmp_path).outputs()

        assert outputs.instance_public_ip == "198.51.100.4"
        assert outputs.s3_bucket_name == "bucket"
        assert outputs.ssh_command is None

    def test_missing_outputs(self, fake_run, tmp_path):
        fake_run((0, json.dumps({"instance_id": {"value": "i-9"}}), ""))
        with pytest.raises(ExternalToolFailure, match="instance_public_ip"):
            TerraformProvisioner(tmp_path).outputs()

    def test_failure_carries_diagnostic(self, fake_run, tmp_path):
        fake_run((1, "", "Error: Invalid provider configuration"))
        with pytest.raises(ExternalToolFailure) as exc_info:
            TerraformProvisioner(tmp_path).destroy()
        assert exc_info.value.diagnostic == "Error: Invalid provider configuration"
        assert exc_info.value.context.exit_code == 1

    def test_missing_binary(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            "forge_deploy.utils.process.subprocess.run", mock.Mock(side_effect=FileNotFoundError())
        )
        with pytest.raises(PrerequisiteMissing):
            TerraformProvisioner(tmp_path).plan()


class TestAnsibleEngine:
    """Test cases for the ansible adapter."""

    def test_ping_failure_is_unreachable(self, fake_run, tmp_path):
        fake_run((4, "UNREACHABLE!", ""))
        engine = AnsibleEngine(tmp_path, tmp_path / "hosts.ini", "qr_forge_servers")
        with pytest.raises(UnreachableTarget):
            engine.ping()

    def test_playbook_command(self, fake_run, tmp_path):
        fake = fake_run()
        AnsibleEngine(tmp_path, tmp_path / "hosts.ini", "g").run_playbook("playbooks/03-deploy-app.yml")
        assert fake.commands[0] == [
            "ansible-playbook", "-i", str(tmp_path / "hosts.ini"), "playbooks/03-deploy-app.yml"
        ]


class TestSSHTargetHost:
    """Test cases for the ssh/scp adapter."""

    def host(self, tmp_path):
        return SSHTargetHost("203.0.113.10", "ubuntu", tmp_path / "key.pem")

    def test_connection_failure_is_unreachable(self, fake_run, tmp_path):
        fake_run((255, "", "ssh: connect to host 203.0.113.10 port 22: Connection timed out"))
        with pytest.raises(UnreachableTarget):
            self.host(tmp_path).container_count()

    def test_command_failure_is_external_tool_failure(self, fake_run, tmp_path):
        fake_run((1, "", "tar: app: Cannot stat"))
        with pytest.raises(ExternalToolFailure) as exc_info:
            self.host(tmp_path).create_archive("/opt/qr-forge", ["app"], "/tmp/a.tar.gz")
        assert exc_info.value.context.target == "203.0.113.10"

    def test_parses_usage(self, fake_run, tmp_path):
        fake_run((0, "42\n", ""), (0, "63", ""))
        host = self.host(tmp_path)
        assert host.disk_usage_percent() == 42
        assert host.memory_usage_percent() == 63

    def test_service_status_reports_inactive(self, fake_run, tmp_path):
        fake_run((3, "inactive\n", ""))
        assert self.host(tmp_path).service_status("docker") == "inactive"

    def test_move_refuses_existing_destination(self, fake_run, tmp_path):
        fake = fake_run()
        self.host(tmp_path).move("/opt/qr-forge", "/opt/qr-forge.old.1")
        command = fake.commands[0][-1]
        assert "if [ -e /opt/qr-forge.old.1 ]" in command
        assert "sudo mv -T /opt/qr-forge /opt/qr-forge.old.1" in command

    def test_extract_requires_new_directory(self, fake_run, tmp_path):
        fake = fake_run()
        self.host(tmp_path).extract_archive("/tmp/a.tar.gz", "/opt/qr-forge.restore.1")
        assert "sudo mkdir /opt/qr-forge.restore.1 &&" in fake.commands[0][-1]

    def test_ssh_options(self, fake_run, tmp_path):
        fake = fake_run()
        self.host(tmp_path).probe()
        args = fake.commands[0]
        assert args[0] == "ssh"
        assert "BatchMode=yes" in args
        assert "ubuntu@203.0.113.10" in args


def client_error(code, operation="PutObject"):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


class TestS3SnapshotStore:
    """Test cases for the S3 adapter."""

    def test_list_objects_sorted(self):
        client = mock.Mock()
        client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "backups/b", "Size": 2, "LastModified": datetime(2026, 1, 2)}]},
            {"Contents": [{"Key": "backups/a", "Size": 1}]},
            {},
        ]

        objects = S3SnapshotStore(client, "bkt").list_objects("backups/")

        assert [o.key for o in objects] == ["backups/a", "backups/b"]
        client.get_paginator.return_value.paginate.assert_called_once_with(Bucket="bkt", Prefix="backups/")

    def test_apply_expiration_without_existing_rules(self):
        client = mock.Mock()
        client.get_bucket_lifecycle_configuration.side_effect = client_error(
            "NoSuchLifecycleConfiguration", "GetBucketLifecycleConfiguration"
        )

        S3SnapshotStore(client, "bkt").apply_expiration("backups/", 30)

        rules = client.put_bucket_lifecycle_configuration.call_args.kwargs["LifecycleConfiguration"]["Rules"]
        assert rules == [{
            "ID": "expire-backups",
            "Status": "Enabled",
            "Filter": {"Prefix": "backups/"},
            "Expiration": {"Days": 30},
        }]

    def test_apply_expiration_keeps_other_rules(self):
        logs_rule = {
            "ID": "terraform-logs",
            "Status": "Enabled",
            "Filter": {"Prefix": "logs/"},
            "Expiration": {"Days": 7},
        }
        stale_rule = {
            "ID": "expire-backups",
            "Status": "Enabled",
            "Filter": {"Prefix": "backups/"},
            "Expiration": {"Days": 90},
        }
        client = mock.Mock()
        client.get_bucket_lifecycle_configuration.return_value = {"Rules": [logs_rule, stale_rule]}

        S3SnapshotStore(client, "bkt").apply_expiration("backups/", 30)

        client.get_bucket_lifecycle_configuration.assert_called_once_with(Bucket="bkt")
        rules = client.put_bucket_lifecycle_configuration.call_args.kwargs["LifecycleConfiguration"]["Rules"]
        assert [r["ID"] for r in rules] == ["terraform-logs", "expire-backups"]
        assert rules[0] == logs_rule
        assert rules[1]["Expiration"] == {"Days": 30}

    def test_apply_expiration_read_failure_mapped(self):
        client = mock.Mock()
        client.get_bucket_lifecycle_configuration.side_effect = client_error(
            "AccessDenied", "GetBucketLifecycleConfiguration"
        )

        with pytest.raises(ExternalToolFailure) as exc_info:
            S3SnapshotStore(client, "bkt").apply_expiration("backups/", 30)

        assert exc_info.value.operation == "S3 lifecycle rule"
        client.put_bucket_lifecycle_configuration.assert_not_called()

    def test_access_denied_mapped(self, tmp_path):
        client = mock.Mock()
        client.upload_file.side_effect = client_error("AccessDenied")

        with pytest.raises(ExternalToolFailure) as exc_info:
            S3SnapshotStore(client, "bkt").upload(tmp_path / "a.tar.gz", "backups/a.tar.gz")

        assert exc_info.value.category == ErrorCategory.CREDENTIAL
        assert exc_info.value.operation == "S3 upload"
        assert exc_info.value.suggestions

    def test_endpoint_error_is_unreachable(self, tmp_path):
        client = mock.Mock()
        client.download_file.side_effect = EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")

        with pytest.raises(UnreachableTarget):
            S3SnapshotStore(client, "bkt").download("backups/a.tar.gz", tmp_path / "a.tar.gz")


class TestSystemNetworkProbe:
    """Test cases for ping and HTTP probes."""

    def test_http_get(self):
        session = mock.Mock()
        session.get.return_value = mock.Mock(status_code=200, text="healthy")

        response = SystemNetworkProbe(session).http_get("http://203.0.113.10/health", 5)

        assert response.status == 200
        assert response.body == "healthy"

    def test_http_error_is_unreachable(self):
        session = mock.Mock()
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(UnreachableTarget):
            SystemNetworkProbe(session).http_get("http://203.0.113.10", 5)

    def test_ping(self, fake_run):
        fake = fake_run((1, "", ""))
        assert SystemNetworkProbe(mock.Mock()).ping("203.0.113.10", 2) is False
        assert fake.commands[0] == ["ping", "-c", "1", "-W", "2", "203.0.113.10"]
