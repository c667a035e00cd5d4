import pytest

from forge_deploy.config.parser import Config, ConfigValidationError


class TestConfig:
    """Test cases for loading forge.yaml."""

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = Config(str(tmp_path / "forge.yaml")).load()

        assert cfg.settings.project.app_name == "qr-forge"
        assert cfg.settings.pipeline.settle_seconds == 60
        assert cfg.settings.backup.prefix == "backups/"
        assert cfg.settings.backup.retention_days == 30
        assert cfg.settings.health.usage_threshold == 80
        assert cfg.settings.remote.app_root == "/opt/qr-forge"

    def test_paths_resolve_against_config_directory(self, tmp_path):
        path = tmp_path / "forge.yaml"
        path.write_text("paths:\n  state_dir: state\n")

        cfg = Config(str(path)).load()

        assert cfg.state_path == tmp_path / "state" / "pipeline-state.json"
        assert cfg.inventory_path == tmp_path / "ansible" / "inventory" / "hosts.ini"
        assert cfg.ssh_key_path == tmp_path / "terraform" / "qr-forge.pem"

    def test_overrides(self, tmp_path):
        path = tmp_path / "forge.yaml"
        path.write_text(
            "project:\n  app_name: shop\n"
            "remote:\n  app_root: /srv/shop/\n  backup_paths: [compose.yml]\n"
            "health:\n  usage_threshold: 90\n"
        )

        cfg = Config(str(path)).load()

        assert cfg.project.app_name == "shop"
        assert cfg.settings.remote.app_root == "/srv/shop"
        assert cfg.settings.remote.backup_paths == ["compose.yml"]
        assert cfg.settings.health.usage_threshold == 90

    def test_validation_errors_are_listed(self, tmp_path):
        path = tmp_path / "forge.yaml"
        path.write_text("remote:\n  app_root: relative\nbackup:\n  retention_days: 0\n")

        with pytest.raises(ConfigValidationError) as exc_info:
            Config(str(path)).load()

        assert len(exc_info.value.errors) == 2
        assert "remote -> app_root" in str(exc_info.value)

    def test_backup_paths_cannot_escape_root(self, tmp_path):
        path = tmp_path / "forge.yaml"
        path.write_text("remote:\n  backup_paths: ['../etc']\n")
        with pytest.raises(ConfigValidationError):
            Config(str(path)).load()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "forge.yaml"
        path.write_text("project: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
            Config(str(path)).load()

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "forge.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigValidationError):
            Config(str(path)).load()
