import pytest

from forge_deploy.pipeline.prerequisites import PrerequisiteChecker
from forge_deploy.pipeline.steps import StepRange
from forge_deploy.utils.errors import PrerequisiteMissing, StateMissing
from tests.fakes import always_found


class CredentialsCheck:
    def __init__(self, result=True):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.result


def checker(config, state_manager, credentials=None, which=always_found):
    return PrerequisiteChecker(config, state_manager, credentials or CredentialsCheck(), which=which)


class TestPrerequisiteChecker:
    """Test cases for per-range prerequisite checks."""

    def test_full_range_passes(self, config, state_manager):
        credentials = CredentialsCheck()
        checker(config, state_manager, credentials).ensure(StepRange.full())
        assert credentials.calls == 1

    def test_missing_state_raised_before_anything_else(self, config, state_manager):
        credentials = CredentialsCheck()
        lookups = []

        def which(name):
            lookups.append(name)
            return None

        with pytest.raises(StateMissing):
            checker(config, state_manager, credentials, which).ensure(StepRange(2, 4))

        assert lookups == []
        assert credentials.calls == 0

    def test_missing_binary_reported(self, config, state_manager):
        which = lambda name: None if name == "terraform" else f"/bin/{name}"
        with pytest.raises(PrerequisiteMissing) as exc_info:
            checker(config, state_manager, which=which).ensure(StepRange(1, 1))
        assert exc_info.value.missing == ["terraform executable"]

    def test_only_relevant_phases_checked(self, config, state_manager, deployed_state):
        # Verify alone does not need terraform or ansible
        which = lambda name: f"/bin/{name}" if name in ("ssh", "ping") else None
        credentials = CredentialsCheck()
        checker(config, state_manager, credentials, which).ensure(StepRange(4, 4))
        assert credentials.calls == 0

    def test_inventory_required_when_provisioning_not_in_range(self, config, state_manager, deployed_state):
        config.inventory_path.unlink()
        missing = checker(config, state_manager).check(StepRange(2, 2))
        assert any("ansible inventory" in name for name in missing)

    def test_inventory_not_required_when_provisioning(self, config, state_manager):
        missing = checker(config, state_manager).check(StepRange(1, 2))
        assert missing == []

    def test_credentials_checked_only_after_local_checks(self, config, state_manager):
        credentials = CredentialsCheck(result=False)
        (config.resolve("app")).rmdir()

        missing = checker(config, state_manager, credentials).check(StepRange.full())

        assert credentials.calls == 0
        assert len(missing) == 1 and "application source directory" in missing[0]

    def test_invalid_credentials_reported(self, config, state_manager):
        missing = checker(config, state_manager, CredentialsCheck(result=False)).check(StepRange(1, 1))
        assert missing == ["AWS credentials (aws sts get-caller-identity)"]

    def test_missing_playbook(self, config, state_manager, deployed_state, workspace):
        (workspace / "ansible" / "playbooks" / "03-deploy-app.yml").unlink()

        with pytest.raises(PrerequisiteMissing) as exc_info:
            checker(config, state_manager).ensure(StepRange(3, 3))

        assert len(exc_info.value.missing) == 1
        assert "deploy playbook" in exc_info.value.missing[0]
