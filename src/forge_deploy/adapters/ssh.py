"""SSH/SCP access to the target host."""

import shlex
from pathlib import Path
from typing import List

from forge_deploy.utils.errors import ErrorContext, ExternalToolFailure, UnreachableTarget
from forge_deploy.utils.logging import get_logger
from forge_deploy.utils.process import CommandResult, run_command
from .base import TargetHost

logger = get_logger(__name__)

# ssh reports its own connection failures with this exit status
SSH_CONNECTION_FAILURE = 255


class SSHTargetHost(TargetHost):
    """Target host reached with key-based ssh and scp."""

    def __init__(
        self,
        address: str,
        user: str,
        key_path: Path,
        connect_timeout: int = 5,
        compose_command: str = "docker-compose",
        command_timeout: float = 600,
    ):
        self.address = address
        self.user = user
        self.key_path = Path(key_path)
        self.connect_timeout = connect_timeout
        self.compose_command = compose_command
        self.command_timeout = command_timeout

    def _options(self) -> List[str]:
        return [
            '-i', str(self.key_path),
            '-o', 'StrictHostKeyChecking=no',
            '-o', 'UserKnownHostsFile=/dev/null',
            '-o', 'BatchMode=yes',
            '-o', f'ConnectTimeout={self.connect_timeout}',
        ]

    @property
    def destination(self) -> str:
        return f'{self.user}@{self.address}'

    def run(self, command: str) -> CommandResult:
        return run_command(
            ['ssh', *self._options(), self.destination, command],
            timeout=self.command_timeout,
        )

    def _check(self, operation: str, command: str) -> CommandResult:
        """Run ``command`` and convert failures into the error taxonomy."""
        result = self.run(command)
        context = ErrorContext(
            operation=operation,
            target=self.address,
            command=command,
            exit_code=result.returncode,
        )
        if result.returncode == SSH_CONNECTION_FAILURE:
            raise UnreachableTarget(
                f"SSH connection to {self.address} failed: {result.diagnostic()}",
                context=context,
            )
        if not result.ok:
            raise ExternalToolFailure(operation, result.diagnostic(), context=context)
        return result

    def download(self, remote_path: str, local_path: Path) -> None:
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        result = run_command(
            ['scp', *self._options(), f'{self.destination}:{remote_path}', str(local_path)],
            timeout=self.command_timeout,
        )
        if not result.ok:
            raise ExternalToolFailure(
                'scp download',
                result.diagnostic(),
                context=ErrorContext(target=self.address, exit_code=result.returncode),
            )

    def upload(self, local_path: Path, remote_path: str) -> None:
        result = run_command(
            ['scp', *self._options(), str(local_path), f'{self.destination}:{remote_path}'],
            timeout=self.command_timeout,
        )
        if not result.ok:
            raise ExternalToolFailure(
                'scp upload',
                result.diagnostic(),
                context=ErrorContext(target=self.address, exit_code=result.returncode),
            )

    def probe(self) -> None:
        result = self.run('exit')
        if not result.ok:
            raise UnreachableTarget(
                f"SSH access to {self.address} failed: {result.diagnostic()}",
                context=ErrorContext(operation='ssh probe', target=self.address),
            )

    def service_status(self, service: str) -> str:
        # is-active exits non-zero for inactive units; the status word is what matters
        result = self.run(f'systemctl is-active {shlex.quote(service)}')
        if result.returncode == SSH_CONNECTION_FAILURE:
            raise UnreachableTarget(f"SSH connection to {self.address} failed: {result.diagnostic()}")
        return result.stdout.strip() or 'unknown'

    def container_count(self) -> int:
        result = self._check('container count', 'docker ps -q | wc -l')
        return int(result.stdout.strip())

    def disk_usage_percent(self) -> int:
        result = self._check('disk usage', "df -P / | tail -1 | awk '{print $5}' | tr -d '%'")
        return int(result.stdout.strip())

    def memory_usage_percent(self) -> int:
        result = self._check(
            'memory usage', "free | awk '/^Mem:/ {printf \"%.0f\", $3/$2 * 100}'"
        )
        return int(result.stdout.strip())

    def create_archive(self, root: str, paths: List[str], archive_path: str) -> None:
        members = ' '.join(shlex.quote(p) for p in paths)
        self._check(
            'create archive',
            f'cd {shlex.quote(root)} && sudo tar -czf {shlex.quote(archive_path)} {members}',
        )

    def extract_archive(self, archive_path: str, dest_dir: str) -> None:
        # mkdir without -p: the staging directory must be new
        self._check(
            'extract archive',
            f'sudo mkdir {shlex.quote(dest_dir)} && '
            f'sudo tar -xzf {shlex.quote(archive_path)} -C {shlex.quote(dest_dir)}',
        )

    def stop_application(self, root: str) -> None:
        quoted = shlex.quote(root)
        self._check(
            'stop application',
            f'if [ -d {quoted} ]; then cd {quoted} && {self.compose_command} down; fi',
        )

    def start_application(self, root: str) -> None:
        self._check('start application', f'cd {shlex.quote(root)} && {self.compose_command} up -d')

    def move(self, src: str, dst: str) -> None:
        s, d = shlex.quote(src), shlex.quote(dst)
        self._check(
            f'move {src}',
            f'if [ -e {d} ]; then echo "refusing to overwrite {dst}" >&2; exit 1; fi; '
            f'sudo mv -T {s} {d}',
        )

    def set_owner(self, path: str, owner: str) -> None:
        self._check('restore ownership', f'sudo chown -R {owner}:{owner} {shlex.quote(path)}')

    def remove_file(self, path: str) -> None:
        self._check('remove transient file', f'sudo rm -f {shlex.quote(path)}')

    def path_exists(self, path: str) -> bool:
        result = self.run(f'test -e {shlex.quote(path)}')
        if result.returncode == SSH_CONNECTION_FAILURE:
            raise UnreachableTarget(f"SSH connection to {self.address} failed: {result.diagnostic()}")
        return result.ok
