"""Health aggregation over a fixed, ordered list of independent checks."""

import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from forge_deploy.adapters.base import NetworkProbe, TargetHost
from forge_deploy.config.models import HealthConfig
from forge_deploy.state.models import PipelineState
from forge_deploy.utils.errors import DeploymentError, InvalidSelection
from forge_deploy.utils.logging import get_logger
from .models import HealthCheckResult, HealthReport

logger = get_logger(__name__)

CHECK_ORDER: Tuple[str, ...] = (
    'reachability',
    'remote_access',
    'runtime_service',
    'workload_processes',
    'http_response',
    'liveness',
    'disk_usage',
    'memory_usage',
)

CHECK_LABELS: Dict[str, str] = {
    'reachability': 'Server connectivity',
    'remote_access': 'SSH access',
    'runtime_service': 'Container runtime',
    'workload_processes': 'Running containers',
    'http_response': 'HTTP endpoint',
    'liveness': 'Health endpoint',
    'disk_usage': 'Disk space',
    'memory_usage': 'Memory usage',
}

# Each check returns (passed, detail)
CheckOutcome = Tuple[bool, str]


class HealthAggregator:
    """Runs every check against the target and collects the results.

    Checks never short-circuit: a failure (or an exception raised inside a
    check) is recorded and the next check still runs, so the report shows
    which layer is broken.
    """

    def __init__(
        self,
        host_factory: Callable[[PipelineState], TargetHost],
        network: NetworkProbe,
        config: Optional[HealthConfig] = None,
        runtime_service: str = 'docker',
    ):
        """
        Args:
            host_factory: Builds the TargetHost for the state's target
            network: Probe for ICMP and HTTP checks
            config: Thresholds and endpoints
            runtime_service: Init-system unit of the container runtime
        """
        self.host_factory = host_factory
        self.network = network
        self.config = config or HealthConfig()
        self.runtime_service = runtime_service

    def run(self, state: PipelineState, only: Optional[Iterable[str]] = None) -> HealthReport:
        """Run the checks (all, or the named subset) in their fixed order."""
        names = self._select(only)
        host = self.host_factory(state)
        checks = self._checks(state, host)

        report = HealthReport(target=state.target_address, started_at=datetime.utcnow())
        for name in names:
            report.results.append(self._run_one(name, checks[name]))
        report.finished_at = datetime.utcnow()

        logger.info(
            f"Health check finished: {report.pass_count} passed, {report.fail_count} failed",
            extra={'target': state.target_address},
        )
        return report

    def _select(self, only: Optional[Iterable[str]]) -> List[str]:
        if only is None:
            return list(CHECK_ORDER)
        wanted = set(only)
        unknown = wanted - set(CHECK_ORDER)
        if unknown:
            raise InvalidSelection(f"Unknown health checks: {', '.join(sorted(unknown))}")
        return [name for name in CHECK_ORDER if name in wanted]

    def _run_one(self, name: str, check: Callable[[], CheckOutcome]) -> HealthCheckResult:
        start = time.monotonic()
        try:
            passed, detail = check()
        except DeploymentError as e:
            passed, detail = False, e.message
            logger.debug(f"Health check {name} raised", exc_info=True)
        except Exception as e:
            passed, detail = False, f"{type(e).__name__}: {e}"
            logger.debug(f"Health check {name} raised", exc_info=True)
        duration = time.monotonic() - start

        level = logger.info if passed else logger.warning
        level(f"{CHECK_LABELS[name]}: {detail}", extra={'operation': name, 'duration': duration})
        return HealthCheckResult(name=name, passed=passed, detail=detail, duration=duration)

    def _checks(self, state: PipelineState, host: TargetHost) -> Dict[str, Callable[[], CheckOutcome]]:
        cfg = self.config
        address = state.target_address
        threshold = cfg.usage_threshold

        def reachability() -> CheckOutcome:
            if self.network.ping(address, cfg.ping_timeout):
                return True, 'Server is reachable'
            return False, 'Server is not reachable'

        def remote_access() -> CheckOutcome:
            host.probe()
            return True, 'SSH access is working'

        def runtime_service() -> CheckOutcome:
            status = host.service_status(self.runtime_service)
            if status == 'active':
                return True, f'{self.runtime_service} is running'
            return False, f'{self.runtime_service} is not running ({status})'

        def workload_processes() -> CheckOutcome:
            count = host.container_count()
            if count > 0:
                return True, f'Containers are running ({count} container(s))'
            return False, 'No containers running'

        def http_response() -> CheckOutcome:
            response = self.network.http_get(state.app_url, cfg.http_timeout)
            if response.status == 200:
                return True, f'Application is responding (HTTP {response.status})'
            return False, f'Application is not responding (HTTP {response.status})'

        def liveness() -> CheckOutcome:
            url = state.app_url.rstrip('/') + cfg.liveness_path
            response = self.network.http_get(url, cfg.http_timeout)
            body = response.body.strip()
            if response.status == 200 and body == cfg.liveness_body:
                return True, 'Health check passed'
            return False, f'Health check failed (HTTP {response.status}: {body[:80]!r})'

        def disk_usage() -> CheckOutcome:
            percent = host.disk_usage_percent()
            if percent < threshold:
                return True, f'Disk usage is healthy ({percent}% used)'
            return False, f'Disk usage is high ({percent}% used)'

        def memory_usage() -> CheckOutcome:
            percent = host.memory_usage_percent()
            if percent < threshold:
                return True, f'Memory usage is healthy ({percent}% used)'
            return False, f'Memory usage is high ({percent}% used)'

        return {
            'reachability': reachability,
            'remote_access': remote_access,
            'runtime_service': runtime_service,
            'workload_processes': workload_processes,
            'http_response': http_response,
            'liveness': liveness,
            'disk_usage': disk_usage,
            'memory_usage': memory_usage,
        }
