"""Health check result models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class HealthCheckResult:
    """Outcome of one independent check."""

    name: str
    passed: bool
    detail: str
    duration: float = 0.0  # seconds


@dataclass
class HealthReport:
    """Ordered outcomes of a health aggregation run."""

    target: str
    results: List[HealthCheckResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def pass_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def fail_count(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def healthy(self) -> bool:
        """True when every check passed."""
        return self.fail_count == 0

    @property
    def predominantly_failing(self) -> bool:
        """More checks failed than passed."""
        return self.fail_count > self.pass_count

    def failed(self) -> List[HealthCheckResult]:
        return [r for r in self.results if not r.passed]

    def get(self, name: str) -> Optional[HealthCheckResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'target': self.target,
            'pass_count': self.pass_count,
            'fail_count': self.fail_count,
            'results': [
                {'name': r.name, 'passed': r.passed, 'detail': r.detail}
                for r in self.results
            ],
        }
