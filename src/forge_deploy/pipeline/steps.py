"""Pipeline phases and operator-requested phase ranges."""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

from forge_deploy.utils.errors import InvalidSelection


class Step(IntEnum):
    """The four ordered pipeline phases."""
    PROVISION = 1
    CONFIGURE = 2
    DEPLOY = 3
    VERIFY = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def title(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES = {
    Step.PROVISION: "Deploying Infrastructure",
    Step.CONFIGURE: "Configuring Server",
    Step.DEPLOY: "Deploying Application",
    Step.VERIFY: "Running Health Check",
}

FIRST_STEP = Step.PROVISION
LAST_STEP = Step.VERIFY


def _parse_step(option: str, value: str) -> int:
    try:
        number = int(str(value).strip())
    except ValueError:
        raise InvalidSelection(
            f"Invalid value for {option}: {value!r} is not an integer between "
            f"{int(FIRST_STEP)} and {int(LAST_STEP)}"
        )
    if not FIRST_STEP <= number <= LAST_STEP:
        raise InvalidSelection(
            f"Invalid value for {option}: {number} is not between {int(FIRST_STEP)} and {int(LAST_STEP)}"
        )
    return number


@dataclass(frozen=True)
class StepRange:
    """Contiguous range of phases, 1 <= start <= end <= 4."""

    start: int = int(FIRST_STEP)
    end: int = int(LAST_STEP)

    def __post_init__(self):
        if not (FIRST_STEP <= self.start <= self.end <= LAST_STEP):
            raise InvalidSelection(
                f"Invalid step range {self.start}-{self.end}: "
                f"require {int(FIRST_STEP)} <= start <= end <= {int(LAST_STEP)}"
            )

    @classmethod
    def full(cls) -> "StepRange":
        return cls(int(FIRST_STEP), int(LAST_STEP))

    @classmethod
    def from_options(
        cls,
        start: Optional[str] = None,
        end: Optional[str] = None,
        step: Optional[str] = None,
    ) -> "StepRange":
        """Build a range from --start/--end/--step option values.

        ``--step N`` is shorthand for ``--start N --end N`` and cannot be
        combined with the other two.
        """
        if step is not None:
            if start is not None or end is not None:
                raise InvalidSelection("--step cannot be combined with --start or --end")
            number = _parse_step("--step", step)
            return cls(number, number)

        first = _parse_step("--start", start) if start is not None else int(FIRST_STEP)
        last = _parse_step("--end", end) if end is not None else int(LAST_STEP)
        return cls(first, last)

    def steps(self) -> List[Step]:
        return [Step(n) for n in range(self.start, self.end + 1)]

    def contains(self, step: Step) -> bool:
        return self.start <= int(step) <= self.end

    @property
    def requires_state(self) -> bool:
        """Ranges that skip provisioning act on an existing deployment."""
        return self.start > FIRST_STEP

    def __str__(self) -> str:
        if self.start == self.end:
            return f"step {self.start}"
        return f"steps {self.start}-{self.end}"
