"""Estimation engine: selection + rate table -> hours and cost."""

import math
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from schemas import RateTable

WORK_HOURS_PER_WEEK = 40


@dataclass(frozen=True)
class Selection:
    """A user's in-progress choice of project type, design type and modules."""

    project_type: str | None = None
    design_type: str | None = None
    modules: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Selection":
        """Build from the stored/wire form ``{projectType, designType, modules}``."""
        modules = data.get("modules") or []
        if not isinstance(modules, (list, tuple, set, frozenset)):
            raise ValueError("modules must be a list")
        project_type = data.get("projectType")
        design_type = data.get("designType")
        for value in (project_type, design_type, *modules):
            if value is not None and not isinstance(value, str):
                raise ValueError(f"Selection values must be strings, got {value!r}")
        return cls(
            project_type=project_type or None,
            design_type=design_type or None,
            modules=frozenset(modules),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectType": self.project_type,
            "designType": self.design_type,
            "modules": sorted(self.modules),
        }


class EstimateResult(NamedTuple):
    """Derived totals for a selection; never stored."""

    total_hours: float
    total_cost: float


def estimate(selection: Selection, rates: RateTable) -> EstimateResult:
    """
    Sum the hours of every selected option and price them at the hourly rate.

    Identifiers missing from the rate table contribute 0 hours.
    """
    total_hours = rates.hours_for("project", selection.project_type)
    total_hours += rates.hours_for("design", selection.design_type)
    total_hours += sum(rates.hours_for("modules", m) for m in sorted(selection.modules))
    return EstimateResult(total_hours, total_hours * rates.hourly_rate)


def format_currency(amount: float) -> str:
    """Format as whole dollars with thousands grouping, e.g. ``$1,235``."""
    return f"${math.floor(amount + 0.5):,}"


def format_timeline(hours: float) -> str:
    """
    Bucket hours into 40-hour work weeks.

    Returns "< 1 week", "N week(s)" when the week count is whole,
    otherwise a "min-max weeks" range.
    """
    weeks = hours / WORK_HOURS_PER_WEEK
    min_weeks = math.floor(weeks)
    max_weeks = math.ceil(weeks)

    if min_weeks == 0 and max_weeks <= 1:
        return "< 1 week"
    if min_weeks == max_weeks:
        return f"{min_weeks} {'week' if min_weeks == 1 else 'weeks'}"
    return f"{min_weeks}-{max_weeks} weeks"


def describe_estimate(result: EstimateResult) -> tuple[str, str]:
    """Return (formatted_cost, formatted_timeline) for display."""
    return format_currency(result.total_cost), format_timeline(result.total_hours)
