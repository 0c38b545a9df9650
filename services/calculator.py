"""Calculator page session: rates, selection and totals in one place."""

import logging
from dataclasses import replace

from schemas import RateTable
from services.delta import ChangeDeltaIndicator
from services.errors import FetchError
from services.pricing import EstimateResult, Selection, describe_estimate, estimate
from services.rates_client import RatesClient
from services.selection_cache import SelectionCache

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = (
    "We couldn't load the calculator settings. Please try refreshing the page."
)


def control_id(group: str, value: str) -> str:
    """Identifier of a form control, e.g. ``module:seo``."""
    return f"{group}:{value}"


class CalculatorController:
    """
    Owns the rate table and the selection for one calculator session.

    Every selection change recomputes the estimate, annotates the focused
    control with the hour delta and saves the selection locally.
    """

    def __init__(
        self,
        client: RatesClient,
        cache: SelectionCache,
        indicator: ChangeDeltaIndicator | None = None,
    ):
        self.client = client
        self.cache = cache
        self.indicator = indicator or ChangeDeltaIndicator()
        self.rates: RateTable | None = None
        self.selection = Selection()
        self.result: EstimateResult | None = None
        self.last_hours = 0.0
        self.focused: str | None = None
        self.error: str | None = None

    @property
    def available(self) -> bool:
        return self.rates is not None

    async def initialize(self) -> bool:
        """
        Fetch rates, restore the saved selection and compute initial totals.

        On a fetch failure the calculator becomes unavailable; there is no
        automatic retry.
        """
        try:
            self.rates = await self.client.fetch_rates()
        except FetchError as e:
            logger.error(f"Initialization error: {e.message}")
            self.error = UNAVAILABLE_MESSAGE
            return False

        self.selection = self.cache.load() or Selection()
        self.recompute()
        return True

    def focus(self, control: str | None) -> None:
        self.focused = control

    def select_project(self, project_type: str) -> EstimateResult | None:
        self.focus(control_id("projectType", project_type))
        return self._update(replace(self.selection, project_type=project_type))

    def select_design(self, design_type: str) -> EstimateResult | None:
        self.focus(control_id("designType", design_type))
        return self._update(replace(self.selection, design_type=design_type))

    def toggle_module(self, module: str, enabled: bool | None = None) -> EstimateResult | None:
        """Check or uncheck a module; ``enabled=None`` flips it."""
        self.focus(control_id("module", module))
        if enabled is None:
            enabled = module not in self.selection.modules
        modules = self.selection.modules | {module} if enabled else self.selection.modules - {module}
        return self._update(replace(self.selection, modules=frozenset(modules)))

    def recompute(self) -> EstimateResult | None:
        """Recompute totals for the current selection; no-op until rates load."""
        if self.rates is None:
            return None
        result = estimate(self.selection, self.rates)
        self.indicator.on_recompute(self.last_hours, result.total_hours, self.focused)
        self.last_hours = result.total_hours
        self.result = result
        self.cache.save(self.selection)
        return result

    def totals(self) -> tuple[str, str] | None:
        """Formatted (cost, timeline) for the current result."""
        if self.result is None:
            return None
        return describe_estimate(self.result)

    def close(self) -> None:
        self.indicator.close()

    def _update(self, selection: Selection) -> EstimateResult | None:
        self.selection = selection
        return self.recompute()
