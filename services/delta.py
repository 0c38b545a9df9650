"""Transient "+Nh"/"-Nh" annotations shown after a recompute."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.5


@dataclass(frozen=True)
class PriceChange:
    """A visible hour-delta annotation next to a form control."""

    control: str
    text: str
    tone: str  # "positive" or "negative"


def format_hours(hours: float) -> str:
    if hours == int(hours):
        return str(int(hours))
    return f"{hours:g}"


class ChangeDeltaIndicator:
    """
    Annotates the focused control with the hour change of the last recompute.

    The annotation is anchored to whichever control has focus, not to the
    control whose state changed; a recompute with stale focus (for example a
    programmatic restore) is attributed to that stale control.
    """

    def __init__(
        self,
        delay: float = DEFAULT_DELAY_SECONDS,
        on_change: Callable[[str, PriceChange | None], None] | None = None,
    ):
        self.delay = delay
        self.on_change = on_change
        self.visible: dict[str, PriceChange] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def on_recompute(
        self,
        previous_hours: float,
        new_hours: float,
        control: str | None,
    ) -> PriceChange | None:
        """Show the signed delta next to ``control``; nothing if hours are unchanged."""
        if control is None:
            return None
        difference = new_hours - previous_hours
        if difference == 0:
            return None

        sign = "+" if difference > 0 else ""
        change = PriceChange(
            control=control,
            text=f"{sign}{format_hours(difference)}h",
            tone="positive" if difference > 0 else "negative",
        )
        self._cancel_timer(control)
        self.visible[control] = change
        self._render(control, change)
        self._schedule_clear(control)
        return change

    def clear(self, control: str) -> None:
        self._cancel_timer(control)
        if self.visible.pop(control, None) is not None:
            self._render(control, None)

    def close(self) -> None:
        """Cancel pending clears; visible annotations are left as they are."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def _schedule_clear(self, control: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop: the annotation stays until cleared explicitly.
            return
        self._timers[control] = loop.call_later(self.delay, self.clear, control)

    def _cancel_timer(self, control: str) -> None:
        timer = self._timers.pop(control, None)
        if timer is not None:
            timer.cancel()

    def _render(self, control: str, change: PriceChange | None) -> None:
        if self.on_change is not None:
            self.on_change(control, change)
