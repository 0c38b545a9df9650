"""Authorization gate deciding what the rate editor shows."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from schemas import RateTable
from services.errors import AuthDenied, FetchError, SubmitError
from services.identity import Identity, IdentityWidget
from services.rates_client import RatesClient, flatten_rates, validate_rates

logger = logging.getLogger(__name__)

LOGIN_MESSAGE = "Please log in with an admin account to edit rates."
FORBIDDEN_MESSAGE = "You do not have permission to update rates. Admin access required."
LOAD_ERROR_MESSAGE = "Failed to load rates. Please try refreshing."


class GateState(str, Enum):
    """What the admin page displays."""

    LOADING = "loading"
    EDITOR = "editor"
    LOGIN_PROMPT = "login_prompt"
    FORBIDDEN = "forbidden"
    ERROR = "error"


@dataclass(frozen=True)
class AuthState:
    """Read-only snapshot of the identity provider."""

    user: Identity | None
    roles: frozenset[str] = frozenset()

    @classmethod
    def from_identity(cls, user: Identity | None) -> "AuthState":
        return cls(user=user, roles=user.roles if user else frozenset())


def decide(auth: AuthState, admin_role: str = "admin") -> GateState:
    """Initial gate state for an auth snapshot."""
    if auth.user is None:
        return GateState.LOGIN_PROMPT
    if admin_role not in auth.roles:
        return GateState.FORBIDDEN
    return GateState.LOADING


class AdminGate:
    """
    State machine for the admin rate editor.

    The initial state comes from the identity widget's current user, read
    synchronously. Any login or logout notification restarts the gate from
    that same check. After close(), notifications are ignored.
    """

    def __init__(
        self,
        identity: IdentityWidget,
        client: RatesClient,
        admin_role: str = "admin",
        on_state_change: Callable[["AdminGate"], None] | None = None,
    ):
        self.identity = identity
        self.client = client
        self.admin_role = admin_role
        self.on_state_change = on_state_change
        self.state = GateState.LOADING
        self.message: str | None = None
        self.rates: RateTable | None = None
        self._generation = 0
        self._pending: asyncio.Task | None = None
        self._unsubscribe: list[Callable[[], None]] = []
        self._closed = False

    @property
    def form_fields(self) -> dict[str, Any]:
        """Current rates flattened for the edit form; empty unless editing."""
        if self.state is not GateState.EDITOR or self.rates is None:
            return {}
        return flatten_rates(self.rates)

    def evaluate(self) -> GateState:
        """Synchronously decide the state from the current identity snapshot."""
        self._generation += 1
        self.rates = None
        state = decide(AuthState.from_identity(self.identity.current_user()), self.admin_role)
        messages = {GateState.LOGIN_PROMPT: LOGIN_MESSAGE, GateState.FORBIDDEN: FORBIDDEN_MESSAGE}
        self._set_state(state, messages.get(state))
        return state

    async def start(self) -> GateState:
        """Subscribe to identity notifications and run the first evaluation."""
        self._unsubscribe = [
            self.identity.on_login(lambda _identity: self._reevaluate()),
            self.identity.on_logout(self._reevaluate),
        ]
        return await self.refresh()

    async def refresh(self) -> GateState:
        """Full re-evaluation, loading rates when the user is an admin."""
        if self.evaluate() is GateState.LOADING:
            await self._load(self._generation)
        return self.state

    async def retry(self) -> GateState:
        """Retry after a failed load."""
        return await self.refresh()

    async def settle(self) -> GateState:
        """Wait for a load started by a login/logout notification."""
        if self._pending is not None:
            await self._pending
        return self.state

    def close(self) -> None:
        self._closed = True
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    async def save(self, fields: RateTable | Mapping[str, Any]) -> str:
        """
        Submit edited rates as the current user.

        Raises AuthDenied for a non-admin user and SubmitError for anything
        else; the editor stays open either way.
        """
        if self.state is GateState.FORBIDDEN:
            raise AuthDenied(FORBIDDEN_MESSAGE)
        if self.state is not GateState.EDITOR:
            raise SubmitError("The rate editor is not ready")

        user = self.identity.current_user()
        table = validate_rates(fields)
        message = await self.client.submit_rates(table, user.token if user else None)
        self.rates = table
        logger.info(f"Rates saved by {user.email or user.subject}")
        return message

    def _reevaluate(self) -> None:
        if self._closed:
            return
        if self.evaluate() is not GateState.LOADING:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop: stays LOADING until the caller awaits refresh().
            return
        self._pending = loop.create_task(self._load(self._generation))

    async def _load(self, generation: int) -> None:
        try:
            rates = await self.client.fetch_rates()
        except FetchError as e:
            logger.error(f"Failed to fetch rates: {e.message}")
            if generation == self._generation:
                self._set_state(GateState.ERROR, LOAD_ERROR_MESSAGE)
            return
        # A login/logout during the fetch superseded this load.
        if generation != self._generation:
            return
        self.rates = rates
        self._set_state(GateState.EDITOR, None)

    def _set_state(self, state: GateState, message: str | None) -> None:
        self.state = state
        self.message = message
        if self.on_state_change is not None:
            self.on_state_change(self)
