"""HTTP client for the rate table read/write endpoints."""

import logging
import math
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from schemas import RateTable
from services.errors import FetchError, SubmitError

logger = logging.getLogger(__name__)

RATES_PATH = "/api/rates"

# Timeout for API requests (seconds)
REQUEST_TIMEOUT = 10.0


def flatten_rates(rates: RateTable) -> dict[str, Any]:
    """
    Flatten a rate table into edit-form fields.

    Nested entries become dotted names, e.g. ``{"project": {"web": 40}}``
    becomes ``{"project.web": 40}``.
    """
    fields: dict[str, Any] = {}
    for key, value in rates.to_document().items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                fields[f"{key}.{sub_key}"] = sub_value
        else:
            fields[key] = value
    return fields


def _parse_rate(name: str, raw: Any) -> float:
    """Parse one form value; it must be a finite, non-negative number."""
    if isinstance(raw, bool):
        raise SubmitError(f"Invalid input for {name}: must be a number", field=name)
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        raise SubmitError(
            f"Invalid input for {name}: all values must be non-negative numbers", field=name
        ) from None
    if not math.isfinite(value) or value < 0:
        raise SubmitError(
            f"Invalid input for {name}: all values must be non-negative numbers", field=name
        )
    return value


def validate_rate_fields(fields: Mapping[str, Any]) -> RateTable:
    """
    Validate flat form fields and assemble a rate table.

    The first invalid field aborts the whole submission.
    """
    rates: dict[str, Any] = {"project": {}, "design": {}, "modules": {}}
    for name, raw in fields.items():
        value = _parse_rate(name, raw)
        if "." in name:
            category, key = name.split(".", 1)
            section = rates.setdefault(category, {})
            if not isinstance(section, dict):
                raise SubmitError(f"Invalid field name: {name}", field=name)
            section[key] = value
        else:
            rates[name] = value

    if "hourlyRate" not in rates:
        raise SubmitError("Invalid input: hourlyRate is required", field="hourlyRate")
    try:
        return RateTable.model_validate(rates)
    except ValidationError as e:
        raise SubmitError(f"Invalid rate table: {e.errors()[0]['msg']}") from e


def validate_rates(rates: RateTable | Mapping[str, Any]) -> RateTable:
    """Validate every leaf of a rate table or a mapping of form fields."""
    if isinstance(rates, RateTable):
        rates = flatten_rates(rates)
    return validate_rate_fields(rates)


def _response_message(response: httpx.Response, fallback: str) -> str:
    """Pull the server-provided error or message text out of a response."""
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or fallback)
    return fallback


class RatesClient:
    """
    Reads and writes the rate table over HTTP.

    One submission may be in flight at a time; a second one is refused
    rather than queued.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport
        self._submitting = False

    @property
    def submitting(self) -> bool:
        return self._submitting

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        )

    async def fetch_rates(self) -> RateTable:
        """Fetch the current rate table. Raises FetchError on any failure."""
        try:
            async with self._client() as client:
                response = await client.get(RATES_PATH)
        except httpx.HTTPError as e:
            logger.error(f"Rates fetch failed: {e}")
            raise FetchError(f"Could not reach the rates service: {e}") from e

        if not response.is_success:
            message = _response_message(response, "Failed to fetch rates")
            logger.error(f"Rates fetch HTTP error: {response.status_code} {message}")
            raise FetchError(message, status=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError("Rates response was not valid JSON", status=response.status_code) from e
        if not isinstance(data, dict):
            raise FetchError("Rates response was not an object", status=response.status_code)
        return RateTable.from_store(data)

    async def submit_rates(
        self,
        rates: RateTable | Mapping[str, Any],
        credential: str | None,
    ) -> str:
        """
        Validate and overwrite the stored rate table.

        Validation and credential checks happen before any network I/O.
        Returns the server's success message; raises SubmitError otherwise.
        """
        if self._submitting:
            raise SubmitError("A submission is already in progress")
        table = validate_rates(rates)
        if not credential:
            raise SubmitError("Authentication error. Please log in again.", status=401)

        self._submitting = True
        try:
            async with self._client() as client:
                response = await client.post(
                    RATES_PATH,
                    json=table.to_document(),
                    headers={"Authorization": f"Bearer {credential}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Rates submission failed: {e}")
            raise SubmitError(f"Could not reach the rates service: {e}") from e
        finally:
            self._submitting = False

        if not response.is_success:
            message = _response_message(response, "Server error")
            logger.warning(f"Rates submission rejected: {response.status_code} {message}")
            raise SubmitError(message, status=response.status_code)

        logger.info("Rates submitted")
        return _response_message(response, "Rates updated successfully!")
