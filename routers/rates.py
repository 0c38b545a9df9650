"""Rate table read/write endpoints and the server-side estimate."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_admin
from config import get_settings
from database import get_db
from schemas import (
    ErrorResponse,
    EstimateResponse,
    MessageResponse,
    RateTable,
    SelectionPayload,
)
from services.document_store import DocumentStore
from services.identity import Identity
from services.pricing import Selection, describe_estimate, estimate

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in (401, 403, 404, 405, 422, 500)
}


async def load_rate_document(db: AsyncSession) -> dict[str, Any]:
    """Read the stored rate document, raising 404/500 as HTTP errors."""
    try:
        data = await DocumentStore(db).get(settings.rates_collection, settings.rates_document)
    except SQLAlchemyError:
        logger.exception("Error retrieving rates")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="The rates configuration could not be read.",
        )

    if data is None:
        logger.error(
            f"Error: {settings.rates_collection}/{settings.rates_document} document not found."
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="The requested rates configuration was not found.",
        )
    return data


@router.get("/rates", responses=ERROR_RESPONSES)
async def get_rates(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, Any]:
    """Get the current rate table. No authentication required."""
    data = await load_rate_document(db)
    logger.info("Successfully retrieved rates data.")
    return data


@router.post("/rates", response_model=MessageResponse, responses=ERROR_RESPONSES)
@limiter.limit("10/minute")
async def update_rates(
    request: Request,
    rates: RateTable,
    db: Annotated[AsyncSession, Depends(get_db)],
    identity: Annotated[Identity, Depends(require_admin)],
) -> MessageResponse:
    """
    Replace the rate table (admin only).

    The body must be the complete table; the stored document is overwritten,
    not merged, so keys missing from the body are removed.

    Rate limited to 10 requests per minute.
    """
    try:
        await DocumentStore(db).set(
            settings.rates_collection, settings.rates_document, rates.to_document()
        )
    except SQLAlchemyError:
        logger.exception("Error updating rates")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "Failed to update rates",
                "error": "The rates configuration could not be saved.",
            },
        )

    logger.info(f"Rates updated by {identity.email or identity.subject}")
    return MessageResponse(message="Rates updated successfully!")


@router.post("/estimate", response_model=EstimateResponse, responses=ERROR_RESPONSES)
async def create_estimate(
    payload: SelectionPayload,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> EstimateResponse:
    """Estimate hours and cost for a selection against the stored rates."""
    rates = RateTable.from_store(await load_rate_document(db))
    selection = Selection(
        project_type=payload.project_type,
        design_type=payload.design_type,
        modules=frozenset(payload.modules),
    )
    result = estimate(selection, rates)
    formatted_cost, formatted_timeline = describe_estimate(result)
    return EstimateResponse(
        total_hours=result.total_hours,
        total_cost=result.total_cost,
        formatted_cost=formatted_cost,
        formatted_timeline=formatted_timeline,
    )
