"""HTML page routes for the frontend."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.rates import load_rate_document
from schemas import RateTable
from services.pricing import Selection, describe_estimate, estimate

logger = logging.getLogger(__name__)

router = APIRouter()
templates = Jinja2Templates(directory="templates")


@router.get("/", response_class=HTMLResponse)
async def calculator_page(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    project_type: Annotated[str | None, Query(alias="projectType")] = None,
    design_type: Annotated[str | None, Query(alias="designType")] = None,
    modules: Annotated[list[str], Query(alias="module")] = [],
):
    """Calculator page; the selection arrives as query parameters."""
    try:
        rates = RateTable.from_store(await load_rate_document(db))
    except HTTPException as e:
        logger.error(f"Initialization Error: {e.detail}")
        return templates.TemplateResponse(
            request, "unavailable.html", status_code=e.status_code
        )

    selection = Selection(
        project_type=project_type or None,
        design_type=design_type or None,
        modules=frozenset(modules),
    )
    result = estimate(selection, rates)
    formatted_cost, formatted_timeline = describe_estimate(result)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "rates": rates,
            "selection": selection,
            "total_cost": formatted_cost,
            "total_timeline": formatted_timeline,
        },
    )
