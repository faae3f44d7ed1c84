"""
Aggregation endpoints.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from aggregation.engine import AggregationEngine
from aggregation.exceptions import AggregationFailure, RequestValidationError
from core.cancellation import CancellationToken
from web_api.dependencies import get_engine
from web_api.schemas import (
    AggregatedDataResponse,
    AggregationRequestBody,
    ErrorResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/aggregation", tags=["Aggregation"])


async def _run_aggregation(
    body: AggregationRequestBody,
    engine: AggregationEngine,
):
    try:
        request = body.to_request()
    except RequestValidationError as e:
        logger.info(f"Rejected aggregation request: {e.message}")
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="Invalid request", message=e.message).model_dump(),
        )

    logger.info(
        "Aggregation request received with sources: "
        f"{', '.join(sorted(request.sources)) if request.sources else 'all'}"
    )

    try:
        response = await engine.aggregate(request, CancellationToken())
    except AggregationFailure as e:
        logger.error(f"Aggregation failed: {e.message}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Aggregation failed", message=e.message).model_dump(),
        )

    return AggregatedDataResponse.from_response(response)


@router.post(
    "/aggregate",
    response_model=AggregatedDataResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def aggregate(
    body: AggregationRequestBody,
    engine: AggregationEngine = Depends(get_engine),
):
    """
    Aggregate items from the requested sources.

    Sources that fail are listed in metadata.failed_sources unless
    every source is required, in which case the request fails.
    """
    return await _run_aggregation(body, engine)


@router.get(
    "",
    response_model=AggregatedDataResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_aggregated_data(
    sources: Optional[str] = Query(None, description="Comma-separated source names"),
    category: Optional[str] = Query(None),
    sort_by: str = Query("timestamp"),
    sort_direction: str = Query("desc"),
    max_items: Optional[int] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    engine: AggregationEngine = Depends(get_engine),
):
    """Query-string variant of POST /api/aggregation/aggregate."""
    body = AggregationRequestBody(
        sources=[s for s in sources.split(",") if s.strip()] if sources else None,
        category=category,
        from_date=from_date,
        to_date=to_date,
        sort_by=sort_by,
        sort_direction=sort_direction,
        max_items=max_items,
    )
    return await _run_aggregation(body, engine)
