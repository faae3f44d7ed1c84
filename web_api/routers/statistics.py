"""
Statistics endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from source_metrics.recorder import MetricsRecorder
from web_api.dependencies import get_recorder
from web_api.schemas import (
    ApiStatisticsResponse,
    ErrorResponse,
    MessageResponse,
    StatisticsSummaryResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/statistics", tags=["Statistics"])


def _failure(message: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=message, message=detail).model_dump(),
    )


@router.get("", response_model=StatisticsSummaryResponse, responses={500: {"model": ErrorResponse}})
def get_all_statistics(recorder: MetricsRecorder = Depends(get_recorder)):
    """Statistics for every source plus the overall summary."""
    result = recorder.get_all_statistics()
    if result.failed:
        logger.error(f"Failed to get statistics: {result.error.message}")
        return _failure("Failed to retrieve statistics", result.error.message)

    return StatisticsSummaryResponse.from_stats(result.value)


@router.get(
    "/{source_name}",
    response_model=ApiStatisticsResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_statistics(source_name: str, recorder: MetricsRecorder = Depends(get_recorder)):
    """Statistics for one source. Source names match case-insensitively."""
    name = next(
        (n for n in recorder.tracked_sources() if n.lower() == source_name.lower()),
        source_name,
    )
    result = recorder.get_statistics(name)
    if result.failed:
        logger.error(f"Failed to get statistics for {source_name}: {result.error.message}")
        return _failure("Failed to retrieve statistics", result.error.message)

    if result.value is None:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error=f"No statistics found for source: {source_name}").model_dump(),
        )

    return ApiStatisticsResponse.from_stats(result.value)


@router.delete("", response_model=MessageResponse, responses={500: {"model": ErrorResponse}})
def reset_statistics(recorder: MetricsRecorder = Depends(get_recorder)):
    """Discard all statistics."""
    result = recorder.reset()
    if result.failed:
        logger.error(f"Failed to reset statistics: {result.error.message}")
        return _failure("Failed to reset statistics", result.error.message)

    return MessageResponse(message="Statistics reset successfully")
