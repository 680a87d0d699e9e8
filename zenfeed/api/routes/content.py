"""
Content source endpoints - batch and single-source fetch, validation.

Thin layer over ContentAggregationService: request shaping and status codes
only, no aggregation logic.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from zenfeed.api.dependencies import get_aggregation_service
from zenfeed.api.models import (
    ErrorResponse,
    FetchContentRequest,
    FetchContentResponse,
    PlatformsResponse,
    ValidateSourceRequest,
    ValidateSourceResponse,
)
from zenfeed.content.errors import MalformedRequestError
from zenfeed.content.schemas import ContentSource, FetchOptions, FetchResult
from zenfeed.services.aggregation_service import ContentAggregationService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/content-sources")


@router.post(
    "/fetch",
    response_model=FetchContentResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Fetch and merge content from many sources",
)
async def fetch_content(
    request: FetchContentRequest,
    service: ContentAggregationService = Depends(get_aggregation_service),
) -> FetchContentResponse:
    """
    Aggregate content from every source in the request.

    One failing source never fails the request: failures are listed in
    `errors`. Only a structurally invalid request returns 400.
    """
    try:
        if request.prioritize:
            result = await service.aggregate_with_priority(request.sources, request.options)
        else:
            result = await service.aggregate_all_content(request.sources, request.options)
    except MalformedRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return FetchContentResponse(
        **result.model_dump(),
        total_items=len(result.items),
        supported_platforms=service.get_available_platforms(),
    )


@router.get(
    "/fetch",
    response_model=FetchResult,
    responses={400: {"model": ErrorResponse}},
    summary="Fetch content from one source",
)
async def fetch_single_source(
    source_id: str | None = Query(default=None, alias="sourceId"),
    source_type: str | None = Query(default=None, alias="type"),
    limit: int = Query(default=10, description="Clamped to 1..50"),
    url: str | None = Query(default=None),
    username: str | None = Query(default=None),
    include_metrics: bool = Query(default=False, alias="includeMetrics"),
    service: ContentAggregationService = Depends(get_aggregation_service),
) -> FetchResult:
    if not source_id or not source_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="sourceId and type parameters are required",
        )
    if not service.is_platform_supported(source_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid source type",
        )

    source = ContentSource(
        id=source_id,
        type=source_type,
        name="Preview Source",
        url=url,
        username=username,
    )
    return await service.fetch_content_from_source(
        source,
        FetchOptions(limit=limit, include_metrics=include_metrics),
    )


@router.post(
    "/validate",
    response_model=ValidateSourceResponse,
    summary="Validate a source before saving it",
)
async def validate_source(
    request: ValidateSourceRequest,
    service: ContentAggregationService = Depends(get_aggregation_service),
) -> ValidateSourceResponse:
    """
    Check a descriptor locally and against the platform.

    Always 200; `valid=false` carries the reason. The platform metadata of a
    valid source is returned so the UI can prefill its name.
    """
    source = request.to_source()
    result = await service.validate_source(source)

    source_info = result.source_info
    if result.valid and source_info is None:
        info = await service.get_source_info(source)
        source_info = info.info

    return ValidateSourceResponse(
        valid=result.valid,
        error=result.error,
        error_code=result.error_code,
        source_info=source_info,
        supported_platforms=service.get_available_platforms(),
    )


@router.get(
    "/platforms",
    response_model=PlatformsResponse,
    summary="List supported source types",
)
async def list_platforms(
    service: ContentAggregationService = Depends(get_aggregation_service),
) -> PlatformsResponse:
    return PlatformsResponse(platforms=service.get_available_platforms())
