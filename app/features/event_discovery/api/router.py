"""
Event discovery routes.

POST /discover-events runs a discovery; GET /discover-events/progress is
polled while it runs. /events exposes the persisted store.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.db.helpers import DatabaseError
from app.features.event_discovery.api.schemas import (
    ClearEventsResponse,
    DiscoverEventsRequest,
    DiscoverEventsResponse,
    EventListResponse,
    ProgressResponse,
)
from app.features.event_discovery.dependencies import get_orchestrator
from app.features.event_discovery.domain.errors import ConfigurationMissing
from app.features.event_discovery.services.orchestrator import DiscoveryOrchestrator
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["event-discovery"])


@router.post("/discover-events", response_model=DiscoverEventsResponse)
async def discover_events(
    body: DiscoverEventsRequest,
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
) -> DiscoverEventsResponse:
    request = body.to_domain()
    try:
        result = await orchestrator.discover(request)
    except ConfigurationMissing as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "configuration_missing", "missing": e.missing},
        ) from e

    return DiscoverEventsResponse.model_validate(result.to_dict())


@router.get("/discover-events/progress", response_model=ProgressResponse)
async def discovery_progress(
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
) -> ProgressResponse:
    return ProgressResponse.model_validate(orchestrator.progress.snapshot())


@router.get("/events", response_model=EventListResponse)
async def list_events(
    limit: int = Query(default=200, ge=1, le=1000),
    include_past: bool = Query(default=False),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
) -> EventListResponse:
    try:
        events = await orchestrator.list_events(limit=limit, include_past=include_past)
    except DatabaseError as e:
        logger.error("Listing events failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Event store unavailable") from e

    return EventListResponse.model_validate(
        {"events": [event.to_dict() for event in events], "count": len(events)}
    )


@router.delete("/events", response_model=ClearEventsResponse)
async def clear_events(
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
) -> ClearEventsResponse:
    try:
        deleted = await orchestrator.clear_events()
    except DatabaseError as e:
        logger.error("Clearing events failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Event store unavailable") from e

    return ClearEventsResponse(deleted=deleted)
