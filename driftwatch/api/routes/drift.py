# driftwatch/api/routes/drift.py
from functools import lru_cache
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from driftwatch.core.drift.detector import DiffEngine, get_diff_engine
from driftwatch.core.drift.types import DiffResult, TrendAnalysis
from driftwatch.models.drift import EndpointCheckResult
from driftwatch.schemas.drift import (
    CompareRequest, EngineHealthResponse, ResponsePayload, TrendRequest
)
from driftwatch.services.drift_service import (
    InMemoryResponseHistory, ResponseHistory, analyze_endpoint_trends, check_endpoint
)


@lru_cache()
def get_response_history() -> ResponseHistory:
    """Response history shared by all requests of this process"""
    return InMemoryResponseHistory()


router = APIRouter(prefix="/drift", tags=["Drift Detection"])


@router.post("/compare", response_model=DiffResult)
async def compare_responses(
    request: CompareRequest,
    engine: DiffEngine = Depends(get_diff_engine)
):
    """Compare two responses and classify the drift between them"""
    return await run_in_threadpool(
        engine.compare_responses,
        request.previous.to_snapshot(),
        request.current.to_snapshot()
    )


@router.post("/trends", response_model=TrendAnalysis)
async def analyze_trends(
    request: TrendRequest,
    engine: DiffEngine = Depends(get_diff_engine)
):
    """Analyze stability and latency trends over a series of responses"""
    snapshots = [payload.to_snapshot() for payload in request.responses]
    return await run_in_threadpool(engine.analyze_trends, snapshots)


@router.post("/endpoints/{endpoint_id}/checks", response_model=EndpointCheckResult)
async def check_endpoint_response(
    endpoint_id: str,
    payload: ResponsePayload,
    history: ResponseHistory = Depends(get_response_history),
    engine: DiffEngine = Depends(get_diff_engine)
):
    """Record a response for an endpoint and report drift against the previous one"""
    return await run_in_threadpool(check_endpoint, endpoint_id, payload.to_snapshot(), history, engine)


@router.get("/endpoints/{endpoint_id}/trends", response_model=TrendAnalysis)
async def get_endpoint_trends(
    endpoint_id: str,
    limit: Optional[int] = Query(default=None, ge=2),
    history: ResponseHistory = Depends(get_response_history),
    engine: DiffEngine = Depends(get_diff_engine)
):
    """Trend analysis over the recorded responses of an endpoint"""
    return await run_in_threadpool(analyze_endpoint_trends, endpoint_id, history, engine, limit)


@router.get("/health", response_model=EngineHealthResponse)
async def get_engine_health(engine: DiffEngine = Depends(get_diff_engine)):
    """Report the configuration of the drift engine"""
    return EngineHealthResponse(
        status="ok",
        critical_field_patterns=list(getattr(engine.path_classifier, "patterns", ())),
        performance_threshold_floor_ms=engine.performance_threshold_floor / timedelta(milliseconds=1),
        common_change_min_frequency=engine.common_change_min_frequency
    )
