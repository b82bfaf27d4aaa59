"""
Debug/Admin API

Small FastAPI surface over one router instance for inspecting routing state
and driving dispatch and failure reports by hand.

Endpoints:
- GET  /health - liveness and loaded model count
- GET  /models - configured virtual models and their targets
- GET  /metrics - per-target metrics summary
- GET  /cooldowns - active cooldown windows
- GET  /events - recent routing events
- POST /resolve - resolve a virtual model to a target
- POST /sessions/{session_id}/dispatch - bind or resume a session
- POST /sessions/{session_id}/failure - report a failure for a session

Usage:
    virtual-router-admin
    python -m virtual_router.api
"""

import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from virtual_router.router import FailureReport, ResolvedTarget, VirtualRouter
from virtual_router.settings import RouterSettings

logger = logging.getLogger(__name__)

routes = APIRouter(tags=["virtual-router"])


# ================== Request / Response Models ==================

class ResolveRequest(BaseModel):
    model: str = Field(..., description="Virtual model alias or prefixed id")


class DispatchRequest(BaseModel):
    model: str = Field(..., description="Virtual model alias or prefixed id")


class FailureRequest(BaseModel):
    status_code: Optional[int] = Field(None, description="HTTP status reported by the backend")
    error_name: Optional[str] = Field(None, description="Error class name, e.g. ProviderAuthError")
    message: Optional[str] = None


class TargetResponse(BaseModel):
    provider_id: str
    model_id: str
    key: str
    index: int
    candidates: List[str] = Field(default_factory=list)


class FailureResponse(BaseModel):
    advanced: bool
    exhausted: bool
    failed: Optional[str] = None
    next: Optional[TargetResponse] = None


def _target_response(resolved: ResolvedTarget) -> TargetResponse:
    return TargetResponse(
        provider_id=resolved.provider_id,
        model_id=resolved.model_id,
        key=resolved.key,
        index=resolved.index,
        candidates=[t.key for t in resolved.all_targets],
    )


def _router(request: Request) -> VirtualRouter:
    return request.app.state.router


# ================== Endpoints ==================

@routes.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    router = _router(request)
    return {"status": "ok", "virtual_models": len(router.list_models())}


@routes.get("/models")
async def list_models(request: Request) -> Dict[str, Any]:
    router = _router(request)
    models = {}
    for model_id in router.list_models():
        model = router.get_model(model_id)
        models[model_id] = {
            "strategy": model.strategy.value,
            "strategy_profile": model.strategy_profile,
            "targets": [t.key for t in model.targets],
        }
    return {"models": models, "warnings": list(router.config.warnings)}


@routes.get("/metrics")
async def metrics(request: Request) -> Dict[str, Any]:
    return _router(request).metrics_summary()


@routes.get("/cooldowns")
async def cooldowns(request: Request) -> Dict[str, float]:
    return _router(request).active_cooldowns()


@routes.get("/events")
async def events(request: Request, limit: int = 100) -> List[Dict[str, Any]]:
    return _router(request).events.recent(limit)


@routes.post("/resolve", response_model=TargetResponse)
async def resolve(body: ResolveRequest, request: Request) -> TargetResponse:
    router = _router(request)
    if router.get_model(body.model) is None:
        raise HTTPException(status_code=404, detail=f"unknown virtual model: {body.model}")

    resolved = router.resolve(body.model)
    if resolved is None:
        raise HTTPException(status_code=503, detail="no viable target")
    return _target_response(resolved)


@routes.post("/sessions/{session_id}/dispatch", response_model=TargetResponse)
async def dispatch(session_id: str, body: DispatchRequest, request: Request) -> TargetResponse:
    router = _router(request)
    if router.get_model(body.model) is None:
        raise HTTPException(status_code=404, detail=f"unknown virtual model: {body.model}")

    resolved = router.dispatch(session_id, body.model)
    if resolved is None:
        raise HTTPException(status_code=503, detail="no viable target")
    return _target_response(resolved)


@routes.post("/sessions/{session_id}/failure", response_model=FailureResponse)
async def report_failure(session_id: str, body: FailureRequest, request: Request) -> FailureResponse:
    router = _router(request)
    step = router.report_failure(
        session_id,
        FailureReport(status_code=body.status_code, error_name=body.error_name, message=body.message),
    )

    next_target = None
    if step.target is not None:
        cursor = router.sessions.get(session_id)
        next_target = TargetResponse(
            provider_id=step.target.provider,
            model_id=step.target.model_id,
            key=step.target.key,
            index=step.index,
            candidates=[t.key for t in cursor.targets] if cursor else [],
        )

    return FailureResponse(
        advanced=step.failed is not None,
        exhausted=step.exhausted,
        failed=step.failed.key if step.failed else None,
        next=next_target,
    )


def create_app(router: Optional[VirtualRouter] = None) -> FastAPI:
    """
    Build the admin application around a router instance

    Args:
        router: Router to expose; loaded from environment settings when omitted
    """
    router = router or VirtualRouter.from_settings()
    app = FastAPI(title="Virtual Model Router", version="0.1.0")
    app.state.router = router
    app.include_router(routes)
    return app


def main():
    settings = RouterSettings.from_env()
    app = create_app(VirtualRouter.from_settings(settings))
    logger.info(f"Serving virtual router admin API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
