"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

router = APIRouter(tags=["health"])


def _report(request: Request) -> dict:
    checks = request.app.state.engine.health_check()
    return {
        "status": "healthy" if checks.healthy else "degraded",
        "checks": {
            "queue": checks.queue_reachable,
            "store": checks.store_reachable,
            "cache": checks.cache_reachable,
        },
    }


@router.get("/health")
def health(request: Request) -> dict:
    return _report(request)


@router.get("/ready")
def ready(request: Request, response: Response) -> dict:
    report = _report(request)
    if report["status"] != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return report
