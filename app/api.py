"""HTTP route definitions for the metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from metrics.registry import MetricsRegistry, build_default_registry

router = APIRouter()


def get_registry() -> MetricsRegistry:
    return build_default_registry()


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Current sensor readings in the text exposition format.",
)
async def metrics(registry: MetricsRegistry = Depends(get_registry)) -> PlainTextResponse:
    return PlainTextResponse(registry.render(), media_type=registry.content_type)
