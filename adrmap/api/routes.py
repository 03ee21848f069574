"""FastAPI endpoints: rendered map, layer toggles and classified departments."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse

from adrmap.api.auth import verify_access_key
from adrmap.api.schemas import (
    DepartmentListOut,
    DepartmentOut,
    HealthOut,
    LayerOut,
    NotificationsOut,
    ReloadOut,
    StatisticsOut,
)
from adrmap.context import MapContext
from adrmap.pipeline import run_pipeline
from adrmap.processing.cleaner import normalize_key
from adrmap.processing.classifier import Status, annotate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["ADR Map API"])
map_router = APIRouter(tags=["Map"])


def get_context(request: Request) -> MapContext:
    """FastAPI dependency returning the context built at startup."""
    ctx = getattr(request.app.state, "context", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Map data is still loading")
    return ctx


# ---------------------------------------------------------------------------
# Map page
# ---------------------------------------------------------------------------


@map_router.get("/map", response_class=HTMLResponse, summary="Rendered map")
async def render_map(
    ctx: MapContext = Depends(get_context),
    _key: str = Depends(verify_access_key),
) -> HTMLResponse:
    return HTMLResponse(ctx.layers.surface.to_html())


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


@router.get("/layers", summary="List map layers", response_model=list[LayerOut])
def list_layers(
    ctx: MapContext = Depends(get_context),
    _key: str = Depends(verify_access_key),
) -> list[LayerOut]:
    return [LayerOut.model_validate(layer) for layer in ctx.layers.layers()]


@router.post("/layers/{layer_id}/toggle", summary="Toggle a layer", response_model=LayerOut)
async def toggle_layer(
    layer_id: str,
    ctx: MapContext = Depends(get_context),
    _key: str = Depends(verify_access_key),
) -> LayerOut:
    try:
        layer = ctx.layers.toggle(layer_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown layer: {layer_id}") from exc
    return LayerOut.model_validate(layer)


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


@router.get("/departments", summary="Classified departments", response_model=DepartmentListOut)
def list_departments(
    status: Status | None = Query(None, description="Filter by classification"),
    province: str | None = Query(None, description="Filter by province"),
    ctx: MapContext = Depends(get_context),
    _key: str = Depends(verify_access_key),
) -> DepartmentListOut:
    if not ctx.classification_ready:
        raise HTTPException(status_code=503, detail="ADR table unavailable, classification disabled")

    df = annotate(ctx.departments, ctx.registry)
    counts = {s.value: int((df["status"] == s.value).sum()) for s in Status}
    if status is not None:
        df = df[df["status"] == status.value]
    if province:
        df = df[df["department_key"].map(lambda k: k.province) == normalize_key(province)]

    data = []
    for row in df.itertuples(index=False):
        stats = ctx.registry.statistics_for(row.department_key)
        data.append(DepartmentOut(
            department=row.department_name,
            province=row.province_name,
            status=row.status,
            statistics=StatisticsOut.model_validate(stats) if stats is not None else None,
        ))
    return DepartmentListOut(total=len(data), counts=counts, data=data)


# ---------------------------------------------------------------------------
# Notifications and reload
# ---------------------------------------------------------------------------


@router.get("/notifications", summary="Load warnings", response_model=NotificationsOut)
def list_notifications(
    ctx: MapContext = Depends(get_context),
    _key: str = Depends(verify_access_key),
) -> NotificationsOut:
    return NotificationsOut(
        classification_ready=ctx.classification_ready,
        messages=list(ctx.notifications),
    )


@router.post("/reload", summary="Reload every source", response_model=ReloadOut)
async def reload_sources(
    request: Request,
    _key: str = Depends(verify_access_key),
) -> ReloadOut:
    ctx = await run_pipeline()
    request.app.state.context = ctx
    return ReloadOut(
        status="ok" if ctx.classification_ready else "degraded",
        departments=len(ctx.departments),
        overlays={layer_id: len(o.features) for layer_id, o in ctx.overlays.items()},
        notifications=list(ctx.notifications),
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", summary="Health check", response_model=HealthOut)
def health(request: Request) -> HealthOut:
    ctx = getattr(request.app.state, "context", None)
    if ctx is None:
        return HealthOut(status="loading", classification="unavailable")
    return HealthOut(
        status="ok",
        classification="ready" if ctx.classification_ready else "unavailable",
    )
