"""Full load pipeline: fetch -> parse -> register -> assemble -> render state.

Run with:  python -m adrmap.pipeline
"""

from __future__ import annotations

import asyncio
import logging

from adrmap.context import MapContext
from adrmap.ingestion import geometry
from adrmap.ingestion.fetcher import Fetcher, HttpFetcher
from adrmap.ingestion.loaders import (
    DataLoadError,
    OverlayData,
    load_adr,
    load_all_statistics,
    load_overlay,
)
from adrmap.ingestion.sources import (
    DEFAULT_SOURCES,
    LAYER_CATALOG,
    LayerConfig,
    OverlaySource,
    SourceConfig,
)
from adrmap.processing.registry import DepartmentRegistry
from adrmap.render.layers import LayerManager
from adrmap.render.map import MapSurface

logger = logging.getLogger(__name__)


async def load_department_data(fetcher: Fetcher, sources: SourceConfig) -> DepartmentRegistry:
    """Load the ADR table, then every province's statistics.

    Raises :class:`DataLoadError` when the ADR table fails; statistics
    failures are logged and skipped.
    """
    registry = DepartmentRegistry()
    registry.add_adr(await load_adr(fetcher, sources.adr_path))

    batch = await load_all_statistics(fetcher, sources.statistics_paths)
    registry.add_statistics(batch.records)
    registry.load_failures.update(batch.failures)
    logger.info("Registry ready: %r", registry)
    return registry


async def _load_overlay_layer(
    fetcher: Fetcher,
    source: OverlaySource,
    layers: LayerManager,
) -> OverlayData:
    layer = layers.get(source.layer_id)
    return await load_overlay(fetcher, source, color=layer.color)


async def _load_overlays(
    fetcher: Fetcher,
    sources: SourceConfig,
    layers: LayerManager,
) -> tuple[dict[str, OverlayData], list[str]]:
    results = await asyncio.gather(
        *(_load_overlay_layer(fetcher, src, layers) for src in sources.overlays),
        return_exceptions=True,
    )
    overlays: dict[str, OverlayData] = {}
    messages: list[str] = []
    for src, result in zip(sources.overlays, results):
        if isinstance(result, BaseException):
            logger.warning("Could not load overlay %s: %s", src.layer_id, result, exc_info=result)
            messages.append(f"No se pudo cargar la capa {src.layer_id}")
            continue
        overlays[src.layer_id] = result
        if result.report.error_count:
            messages.append(result.report.summary())
    return overlays, messages


async def build_context(
    fetcher: Fetcher,
    sources: SourceConfig = DEFAULT_SOURCES,
    catalog: list[LayerConfig] = LAYER_CATALOG,
) -> MapContext:
    """Run every load and return the context the renderer works from.

    Department data and boundaries load concurrently; overlays load after,
    they take no part in the classification join.
    """
    ctx = MapContext(layers=LayerManager(catalog))

    logger.info("=== STEP 1: Loading department data and boundaries ===")
    data_result, geometry_batch = await asyncio.gather(
        load_department_data(fetcher, sources),
        geometry.load_all(fetcher, sources),
        return_exceptions=True,
    )
    if isinstance(geometry_batch, BaseException):
        raise geometry_batch

    if isinstance(data_result, DataLoadError):
        logger.error("Classification disabled: %s", data_result)
        ctx.notify("No se pudo cargar la tabla ADR: la capa de clasificacion no esta disponible")
    elif isinstance(data_result, BaseException):
        raise data_result
    else:
        ctx.registry = data_result
        for url in data_result.load_failures:
            ctx.notify(f"No se pudieron cargar las estadisticas {url}")

    ctx.departments = geometry_batch.features
    for slug in geometry_batch.failures:
        ctx.notify(f"No se pudieron cargar los limites de {geometry.province_from_slug(slug)}")

    logger.info("=== STEP 2: Loading overlays ===")
    ctx.overlays, messages = await _load_overlays(fetcher, sources, ctx.layers)
    for message in messages:
        ctx.notify(message)

    logger.info("=== STEP 3: Binding layers ===")
    ctx.layers.bind(MapSurface(ctx))
    logger.info("=== Pipeline complete ===")
    return ctx


async def run_pipeline(sources: SourceConfig = DEFAULT_SOURCES) -> MapContext:
    """Build a context from the configured HTTP sources."""
    async with HttpFetcher(base_url=sources.base_url) as fetcher:
        return await build_context(fetcher, sources)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    context = asyncio.run(run_pipeline())
    with open("mapa.html", "w", encoding="utf-8") as f:
        f.write(context.layers.surface.to_html())
    logger.info("Map written to mapa.html")
