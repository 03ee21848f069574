"""Department boundaries: per-province TopoJSON merged into one GeoDataFrame."""

from __future__ import annotations

import asyncio
import io
import json
import logging
from dataclasses import dataclass, field

import geopandas as gpd
import pandas as pd

from adrmap.ingestion.fetcher import Fetcher
from adrmap.ingestion.sources import SourceConfig

logger = logging.getLogger(__name__)

PROVINCE_FIELD = "provincia"
CRS = "EPSG:4326"


def empty_features() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame({PROVINCE_FIELD: []}, geometry=gpd.GeoSeries([], crs=CRS))


def first_object_name(payload: dict) -> str:
    """Name of the first object in a topology's ``objects`` map.

    Only one object per file is supported; with several, the first in
    document order is used and the rest are ignored.
    """
    if payload.get("type") != "Topology":
        raise ValueError("Payload is not a TopoJSON topology")
    objects = payload.get("objects") or {}
    if not objects:
        raise ValueError("Topology has no objects")
    return next(iter(objects))


def decode_topology(raw: bytes) -> gpd.GeoDataFrame:
    """Decode the first object of a TopoJSON payload into polygon features."""
    payload = json.loads(raw)
    name = first_object_name(payload)
    if len(payload["objects"]) > 1:
        logger.warning("Topology has several objects, using only %r", name)
    gdf = gpd.read_file(io.BytesIO(raw), layer=name)
    if gdf.crs is None:
        gdf = gdf.set_crs(CRS)
    return gdf


def province_from_slug(slug: str) -> str:
    """``"santa_fe"`` -> ``"santa fe"``; normalization happens at lookup time."""
    return slug.replace("_", " ")


def stamp_province(gdf: gpd.GeoDataFrame, slug: str) -> gpd.GeoDataFrame:
    """Fill missing or blank province values with the file's province."""
    gdf = gdf.copy()
    if PROVINCE_FIELD not in gdf.columns:
        gdf[PROVINCE_FIELD] = None
    blank = gdf[PROVINCE_FIELD].isna() | (gdf[PROVINCE_FIELD].astype(str).str.strip() == "")
    gdf.loc[blank, PROVINCE_FIELD] = province_from_slug(slug)
    return gdf


@dataclass
class GeometryBatch:
    features: gpd.GeoDataFrame
    failures: dict[str, str] = field(default_factory=dict)


async def load_province(fetcher: Fetcher, sources: SourceConfig, slug: str) -> gpd.GeoDataFrame:
    raw = await fetcher.fetch(sources.boundaries_path(slug))
    gdf = stamp_province(decode_topology(raw), slug)
    logger.info("Loaded %d departments for %s", len(gdf), slug)
    return gdf


async def load_all(fetcher: Fetcher, sources: SourceConfig) -> GeometryBatch:
    """Fetch every configured province in parallel and concatenate them.

    A province that fails to load contributes no features. Output order
    follows ``sources.provinces``.
    """
    results = await asyncio.gather(
        *(load_province(fetcher, sources, slug) for slug in sources.provinces),
        return_exceptions=True,
    )
    frames: list[gpd.GeoDataFrame] = []
    failures: dict[str, str] = {}
    for slug, result in zip(sources.provinces, results):
        if isinstance(result, BaseException):
            logger.warning("Could not load boundaries for %s: %s", slug, result, exc_info=result)
            failures[slug] = str(result) or type(result).__name__
            continue
        frames.append(result.to_crs(CRS))

    if not frames:
        return GeometryBatch(features=empty_features(), failures=failures)

    merged = gpd.GeoDataFrame(pd.concat(frames, ignore_index=True), crs=CRS)
    logger.info("Assembled %d department features from %d provinces", len(merged), len(frames))
    return GeometryBatch(features=merged, failures=failures)
