"""Tabular loaders: ADR membership, client statistics and WKT overlays.

The ADR table is required; statistics tables are best-effort, one per
province. Overlay tables keep the rows whose geometry parses and report the
rest.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import geopandas as gpd
import pandas as pd
from shapely import wkt
from shapely.errors import ShapelyError

from adrmap.ingestion.fetcher import Fetcher
from adrmap.ingestion.sources import OVERLAY_PALETTE, OverlaySource
from adrmap.processing.cleaner import parse_decimal, parse_decimal_series, read_table
from adrmap.processing.registry import ADRRecord, DepartmentKey, StatisticsRecord

logger = logging.getLogger(__name__)


class DataLoadError(RuntimeError):
    """A required source could not be loaded."""


# ---------------------------------------------------------------------------
# ADR membership
# ---------------------------------------------------------------------------

ADR_PROVINCE = "provincia"
ADR_DEPARTMENT = "departamento"
ADR_FLAG = "en_adr"


def parse_adr(raw: str | bytes) -> list[ADRRecord]:
    df = read_table(raw, required=[ADR_PROVINCE, ADR_DEPARTMENT])
    flags = df[ADR_FLAG] if ADR_FLAG in df.columns else pd.Series("", index=df.index)
    return [
        ADRRecord(
            key=DepartmentKey.of(prov, dep),
            in_adr=parse_decimal(flag) == 1,
        )
        for prov, dep, flag in zip(df[ADR_PROVINCE], df[ADR_DEPARTMENT], flags)
    ]


async def load_adr(fetcher: Fetcher, url: str) -> list[ADRRecord]:
    """Load the ADR membership table. Any failure raises :class:`DataLoadError`."""
    try:
        raw = await fetcher.fetch(url)
        records = parse_adr(raw)
    except Exception as exc:
        raise DataLoadError(f"Could not load ADR table {url}: {exc}") from exc
    logger.info("Loaded %d ADR rows from %s", len(records), url)
    return records


# ---------------------------------------------------------------------------
# Client statistics
# ---------------------------------------------------------------------------

STATISTICS_COLUMN_MAP = {
    "PROVINCIA ESTABLECIMIENTO": "province",
    "PARTIDO ESTABLECIMIENTO": "department",
    "Recuento de TITULAR": "titular_count",
    "Recuento de NOMBRE ESTABLECIMIENTO": "establishment_count",
    "Suma de TOTAL DE HECTAREAS SEMBRADAS": "planted_hectares",
    "Total de hectareas de no clientes": "non_client_hectares",
    "Porcentaje de hectareas de no clientes": "non_client_percent_label",
}

NUMERIC_STATISTICS = ("titular_count", "establishment_count", "planted_hectares", "non_client_hectares")


def parse_statistics(raw: str | bytes) -> list[StatisticsRecord]:
    df = read_table(raw, required=["PROVINCIA ESTABLECIMIENTO", "PARTIDO ESTABLECIMIENTO"])

    stats = df.rename(columns=STATISTICS_COLUMN_MAP)
    for col in NUMERIC_STATISTICS:
        stats[col] = parse_decimal_series(stats[col]) if col in stats.columns else 0.0
    if "non_client_percent_label" not in stats.columns:
        stats["non_client_percent_label"] = ""

    return [
        StatisticsRecord(
            key=DepartmentKey.of(row["province"], row["department"]),
            titular_count=int(row["titular_count"]),
            establishment_count=int(row["establishment_count"]),
            planted_hectares=float(row["planted_hectares"]),
            non_client_hectares=float(row["non_client_hectares"]),
            non_client_percent_label=row["non_client_percent_label"] or "",
            raw=raw_row,
        )
        for row, raw_row in zip(stats.to_dict(orient="records"), df.to_dict(orient="records"))
    ]


async def load_statistics(fetcher: Fetcher, url: str) -> list[StatisticsRecord]:
    raw = await fetcher.fetch(url)
    records = parse_statistics(raw)
    logger.info("Loaded %d statistics rows from %s", len(records), url)
    return records


@dataclass
class StatisticsBatch:
    records: list[StatisticsRecord] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


async def load_all_statistics(fetcher: Fetcher, urls: list[str]) -> StatisticsBatch:
    """Load every statistics table in parallel, tolerating individual failures.

    Records keep the order of *urls*; failed URLs map to their error message.
    """
    results = await asyncio.gather(
        *(load_statistics(fetcher, url) for url in urls),
        return_exceptions=True,
    )
    batch = StatisticsBatch()
    for url, result in zip(urls, results):
        if isinstance(result, BaseException):
            logger.warning("Could not load statistics %s: %s", url, result, exc_info=result)
            batch.failures[url] = str(result) or type(result).__name__
            continue
        batch.records.extend(result)
    return batch


# ---------------------------------------------------------------------------
# WKT overlays
# ---------------------------------------------------------------------------

MAX_REPORTED_ROWS = 5


@dataclass
class OverlayLoadReport:
    """Rows of one overlay load whose geometry was missing or unparsable."""

    layer_id: str
    loaded: int = 0
    error_rows: list[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.error_rows)

    @property
    def sample(self) -> list[str]:
        return self.error_rows[:MAX_REPORTED_ROWS]

    def summary(self) -> str:
        if not self.error_rows:
            return f"{self.layer_id}: {self.loaded} areas cargadas"
        more = "..." if self.error_count > MAX_REPORTED_ROWS else ""
        return (
            f"{self.layer_id}: {self.error_count} filas con geometria invalida "
            f"(filas {', '.join(self.sample)}{more})"
        )


@dataclass
class OverlayData:
    layer_id: str
    features: gpd.GeoDataFrame
    report: OverlayLoadReport


def _first_value(row: dict, columns: tuple[str, ...]) -> str:
    for col in columns:
        value = row.get(col)
        if value:
            return str(value)
    return ""


def parse_overlay(raw: str | bytes, source: OverlaySource, color: str | None = None) -> OverlayData:
    """Parse a WKT overlay table.

    Each row gets the layer *color* or, without one, a palette color picked
    by row index. Rows are identified by their 1-based data line number.
    """
    df = read_table(raw, required=[])
    report = OverlayLoadReport(layer_id=source.layer_id)
    rows, geometries = [], []

    for idx, row in enumerate(df.to_dict(orient="records")):
        row_id = str(idx + 1)
        text = row.get(source.geometry_column) or ""
        if not text.strip():
            report.error_rows.append(row_id)
            continue
        try:
            geom = wkt.loads(text)
        except (ShapelyError, ValueError, TypeError):
            report.error_rows.append(row_id)
            continue
        if geom is None or geom.is_empty:
            report.error_rows.append(row_id)
            continue
        rows.append({
            "row_id": row_id,
            "label": _first_value(row, source.label_columns),
            "description": _first_value(row, source.description_columns),
            "color": color or OVERLAY_PALETTE[idx % len(OVERLAY_PALETTE)],
        })
        geometries.append(geom)

    features = gpd.GeoDataFrame(
        pd.DataFrame(rows, columns=["row_id", "label", "description", "color"]),
        geometry=gpd.GeoSeries(geometries, crs="EPSG:4326"),
    )
    report.loaded = len(features)
    if report.error_rows:
        logger.warning("Overlay %s", report.summary())
    else:
        logger.info("Overlay %s", report.summary())
    return OverlayData(layer_id=source.layer_id, features=features, report=report)


async def load_overlay(
    fetcher: Fetcher,
    source: OverlaySource,
    color: str | None = None,
) -> OverlayData:
    raw = await fetcher.fetch(source.path)
    return parse_overlay(raw, source, color=color)
