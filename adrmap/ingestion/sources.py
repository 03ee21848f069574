"""Registry of data sources and map layers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

# Root the relative source paths below are resolved against.
DATA_BASE_URL = os.getenv("ADRMAP_DATA_BASE_URL", "http://localhost:8000/assets/")

CLASSIFICATION_LAYER_ID = "clasificacion"

# Fixed palette for overlays without a layer color, cycled by row index.
OVERLAY_PALETTE = [
    "#e41a1c",
    "#377eb8",
    "#4daf4a",
    "#984ea3",
    "#ff7f00",
    "#a65628",
    "#f781bf",
    "#999999",
]


@dataclass
class OverlaySource:
    layer_id: str
    path: str
    label_columns: tuple[str, ...] = ("nombre", "PARTIDO")
    description_columns: tuple[str, ...] = ("descripcion", "estado")
    geometry_column: str = "WKT"


@dataclass
class SourceConfig:
    """Every file the pipeline reads, relative to ``base_url``."""

    adr_path: str = "adr.csv"
    provinces: list[str] = field(
        default_factory=lambda: ["santa_fe", "cordoba", "buenos_aires", "entre_rios"]
    )
    statistics_template: str = "estadisticas-{province}.csv"
    boundaries_template: str = "departamentos-{province}.topojson"
    overlays: list[OverlaySource] = field(default_factory=list)
    base_url: str = DATA_BASE_URL

    @property
    def statistics_paths(self) -> list[str]:
        return [self.statistics_template.format(province=p) for p in self.provinces]

    def boundaries_path(self, province: str) -> str:
        return self.boundaries_template.format(province=province)


@dataclass
class LayerConfig:
    id: str
    display_name: str
    default_visible: bool = True
    color: str | None = None
    description: str = ""


LAYER_CATALOG: list[LayerConfig] = [
    LayerConfig(
        id=CLASSIFICATION_LAYER_ID,
        display_name="Departamentos ADR",
        default_visible=True,
        description="Clasificacion por departamento: con datos, en ADR sin datos, fuera de ADR.",
    ),
    LayerConfig(
        id="areas_sucursales",
        display_name="Areas de sucursales",
        default_visible=False,
        color=None,
        description="Zonas de cobertura de cada sucursal.",
    ),
    LayerConfig(
        id="zonas_comerciales",
        display_name="Zonas comerciales",
        default_visible=False,
        color="#ff7f00",
        description="Zonas comerciales definidas por el area de ventas.",
    ),
]

DEFAULT_SOURCES = SourceConfig(
    overlays=[
        OverlaySource(layer_id="areas_sucursales", path="areas-sucursales.csv"),
        OverlaySource(layer_id="zonas_comerciales", path="zonas-comerciales.csv"),
    ],
)
