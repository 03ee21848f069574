"""Shared fixtures: in-memory fetcher and sample source files."""

from __future__ import annotations

import json

import pytest

from adrmap.ingestion.sources import OverlaySource, SourceConfig


class FakeFetcher:
    """Serves canned payloads by URL; unknown URLs fail like a 404."""

    def __init__(self, files: dict[str, str | bytes]):
        self.files = files
        self.calls: list[str] = []

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if url not in self.files:
            raise FileNotFoundError(url)
        data = self.files[url]
        return data.encode("utf-8") if isinstance(data, str) else data


def topology(objects: dict[str, list[dict]]) -> str:
    """Build a non-quantized TopoJSON with one square arc per geometry.

    *objects* maps object name -> properties of each polygon.
    """
    arcs = []
    topo_objects = {}
    for name, geometries in objects.items():
        geoms = []
        for props in geometries:
            x = -62.0 + len(arcs)
            arcs.append([[x, -31.0], [x + 0.5, -31.0], [x + 0.5, -31.5], [x, -31.5], [x, -31.0]])
            geoms.append({"type": "Polygon", "arcs": [[len(arcs) - 1]], "properties": props})
        topo_objects[name] = {"type": "GeometryCollection", "geometries": geoms}
    return json.dumps({"type": "Topology", "objects": topo_objects, "arcs": arcs})


ADR_CSV = (
    "provincia,departamento,en_adr\n"
    "Santa Fe,Castellanos,1\n"
    "Santa Fe,General Lopez,0\n"
    "Córdoba,Río Cuarto,1\n"
    "\n"
    ",Sin Provincia,1\n"
)

STATS_HEADER = (
    "PROVINCIA ESTABLECIMIENTO,PARTIDO ESTABLECIMIENTO,Recuento de TITULAR,"
    "Recuento de NOMBRE ESTABLECIMIENTO,Suma de TOTAL DE HECTAREAS SEMBRADAS,"
    "Total de hectareas de no clientes,Porcentaje de hectareas de no clientes\n"
)

CORDOBA_STATS_CSV = STATS_HEADER + (
    'CORDOBA,Rio Cuarto,42,57,"12.345,5","1.000,25",8.1%\n'
    "CORDOBA,,3,3,10,10,1%\n"
)

SANTA_FE_STATS_CSV = STATS_HEADER + (
    "SANTA FE,San_Justo.,7,9,n/a,\"250,5\",\"2,3%\"\n"
)

OVERLAY_CSV = (
    "WKT,nombre,descripcion\n"
    '"POLYGON ((-61 -31, -60.5 -31, -60.5 -31.5, -61 -31.5, -61 -31))",Sucursal Rafaela,Activa\n'
    '"POLYGON ((-61 -31, oops",Sucursal Rota,Activa\n'
    ",Sin Geometria,Pendiente\n"
    '"POLYGON ((-60 -32, -59.5 -32, -59.5 -32.5, -60 -32.5, -60 -32))",Sucursal Parana,Activa\n'
)


@pytest.fixture
def sources() -> SourceConfig:
    return SourceConfig(
        adr_path="adr.csv",
        provinces=["santa_fe", "cordoba"],
        overlays=[OverlaySource(layer_id="areas_sucursales", path="areas-sucursales.csv")],
        base_url="",
    )


@pytest.fixture
def files() -> dict[str, str]:
    return {
        "adr.csv": ADR_CSV,
        "estadisticas-santa_fe.csv": SANTA_FE_STATS_CSV,
        "estadisticas-cordoba.csv": CORDOBA_STATS_CSV,
        "departamentos-santa_fe.topojson": topology({
            "departamentos": [
                {"nam": "Castellanos"},
                {"nam": "General López"},
                {"nam": "San Justo"},
            ],
        }),
        "departamentos-cordoba.topojson": topology({
            "departamentos": [
                {"nombre": "Río Cuarto", "provincia": "Córdoba"},
                {"nombre": "General", "provincia": "Córdoba"},
            ],
        }),
        "areas-sucursales.csv": OVERLAY_CSV,
    }
