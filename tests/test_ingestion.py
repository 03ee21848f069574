"""Tests for the tabular loaders, the HTTP fetcher and the geometry assembler.

Network access is replaced by an in-memory fetcher or httpx.MockTransport.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from adrmap.ingestion import geometry
from adrmap.ingestion.fetcher import HttpFetcher
from adrmap.ingestion.loaders import (
    MAX_REPORTED_ROWS,
    DataLoadError,
    load_adr,
    load_all_statistics,
    load_overlay,
    parse_adr,
    parse_overlay,
    parse_statistics,
)
from adrmap.ingestion.sources import OVERLAY_PALETTE, OverlaySource
from adrmap.pipeline import load_department_data
from adrmap.processing.registry import DepartmentKey

from conftest import ADR_CSV, CORDOBA_STATS_CSV, OVERLAY_CSV, FakeFetcher, topology


# ── ADR table ─────────────────────────────────────────────────────────────

class TestADRLoader:
    def test_parse_drops_incomplete_rows(self):
        records = parse_adr(ADR_CSV)
        assert len(records) == 3
        assert records[0].key == DepartmentKey("santa fe", "castellanos")
        assert [r.in_adr for r in records] == [True, False, True]

    def test_missing_flag_column_means_not_in_adr(self):
        records = parse_adr("provincia,departamento\nSanta Fe,Garay\n")
        assert records[0].in_adr is False

    def test_load_failure_is_fatal(self):
        with pytest.raises(DataLoadError):
            asyncio.run(load_adr(FakeFetcher({}), "adr.csv"))

    def test_unparsable_table_is_fatal(self):
        fetcher = FakeFetcher({"adr.csv": "columna,otra\n1,2\n"})
        with pytest.raises(DataLoadError):
            asyncio.run(load_adr(fetcher, "adr.csv"))


# ── Statistics tables ─────────────────────────────────────────────────────

class TestStatisticsLoader:
    def test_parse_statistics(self):
        records = parse_statistics(CORDOBA_STATS_CSV)
        assert len(records) == 1  # row with empty partido dropped
        rec = records[0]
        assert rec.key == DepartmentKey("cordoba", "rio cuarto")
        assert rec.titular_count == 42
        assert rec.establishment_count == 57
        assert rec.planted_hectares == 12345.5
        assert rec.non_client_hectares == 1000.25
        assert rec.non_client_percent_label == "8.1%"
        assert rec.raw["PARTIDO ESTABLECIMIENTO"] == "Rio Cuarto"

    def test_unparsable_numbers_default_to_zero(self, files):
        rec = parse_statistics(files["estadisticas-santa_fe.csv"])[0]
        assert rec.key == DepartmentKey("santa fe", "san justo")
        assert rec.planted_hectares == 0.0
        assert rec.non_client_hectares == 250.5
        assert rec.non_client_percent_label == "2,3%"

    def test_missing_numeric_columns_default_to_zero(self):
        raw = "PROVINCIA ESTABLECIMIENTO,PARTIDO ESTABLECIMIENTO,Recuento de TITULAR\nCORDOBA,Colon,1204\n"
        rec = parse_statistics(raw)[0]
        assert rec.titular_count == 1204
        assert rec.establishment_count == 0
        assert rec.planted_hectares == 0.0
        assert rec.non_client_percent_label == ""

    def test_one_failure_does_not_abort_the_rest(self, files):
        urls = ["estadisticas-santa_fe.csv", "estadisticas-missing.csv", "estadisticas-cordoba.csv"]
        batch = asyncio.run(load_all_statistics(FakeFetcher(files), urls))
        assert [r.key.province for r in batch.records] == ["santa fe", "cordoba"]
        assert list(batch.failures) == ["estadisticas-missing.csv"]

    def test_all_loads_are_issued(self, files):
        fetcher = FakeFetcher(files)
        urls = ["estadisticas-santa_fe.csv", "a.csv", "b.csv"]
        batch = asyncio.run(load_all_statistics(fetcher, urls))
        assert sorted(fetcher.calls) == sorted(urls)
        assert len(batch.failures) == 2


class TestDepartmentData:
    def test_registry_populated_despite_failure(self, files, sources):
        del files["estadisticas-cordoba.csv"]
        registry = asyncio.run(load_department_data(FakeFetcher(files), sources))
        assert registry.has_statistics(DepartmentKey.of("Santa Fe", "San Justo"))
        assert not registry.has_statistics(DepartmentKey.of("Cordoba", "Rio Cuarto"))
        assert list(registry.load_failures) == ["estadisticas-cordoba.csv"]

    def test_adr_loaded_before_statistics(self, files, sources):
        fetcher = FakeFetcher(files)
        asyncio.run(load_department_data(fetcher, sources))
        assert fetcher.calls[0] == "adr.csv"

    def test_adr_failure_rejects(self, files, sources):
        del files["adr.csv"]
        fetcher = FakeFetcher(files)
        with pytest.raises(DataLoadError):
            asyncio.run(load_department_data(fetcher, sources))
        assert fetcher.calls == ["adr.csv"]


# ── WKT overlays ──────────────────────────────────────────────────────────

class TestOverlayLoader:
    def test_malformed_rows_reported_not_fatal(self):
        source = OverlaySource(layer_id="areas_sucursales", path="x.csv")
        data = parse_overlay(OVERLAY_CSV, source)
        assert data.features["label"].tolist() == ["Sucursal Rafaela", "Sucursal Parana"]
        assert data.report.error_count == 2
        assert data.report.sample == ["2", "3"]
        assert data.report.loaded == 2
        assert "2 filas" in data.report.summary()

    def test_palette_cycles_by_row_index(self):
        source = OverlaySource(layer_id="areas_sucursales", path="x.csv")
        data = parse_overlay(OVERLAY_CSV, source)
        assert data.features["color"].tolist() == [OVERLAY_PALETTE[0], OVERLAY_PALETTE[3]]

    def test_fixed_layer_color(self):
        source = OverlaySource(layer_id="zonas", path="x.csv")
        data = parse_overlay(OVERLAY_CSV, source, color="#ff7f00")
        assert set(data.features["color"]) == {"#ff7f00"}

    def test_label_and_description_fallbacks(self):
        raw = (
            "WKT,PARTIDO,estado\n"
            '"POINT (-60 -31)",Castellanos,En revision\n'
        )
        data = parse_overlay(raw, OverlaySource(layer_id="z", path="x.csv"))
        row = data.features.iloc[0]
        assert row["label"] == "Castellanos"
        assert row["description"] == "En revision"

    def test_error_sample_is_capped(self):
        raw = "WKT,nombre\n" + "".join(f"BROKEN,area {i}\n" for i in range(8))
        data = parse_overlay(raw, OverlaySource(layer_id="z", path="x.csv"))
        assert data.features.empty
        assert data.report.error_count == 8
        assert len(data.report.sample) == MAX_REPORTED_ROWS
        assert data.report.summary().endswith("...)")

    def test_load_overlay(self, files):
        source = OverlaySource(layer_id="areas_sucursales", path="areas-sucursales.csv")
        data = asyncio.run(load_overlay(FakeFetcher(files), source))
        assert len(data.features) == 2
        assert data.features.crs.to_epsg() == 4326


# ── HTTP fetcher ──────────────────────────────────────────────────────────

class TestHttpFetcher:
    @staticmethod
    def _transport():
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/assets/adr.csv":
                return httpx.Response(200, text=ADR_CSV)
            return httpx.Response(404, text="not found")
        return httpx.MockTransport(handler)

    def test_fetch_relative_url(self):
        async def run():
            async with HttpFetcher("http://test/assets/", transport=self._transport()) as fetcher:
                return await load_adr(fetcher, "adr.csv")

        assert len(asyncio.run(run())) == 3

    def test_http_error_raises(self):
        async def run():
            async with HttpFetcher("http://test/assets/", transport=self._transport()) as fetcher:
                await fetcher.fetch("missing.csv")

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())


# ── Geometry assembler ────────────────────────────────────────────────────

class TestGeometryAssembler:
    def test_first_object_name(self):
        payload = json.loads(topology({"primero": [{"nam": "A"}], "segundo": [{"nam": "B"}]}))
        assert geometry.first_object_name(payload) == "primero"

    def test_first_object_name_rejects_non_topology(self):
        with pytest.raises(ValueError):
            geometry.first_object_name({"type": "FeatureCollection", "features": []})
        with pytest.raises(ValueError):
            geometry.first_object_name({"type": "Topology", "objects": {}})

    def test_decode_uses_first_object_only(self):
        raw = topology({"primero": [{"nam": "A"}, {"nam": "B"}], "segundo": [{"nam": "C"}]})
        gdf = geometry.decode_topology(raw.encode())
        assert sorted(gdf["nam"]) == ["A", "B"]

    def test_province_from_slug(self):
        assert geometry.province_from_slug("santa_fe") == "santa fe"

    def test_load_all_backfills_and_keeps_order(self, files, sources):
        batch = asyncio.run(geometry.load_all(FakeFetcher(files), sources))
        gdf = batch.features
        assert len(gdf) == 5
        assert gdf["provincia"].tolist() == [
            "santa fe", "santa fe", "santa fe", "Córdoba", "Córdoba",
        ]
        assert batch.failures == {}
        assert gdf.crs.to_epsg() == 4326

    def test_failed_province_contributes_nothing(self, files, sources):
        files["departamentos-santa_fe.topojson"] = "not json"
        batch = asyncio.run(geometry.load_all(FakeFetcher(files), sources))
        assert len(batch.features) == 2
        assert list(batch.failures) == ["santa_fe"]

    def test_all_provinces_failed(self, sources):
        batch = asyncio.run(geometry.load_all(FakeFetcher({}), sources))
        assert batch.features.empty
        assert set(batch.failures) == {"santa_fe", "cordoba"}
