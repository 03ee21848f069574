"""Folium map composition for the classification and overlay layers."""

from __future__ import annotations

import logging
from html import escape
from typing import Any

import folium
import geopandas as gpd
from branca.element import MacroElement
from folium.utilities import get_obj_in_upper_tree
from jinja2 import Template

from adrmap.context import MapContext
from adrmap.processing.classifier import (
    classify,
    department_key,
    department_name,
    department_population,
    province_name,
)
from adrmap.processing.registry import DepartmentRegistry
from adrmap.render.style import (
    Interaction,
    Style,
    department_popup,
    department_style,
    dispatch,
    overlay_popup,
    overlay_style,
)

logger = logging.getLogger(__name__)

# Santa Fe capital
DEFAULT_CENTER = [-31.6333, -60.7000]
DEFAULT_ZOOM = 7

TILES_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILES_ATTRIBUTION = (
    '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
)


def _collection(properties: dict[str, Any], geom) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": properties, "geometry": geom.__geo_interface__},
        ],
    }


class FeatureEvents(MacroElement):
    """Pointer handlers that a style alone cannot express.

    Rendered as a child of a ``folium.GeoJson``: raises the feature on
    ``mouseover`` and fits the map to its bounds on ``click``, as the
    dispatched :class:`Interaction` objects ask.
    """

    _template = Template(
        """
        {% macro script(this, kwargs) %}
        {%- if this.bring_to_front %}
        {{ this._parent.get_name() }}.on("mouseover", function (e) {
            (e.layer || e.target).bringToFront();
        });
        {%- endif %}
        {%- if this.fit_bounds %}
        {{ this._parent.get_name() }}.on("click", function () {
            {{ this.map_name }}.fitBounds({{ this.fit_bounds|tojson }});
        });
        {%- endif %}
        {% endmacro %}
        """
    )

    def __init__(self, hover: Interaction, click: Interaction) -> None:
        super().__init__()
        self._name = "FeatureEvents"
        self.bring_to_front = hover.bring_to_front
        self.fit_bounds = None
        if click.fit_bounds is not None:
            minx, miny, maxx, maxy = click.fit_bounds
            self.fit_bounds = [[miny, minx], [maxy, maxx]]
        self.map_name = ""

    def render(self, **kwargs) -> None:
        self.map_name = get_obj_in_upper_tree(self, folium.Map).get_name()
        super().render(**kwargs)


def leaflet_options(base: Style) -> dict[str, Any]:
    """folium.GeoJson keyword arguments for a feature whose base style is *base*.

    Hover restyling comes from the ``mouseover`` handler; folium resets the
    feature to the style function on mouse out, which is its current style.
    """
    highlight = dispatch("mouseover", base).style
    return {
        "style_function": lambda _feature, s=base: s.to_leaflet(),
        "highlight_function": lambda _feature, h=highlight: h.to_leaflet(),
    }


def add_feature(
    fg: folium.FeatureGroup,
    properties: dict[str, Any],
    geom,
    base: Style,
    tooltip: str,
    popup: folium.Popup,
) -> folium.GeoJson:
    """Add one feature to *fg* with its style, popup and pointer handlers."""
    gj = folium.GeoJson(
        _collection(properties, geom),
        tooltip=tooltip,
        popup=popup,
        **leaflet_options(base),
    )
    FeatureEvents(
        hover=dispatch("mouseover", base),
        click=dispatch("click", base, tuple(geom.bounds)),
    ).add_to(gj)
    gj.add_to(fg)
    return gj


def build_classification_group(
    departments: gpd.GeoDataFrame,
    registry: DepartmentRegistry,
    visible: bool = True,
    name: str = "Departamentos ADR",
) -> folium.FeatureGroup:
    """One GeoJson per department, each styled and described from its status."""
    fg = folium.FeatureGroup(name=name, show=True)
    for _, row in departments.iterrows():
        if row.geometry is None or row.geometry.is_empty:
            continue
        props = row.drop(labels="geometry").to_dict()
        status = classify(props, registry)
        stats = registry.statistics_for(department_key(props))
        dep_name = department_name(props)
        popup_html = department_popup(
            dep_name, province_name(props), status, stats, population=department_population(props)
        )
        add_feature(
            fg,
            {"nombre": dep_name, "estado": status.value},
            row.geometry,
            department_style(status, visible),
            tooltip=escape(dep_name),
            popup=folium.Popup(popup_html, max_width=320),
        )
    return fg


def build_overlay_group(features: gpd.GeoDataFrame, name: str) -> folium.FeatureGroup:
    fg = folium.FeatureGroup(name=name, show=True)
    for _, row in features.iterrows():
        add_feature(
            fg,
            {"nombre": row["label"]},
            row.geometry,
            overlay_style(row["color"]),
            tooltip=escape(row["label"] or ""),
            popup=folium.Popup(overlay_popup(row["label"], row["description"]), max_width=300),
        )
    return fg


class MapSurface:
    """Server-side stand-in for the Leaflet map the layer manager drives.

    Overlay groups are keyed by layer id, so attaching an attached layer is a
    no-op. The classification group is never stored: every render builds it
    from the live registry and the layer's current visibility.
    """

    def __init__(self, context: MapContext) -> None:
        self.context = context
        self.attached: dict[str, folium.FeatureGroup] = {}
        self.classification_id: str | None = None

    def attach(self, layer_id: str) -> None:
        if layer_id in self.attached:
            return
        overlay = self.context.overlays.get(layer_id)
        if overlay is None:
            logger.warning("Layer %s has no loaded features", layer_id)
            return
        layer = self.context.layers.get(layer_id)
        self.attached[layer_id] = build_overlay_group(overlay.features, layer.display_name)
        logger.info("Attached %s (%d areas)", layer_id, len(overlay.features))

    def detach(self, layer_id: str) -> None:
        if self.attached.pop(layer_id, None) is not None:
            logger.info("Detached %s", layer_id)

    def restyle(self, layer_id: str) -> None:
        self.classification_id = layer_id
        logger.info("Restyled %s", layer_id)

    def classification_group(self) -> folium.FeatureGroup | None:
        """Classification features as of now; None while classification is unavailable."""
        ctx = self.context
        if self.classification_id is None or not ctx.classification_ready:
            return None
        layer = ctx.layers.get(self.classification_id)
        return build_classification_group(
            ctx.departments, ctx.registry, visible=layer.visible, name=layer.display_name
        )

    def render(self) -> folium.Map:
        m = folium.Map(location=DEFAULT_CENTER, zoom_start=DEFAULT_ZOOM, tiles=None)
        folium.TileLayer(
            tiles=TILES_URL, attr=TILES_ATTRIBUTION, name="OpenStreetMap", max_zoom=19
        ).add_to(m)

        classification = self.classification_group()
        if classification is not None:
            classification.add_to(m)
        for layer in self.context.layers.layers():
            group = self.attached.get(layer.id)
            if group is not None:
                group.add_to(m)

        folium.LayerControl(collapsed=False).add_to(m)

        if self.context.notifications:
            m.get_root().html.add_child(folium.Element(notification_banner(self.context.notifications)))

        departments = self.context.departments
        if classification is not None and not departments.empty:
            minx, miny, maxx, maxy = departments.total_bounds
            m.fit_bounds([[miny, minx], [maxy, maxx]])
        return m

    def to_html(self) -> str:
        return self.render().get_root().render()


def notification_banner(messages: list[str]) -> str:
    items = "".join(f"<li>{escape(msg)}</li>" for msg in messages)
    return (
        '<div class="adrmap-notifications" style="position:fixed;bottom:20px;left:20px;'
        "z-index:1000;max-width:420px;background:#fff8e1;border:1px solid #f9a825;"
        f'padding:8px 12px;font:12px sans-serif;"><ul style="margin:0;padding-left:16px;">{items}</ul></div>'
    )
