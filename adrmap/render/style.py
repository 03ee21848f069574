"""Declarative styles, popup content and pointer interactions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from html import escape
from typing import Any, Callable

from adrmap.processing.classifier import Status
from adrmap.processing.registry import StatisticsRecord

STATUS_COLORS = {
    Status.WITH_DATA: "#2e7d32",
    Status.IN_NETWORK_NO_DATA: "#1565c0",
    Status.OUT_OF_NETWORK: "#9e9e9e",
}

STATUS_LABELS = {
    Status.WITH_DATA: "Con datos",
    Status.IN_NETWORK_NO_DATA: "En ADR (sin datos)",
    Status.OUT_OF_NETWORK: "Fuera de ADR",
}

HIGHLIGHT_EXTRA_WEIGHT = 2.0


@dataclass(frozen=True)
class Style:
    stroke_color: str
    stroke_weight: float
    stroke_opacity: float
    fill_color: str
    fill_opacity: float

    def to_leaflet(self) -> dict[str, Any]:
        """Path options as Leaflet (and folium) expect them."""
        return {
            "color": self.stroke_color,
            "weight": self.stroke_weight,
            "opacity": self.stroke_opacity,
            "fillColor": self.fill_color,
            "fillOpacity": self.fill_opacity,
        }


def department_style(status: Status, visible: bool = True) -> Style:
    """Style of a classified department.

    A hidden classification layer stays on the map with a faint outline and
    no fill, so its hover and popup bindings survive.
    """
    color = STATUS_COLORS[Status(status)]
    if not visible:
        return Style(color, 0.5, 0.3, color, 0.0)
    return Style(color, 1.5, 0.8, color, 0.5)


def overlay_style(color: str, visible: bool = True) -> Style:
    return Style(color, 2.0, 0.9 if visible else 0.0, color, 0.25 if visible else 0.0)


# ---------------------------------------------------------------------------
# Popups
# ---------------------------------------------------------------------------


def format_number(value: float, decimals: int = 2) -> str:
    """Format with es-AR separators: ``1234567.5`` -> ``"1.234.567,5"``."""
    text = f"{value:,.{decimals}f}"
    integer, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    integer = integer.replace(",", ".")
    return f"{integer},{fraction}" if fraction else integer


def department_popup(
    name: str,
    province: str,
    status: Status,
    stats: StatisticsRecord | None = None,
    population: float | None = None,
) -> str:
    """Popup HTML for a department; the detail table only for ``WITH_DATA``.

    *population* is shown for every status when the boundary carries it.
    """
    status = Status(status)
    parts = [
        '<div class="departamento-popup">',
        f"<h3>{escape(name)}</h3>",
        f"<p><b>Provincia:</b> {escape(province)}</p>",
        f"<p><b>Estado:</b> {STATUS_LABELS[status]}</p>",
    ]
    if population is not None:
        parts.append(f"<p><b>Población:</b> {format_number(population)}</p>")
    if status is Status.WITH_DATA and stats is not None:
        rows = [
            ("Titulares", str(stats.titular_count)),
            ("Establecimientos", str(stats.establishment_count)),
            ("Hectareas sembradas", format_number(stats.planted_hectares)),
            ("Hectareas de no clientes", format_number(stats.non_client_hectares)),
            ("% hectareas de no clientes", escape(stats.non_client_percent_label)),
        ]
        parts.append("<table>")
        parts.extend(f"<tr><th>{label}</th><td>{value}</td></tr>" for label, value in rows)
        parts.append("</table>")
    parts.append("</div>")
    return "".join(parts)


def overlay_popup(label: str, description: str) -> str:
    parts = ['<div class="overlay-popup">', f"<h3>{escape(label or 'Sin nombre')}</h3>"]
    if description:
        parts.append(f"<p>{escape(description)}</p>")
    parts.append("</div>")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------

Bounds = tuple[float, float, float, float]


@dataclass(frozen=True)
class Interaction:
    """What the map does in response to a pointer event on a feature."""

    style: Style | None = None
    bring_to_front: bool = False
    fit_bounds: Bounds | None = None


def on_mouseover(base: Style, bounds: Bounds | None = None) -> Interaction:
    return Interaction(
        style=replace(base, stroke_weight=base.stroke_weight + HIGHLIGHT_EXTRA_WEIGHT),
        bring_to_front=True,
    )


def on_mouseout(base: Style, bounds: Bounds | None = None) -> Interaction:
    # base is whatever the feature currently carries, including toggle state
    return Interaction(style=base)


def on_click(base: Style, bounds: Bounds | None = None) -> Interaction:
    return Interaction(fit_bounds=bounds)


INTERACTIONS: dict[str, Callable[[Style, Bounds | None], Interaction]] = {
    "mouseover": on_mouseover,
    "mouseout": on_mouseout,
    "click": on_click,
}


def dispatch(event: str, base: Style, bounds: Bounds | None = None) -> Interaction:
    try:
        handler = INTERACTIONS[event]
    except KeyError:
        raise KeyError(f"Unsupported interaction event: {event}") from None
    return handler(base, bounds)
