"""Layer catalog state: visibility, color and toggling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from adrmap.ingestion.sources import CLASSIFICATION_LAYER_ID, LayerConfig

logger = logging.getLogger(__name__)


@dataclass
class Layer:
    id: str
    display_name: str
    visible: bool
    color: str | None
    description: str

    @classmethod
    def from_config(cls, config: LayerConfig) -> Layer:
        return cls(
            id=config.id,
            display_name=config.display_name,
            visible=config.default_visible,
            color=config.color,
            description=config.description,
        )


class LayerSurface(Protocol):
    """What the layer manager drives on the map side."""

    def attach(self, layer_id: str) -> None: ...

    def detach(self, layer_id: str) -> None: ...

    def restyle(self, layer_id: str) -> None: ...


class LayerManager:
    """Fixed set of layers created at startup.

    The classification layer is always on the map: toggling it only restyles
    its features. Every other layer is attached or detached.
    """

    def __init__(
        self,
        catalog: Iterable[LayerConfig],
        surface: LayerSurface | None = None,
        classification_id: str = CLASSIFICATION_LAYER_ID,
    ) -> None:
        self._layers = {cfg.id: Layer.from_config(cfg) for cfg in catalog}
        self.classification_id = classification_id
        self.surface = surface

    def bind(self, surface: LayerSurface) -> None:
        """Attach *surface* and bring it in line with the current state."""
        self.surface = surface
        for layer in self._layers.values():
            self._apply(layer)

    def layers(self) -> list[Layer]:
        return list(self._layers.values())

    def get(self, layer_id: str) -> Layer:
        try:
            return self._layers[layer_id]
        except KeyError:
            raise KeyError(f"Unknown layer: {layer_id}") from None

    def is_visible(self, layer_id: str) -> bool:
        return self.get(layer_id).visible

    def set_visible(self, layer_id: str, visible: bool) -> Layer:
        layer = self.get(layer_id)
        if layer.visible == visible:
            return layer
        layer.visible = visible
        logger.info("Layer %s -> %s", layer_id, "visible" if visible else "hidden")
        self._apply(layer)
        return layer

    def toggle(self, layer_id: str) -> Layer:
        return self.set_visible(layer_id, not self.get(layer_id).visible)

    def _apply(self, layer: Layer) -> None:
        if self.surface is None:
            return
        if layer.id == self.classification_id:
            self.surface.restyle(layer.id)
        elif layer.visible:
            self.surface.attach(layer.id)
        else:
            self.surface.detach(layer.id)
