"""Everything one pipeline run produced, passed explicitly to the renderer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import geopandas as gpd

from adrmap.ingestion.geometry import empty_features
from adrmap.ingestion.loaders import OverlayData
from adrmap.processing.registry import DepartmentRegistry
from adrmap.render.layers import LayerManager

logger = logging.getLogger(__name__)


@dataclass
class MapContext:
    layers: LayerManager
    registry: DepartmentRegistry | None = None
    departments: gpd.GeoDataFrame = field(default_factory=empty_features)
    overlays: dict[str, OverlayData] = field(default_factory=dict)
    notifications: list[str] = field(default_factory=list)

    @property
    def classification_ready(self) -> bool:
        """False when the ADR table failed to load."""
        return self.registry is not None

    def notify(self, message: str) -> None:
        logger.info("Notification: %s", message)
        self.notifications.append(message)
