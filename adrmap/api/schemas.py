"""Pydantic schemas for API response serialization."""

from __future__ import annotations

from pydantic import BaseModel

# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


class LayerOut(BaseModel):
    id: str
    display_name: str
    visible: bool
    color: str | None = None
    description: str = ""

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class StatisticsOut(BaseModel):
    titular_count: int
    establishment_count: int
    planted_hectares: float
    non_client_hectares: float
    non_client_percent_label: str

    model_config = {"from_attributes": True}


class DepartmentOut(BaseModel):
    department: str
    province: str
    status: str
    statistics: StatisticsOut | None = None


class DepartmentListOut(BaseModel):
    total: int
    counts: dict[str, int]
    data: list[DepartmentOut]


# ---------------------------------------------------------------------------
# Notifications / pipeline
# ---------------------------------------------------------------------------


class NotificationsOut(BaseModel):
    classification_ready: bool
    messages: list[str]


class ReloadOut(BaseModel):
    status: str
    departments: int
    overlays: dict[str, int]
    notifications: list[str]


class HealthOut(BaseModel):
    status: str
    classification: str
