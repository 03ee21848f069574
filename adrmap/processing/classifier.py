"""Department classification: geometry features joined against the registry."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

import pandas as pd

from adrmap.processing.cleaner import parse_decimal
from adrmap.processing.registry import DepartmentKey, DepartmentRegistry

logger = logging.getLogger(__name__)

# Canonical field first, then the aliases seen across boundary files.
DEPARTMENT_FIELDS = ("nam", "nombre", "departamento", "NAM", "name")
PROVINCE_FIELDS = ("provincia", "prov")
POPULATION_FIELD = "poblacion"

# Most boundary data predates multi-province support.
DEFAULT_PROVINCE = "Santa Fe"


class Status(str, Enum):
    WITH_DATA = "WITH_DATA"
    IN_NETWORK_NO_DATA = "IN_NETWORK_NO_DATA"
    OUT_OF_NETWORK = "OUT_OF_NETWORK"


def _first_present(props: Mapping[str, Any], fields: tuple[str, ...]) -> Any:
    for name in fields:
        value = props.get(name)
        if value is None or (isinstance(value, float) and value != value):
            continue
        if str(value).strip():
            return value
    return None


def department_name(props: Mapping[str, Any]) -> str:
    """Display name of the department, ``"Desconocido"`` when absent."""
    value = _first_present(props, DEPARTMENT_FIELDS)
    return str(value) if value is not None else "Desconocido"


def province_name(props: Mapping[str, Any]) -> str:
    value = _first_present(props, PROVINCE_FIELDS)
    return str(value) if value is not None else DEFAULT_PROVINCE


def department_key(props: Mapping[str, Any]) -> DepartmentKey:
    return DepartmentKey.of(province_name(props), _first_present(props, DEPARTMENT_FIELDS))


def department_population(props: Mapping[str, Any]) -> float | None:
    """Population carried by the boundary feature, if any."""
    value = _first_present(props, (POPULATION_FIELD,))
    return parse_decimal(value) if value is not None else None


def classify(props: Mapping[str, Any], registry: DepartmentRegistry) -> Status:
    """Classify one feature from its properties.

    Statistics beat network membership: real operational data is stronger
    evidence than being listed in the ADR table.
    """
    key = department_key(props)
    if registry.has_statistics(key):
        return Status.WITH_DATA
    if registry.is_in_network(key):
        return Status.IN_NETWORK_NO_DATA
    return Status.OUT_OF_NETWORK


def annotate(features: pd.DataFrame, registry: DepartmentRegistry) -> pd.DataFrame:
    """Return a copy of *features* with display names, key and status columns.

    Works on a plain DataFrame or a GeoDataFrame; the result is a snapshot,
    styling always calls :func:`classify` again.
    """
    df = features.copy()
    records = df.drop(columns="geometry", errors="ignore").to_dict(orient="records")
    df["department_name"] = [department_name(p) for p in records]
    df["province_name"] = [province_name(p) for p in records]
    df["department_key"] = [department_key(p) for p in records]
    df["status"] = [classify(p, registry).value for p in records]

    counts = df["status"].value_counts().to_dict()
    logger.info("Classified %d departments: %s", len(df), counts)
    return df
