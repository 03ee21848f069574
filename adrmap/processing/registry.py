"""In-memory department registry: ADR membership and client statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, NamedTuple

from adrmap.processing.cleaner import normalize_key


class DepartmentKey(NamedTuple):
    """Normalized (province, department) join key."""

    province: str
    department: str

    @classmethod
    def of(cls, province: object, department: object) -> DepartmentKey:
        return cls(normalize_key(province), normalize_key(department))


@dataclass(frozen=True)
class ADRRecord:
    key: DepartmentKey
    in_adr: bool


@dataclass(frozen=True)
class StatisticsRecord:
    key: DepartmentKey
    titular_count: int = 0
    establishment_count: int = 0
    planted_hectares: float = 0.0
    non_client_hectares: float = 0.0
    non_client_percent_label: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


class DepartmentRegistry:
    """Both department collections, indexed by :class:`DepartmentKey`.

    Matching is exact equality on normalized keys. When several records share
    a key the first one loaded wins, same as a linear first-match scan over
    the ordered collections.
    """

    def __init__(self) -> None:
        self.adr_records: list[ADRRecord] = []
        self.statistics: list[StatisticsRecord] = []
        self._adr_index: dict[DepartmentKey, ADRRecord] = {}
        self._stats_index: dict[DepartmentKey, StatisticsRecord] = {}
        # source url -> error, for statistics tables that failed to load
        self.load_failures: dict[str, str] = {}

    def add_adr(self, records: Iterable[ADRRecord]) -> int:
        batch = list(records)
        for rec in batch:
            self._adr_index.setdefault(rec.key, rec)
        self.adr_records.extend(batch)
        return len(batch)

    def add_statistics(self, records: Iterable[StatisticsRecord]) -> int:
        batch = list(records)
        for rec in batch:
            self._stats_index.setdefault(rec.key, rec)
        self.statistics.extend(batch)
        return len(batch)

    def is_in_network(self, key: DepartmentKey) -> bool:
        rec = self._adr_index.get(key)
        return rec is not None and rec.in_adr

    def has_statistics(self, key: DepartmentKey) -> bool:
        return key in self._stats_index

    def statistics_for(self, key: DepartmentKey) -> StatisticsRecord | None:
        return self._stats_index.get(key)

    def __repr__(self) -> str:
        return (
            f"DepartmentRegistry(adr={len(self.adr_records)}, "
            f"statistics={len(self.statistics)})"
        )
