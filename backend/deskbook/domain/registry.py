from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import UnknownAreaError

_NON_WORD = re.compile(r"[^0-9a-z]+")


def normalize_area_key(raw: str) -> str:
    """Map display names and legacy keys onto the canonical snake_case key.

    "NCL - Monument", "ncl_monument" and " NCL Monument " all become "ncl_monument".
    """
    return _NON_WORD.sub("_", raw.strip().casefold()).strip("_")


class DeskArea(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    capacity: int = Field(ge=1)
    pool: Optional[str] = None

    @property
    def has_parking(self) -> bool:
        return self.pool is not None


class ParkingPool(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    permits: int = Field(ge=0)


DEFAULT_AREAS = (
    DeskArea(key="ncl_monument", name="NCL - Monument", capacity=40, pool="ncl"),
    DeskArea(key="ncl_st_james", name="NCL - St James", capacity=40, pool="ncl"),
    DeskArea(key="ncl_kitchen", name="NCL - Kitchen", capacity=15, pool="ncl"),
    DeskArea(key="dallas_desk", name="Dallas - Desk", capacity=10),
)
DEFAULT_POOLS = (ParkingPool(key="ncl", name="Newcastle", permits=6),)


class CapacityRegistry:
    """Static desk and parking limits, immutable once built."""

    def __init__(self, areas: Iterable[DeskArea], pools: Iterable[ParkingPool] = ()) -> None:
        self._pools: dict[str, ParkingPool] = {}
        for pool in pools:
            if pool.key in self._pools:
                raise ValueError(f"duplicate parking pool key: {pool.key}")
            self._pools[pool.key] = pool

        self._areas: dict[str, DeskArea] = {}
        self._aliases: dict[str, str] = {}
        for area in areas:
            if area.key in self._areas:
                raise ValueError(f"duplicate desk area key: {area.key}")
            if area.pool is not None and area.pool not in self._pools:
                raise ValueError(f"desk area {area.key} references unknown pool {area.pool}")
            self._areas[area.key] = area
            self._aliases[normalize_area_key(area.key)] = area.key
            self._aliases[normalize_area_key(area.name)] = area.key

    @classmethod
    def default(cls) -> "CapacityRegistry":
        return cls(DEFAULT_AREAS, DEFAULT_POOLS)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "CapacityRegistry":
        areas = [DeskArea.model_validate(item) for item in data.get("areas", [])]
        pools = [ParkingPool.model_validate(item) for item in data.get("pools", [])]
        return cls(areas, pools)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "CapacityRegistry":
        with open(path, encoding="utf-8") as fh:
            return cls.from_mapping(json.load(fh))

    @property
    def areas(self) -> tuple[DeskArea, ...]:
        return tuple(self._areas.values())

    @property
    def pools(self) -> tuple[ParkingPool, ...]:
        return tuple(self._pools.values())

    def __contains__(self, area_key: object) -> bool:
        return isinstance(area_key, str) and area_key in self._areas

    def canonicalize(self, raw: str) -> str:
        """Canonical key for a key or display name; unknown inputs come back normalized."""
        return self._aliases.get(normalize_area_key(raw), normalize_area_key(raw))

    def area(self, area_key: str) -> DeskArea:
        try:
            return self._areas[area_key]
        except KeyError:
            raise UnknownAreaError(f"Unknown desk area: {area_key}") from None

    def capacity_of(self, area_key: str) -> int:
        return self.area(area_key).capacity

    def pool_of(self, area_key: str) -> Optional[str]:
        return self.area(area_key).pool

    def pool(self, pool_key: str) -> ParkingPool:
        try:
            return self._pools[pool_key]
        except KeyError:
            raise UnknownAreaError(f"Unknown parking pool: {pool_key}") from None

    def permit_limit_of(self, pool_key: str) -> int:
        return self.pool(pool_key).permits

    def areas_in_pool(self, pool_key: str) -> tuple[str, ...]:
        return tuple(area.key for area in self._areas.values() if area.pool == pool_key)
