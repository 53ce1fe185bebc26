# config.py
# routing parameters and per-subcategory weight profiles. both are frozen
# pydantic models passed explicitly into every route computation; nothing
# here is process-wide state.
#
# weights follow the parameter table of the web application: generalWeight
# applies to land cover, corridorWeight to transmission lines and railroads,
# barrierWeight to railroads only. all weights lie in [0, 1].

import json
import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from transmission_siting.models import LAYER_LABELS, LayerKind

log = logging.getLogger(__name__)


class WeightProfile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    layer: LayerKind
    subcategory: str = Field(..., min_length=1)
    general_weight: float = Field(0.0, ge=0, le=1, alias="generalWeight")
    corridor_weight: float = Field(0.0, ge=0, le=1, alias="corridorWeight")
    barrier_weight: float = Field(0.0, ge=0, le=1, alias="barrierWeight")
    enabled: bool = True

    @field_validator("layer", mode="before")
    @classmethod
    def accept_display_name(cls, v):
        if isinstance(v, str) and v in LAYER_LABELS:
            return LAYER_LABELS[v]
        return v


def _profile(layer, subcategory, general=0.0, corridor=0.0, barrier=0.0):
    return WeightProfile(
        layer=layer,
        subcategory=subcategory,
        general_weight=general,
        corridor_weight=corridor,
        barrier_weight=barrier,
    )


DEFAULT_WEIGHT_PROFILES = (
    _profile(LayerKind.LAND_COVER, "Developed", general=0.8),
    _profile(LayerKind.LAND_COVER, "Forest", general=0.3),
    _profile(LayerKind.LAND_COVER, "Cropland", general=0.5),
    _profile(LayerKind.LAND_COVER, "Wetlands", general=0.9),
    _profile(LayerKind.TRANSMISSION_LINE, "< 100kV", corridor=0.2),
    _profile(LayerKind.TRANSMISSION_LINE, "100-230kV", corridor=0.3),
    _profile(LayerKind.TRANSMISSION_LINE, "> 230kV", corridor=0.4),
    _profile(LayerKind.RAILROAD, "Low Speed", corridor=0.3, barrier=0.4),
    _profile(LayerKind.RAILROAD, "Medium Speed", corridor=0.4, barrier=0.6),
    _profile(LayerKind.RAILROAD, "High Speed", corridor=0.5, barrier=0.8),
)


class RoutingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    resolution_m: float = Field(720.0, gt=0, description="cost grid cell size (metres)")
    baseline_cost: float = Field(1.0, gt=0, description="traversal cost of a cell with no layer")
    min_cost_floor: float = Field(0.1, gt=0, description="lowest cost a corridor discount may reach")
    general_weight_scale: float = Field(9.0, ge=0, description="land-cover cost added at weight 1.0")
    land_cover_polarity: Literal["avoid", "prefer"] = "avoid"
    corridor_buffer_m: float = Field(1000.0, gt=0, description="reach of the corridor discount (metres)")
    corridor_decay: Literal["linear", "flat"] = "linear"
    barrier_penalty_scale: float = Field(20.0, ge=0, description="cost added at barrier weight 1.0")
    hard_block_threshold: float = Field(0.9, ge=0, le=1, description="barrier weights above this block cells")
    solver: Literal["astar", "dijkstra"] = "astar"
    simplify_tolerance: float = Field(0.5, ge=0, description="Douglas-Peucker tolerance in cells")
    sample_interval_m: float = Field(100.0, gt=0, description="spacing of land-cover / elevation samples")
    cost_per_km: float = Field(1000.0, ge=0, description="installation cost per km at baseline cost")
    workers: int = Field(1, ge=1, description="threads used to score cost-grid chunks")
    chunk_rows: int = Field(64, ge=1)
    max_cells: int = Field(4_000_000, ge=1)
    working_crs: Optional[str] = None

    @model_validator(mode="after")
    def floor_below_baseline(self):
        if self.min_cost_floor > self.baseline_cost:
            raise ValueError("min_cost_floor must not exceed baseline_cost")
        return self

    def with_resolution(self, resolution_m):
        if resolution_m is None:
            return self
        return RoutingConfig.model_validate({**self.model_dump(), "resolution_m": resolution_m})


class WeightTable:
    """lookup of the effective weights per (layer, subcategory)."""

    def __init__(self, profiles):
        self._profiles = {}
        for profile in profiles:
            if not isinstance(profile, WeightProfile):
                profile = WeightProfile.model_validate(profile)
            self._profiles[(profile.layer, profile.subcategory)] = profile
        self._missing_logged = set()

    def get(self, layer, subcategory):
        profile = self._profiles.get((layer, subcategory))
        if profile is None and (layer, subcategory) not in self._missing_logged:
            self._missing_logged.add((layer, subcategory))
            log.debug(f"no weight profile for {layer.value}/{subcategory}, contributes nothing")
        return profile

    def general(self, subcategory, polarity="avoid"):
        profile = self.get(LayerKind.LAND_COVER, subcategory)
        if profile is None or not profile.enabled:
            return 0.0
        if polarity == "prefer":
            return 1.0 - profile.general_weight
        return profile.general_weight

    def corridor(self, layer, subcategory):
        profile = self.get(layer, subcategory)
        if profile is None or not profile.enabled:
            return 0.0
        return profile.corridor_weight

    def barrier(self, subcategory):
        profile = self.get(LayerKind.RAILROAD, subcategory)
        if profile is None or not profile.enabled:
            return 0.0
        return profile.barrier_weight


def load_config(path):
    """read a RoutingConfig from a JSON file."""
    return RoutingConfig.model_validate_json(Path(path).read_text())


def load_weight_profiles(path):
    """read the persisted list of parameter rows (camelCase or snake_case keys)."""
    rows = json.loads(Path(path).read_text())
    return tuple(TypeAdapter(list[WeightProfile]).validate_python(rows))
