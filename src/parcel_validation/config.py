"""
Environment-driven defaults for the HTTP host.

The engine functions never read these; they take rules and tolerances as
arguments. Settings only fill in what a request leaves out.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .models import OverlapTolerances, ValidationRuleSet

load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)).strip())


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _rules_from_env() -> ValidationRuleSet:
    max_area = os.getenv("PARCEL_MAX_AREA_HECTARES", "1000").strip()
    return ValidationRuleSet(
        min_area_hectares=_env_float("PARCEL_MIN_AREA_HECTARES", 0.01),
        max_area_hectares=float(max_area) if max_area.lower() not in ("", "none") else None,
        min_vertices=int(os.getenv("PARCEL_MIN_VERTICES", "3")),
        max_vertices=int(os.getenv("PARCEL_MAX_VERTICES", "100")),
        allow_self_intersection=_env_bool("PARCEL_ALLOW_SELF_INTERSECTION", False),
        detect_spikes=_env_bool("PARCEL_DETECT_SPIKES", True),
        spike_angle_threshold_degrees=_env_float("PARCEL_SPIKE_ANGLE_DEGREES", 10.0),
    )


def _tolerances_from_env() -> OverlapTolerances:
    return OverlapTolerances(
        shrunk_min_percentage=_env_float("PARCEL_OVERLAP_SHRUNK_MIN_PERCENT", 95.0),
        same_size_min_percentage=_env_float("PARCEL_OVERLAP_SAME_SIZE_MIN_PERCENT", 99.0),
        same_size_area_ratio=_env_float("PARCEL_OVERLAP_SAME_SIZE_RATIO", 0.02),
        expanded_area_ratio=_env_float("PARCEL_OVERLAP_EXPANDED_RATIO", 0.10),
        expanded_fallback_area_ratio=_env_float("PARCEL_OVERLAP_EXPANDED_FALLBACK_RATIO", 0.05),
        shifted_area_ratio=_env_float("PARCEL_OVERLAP_SHIFTED_RATIO", 0.15),
    )


class Settings(BaseModel):
    log_level: str = Field(default_factory=lambda: os.getenv("PARCEL_LOG_LEVEL", "INFO").strip().upper())
    host: str = Field(default_factory=lambda: os.getenv("PARCEL_HOST", "0.0.0.0").strip())
    port: int = Field(default_factory=lambda: int(os.getenv("PARCEL_PORT", "8000")))
    reload: bool = Field(default_factory=lambda: _env_bool("PARCEL_RELOAD", False))
    default_rules: ValidationRuleSet = Field(default_factory=_rules_from_env)
    overlap_tolerances: OverlapTolerances = Field(default_factory=_tolerances_from_env)


settings = Settings()
