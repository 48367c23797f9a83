"""Per-asset stress profiles used by the stress-test shock path."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from portfolio.store import RiskFactors

STANDARD_PROFILE = "standard"
VOL_SURFACE_PROFILE = "vol-surface"
STRESS_PROFILES = (STANDARD_PROFILE, VOL_SURFACE_PROFILE)

RATES_DAMPING = 0.1
VEGA_DAMPING = 0.05
VOL_SURFACE_SENSITIVITY = 0.3


@dataclass(frozen=True)
class StressProfileTable:
    """Maps asset symbols to the stress profile they are revalued under."""

    profiles: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for asset, profile in self.profiles.items():
            if profile not in STRESS_PROFILES:
                raise ValueError(f"unknown stress profile {profile!r} for {asset}")

    @classmethod
    def vol_surface_assets(cls, assets: Iterable[str]) -> "StressProfileTable":
        return cls(profiles={asset: VOL_SURFACE_PROFILE for asset in assets})

    def profile_for(self, asset: str) -> str:
        return self.profiles.get(asset, STANDARD_PROFILE)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.profiles)


def stress_return(factors: RiskFactors, shock: float, profile: str) -> float:
    """Fractional price move for a stress scenario under ``profile``."""

    delta_term = factors.delta * shock
    if profile == VOL_SURFACE_PROFILE:
        return delta_term + factors.vega * abs(shock) * VOL_SURFACE_SENSITIVITY
    duration_term = -factors.duration * shock * RATES_DAMPING
    vega_term = factors.vega * abs(shock) * VEGA_DAMPING
    return delta_term + duration_term + vega_term


__all__ = [
    "STANDARD_PROFILE",
    "STRESS_PROFILES",
    "StressProfileTable",
    "VOL_SURFACE_PROFILE",
    "stress_return",
]
