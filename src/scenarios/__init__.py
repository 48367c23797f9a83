"""Scenario catalog: predefined market shocks plus the custom variant."""

from .catalog import (
    CUSTOM_SCENARIO,
    CUSTOM_SCENARIO_ID,
    Scenario,
    ScenarioCatalog,
    ScenarioCategory,
    build_custom_scenario,
)

__all__ = [
    "CUSTOM_SCENARIO",
    "CUSTOM_SCENARIO_ID",
    "Scenario",
    "ScenarioCatalog",
    "ScenarioCategory",
    "build_custom_scenario",
]
